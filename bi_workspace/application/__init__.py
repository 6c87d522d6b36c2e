"""
Application layer: engines that mutate the workspace and the facade that
composes them.
"""

from .hierarchy_manager import FolderDeletion, HierarchyManager
from .results import AssetError, AssetErrorCode, OperationResult
from .share_merge_engine import ShareBatchOutcome, ShareMergeEngine
from .workspace_facade import AccessibleAssets, DeletePolicy, WorkspaceFacade

__all__ = [
    # Engines
    "HierarchyManager",
    "FolderDeletion",
    "ShareMergeEngine",
    "ShareBatchOutcome",
    # Facade
    "WorkspaceFacade",
    "DeletePolicy",
    "AccessibleAssets",
    # Results
    "OperationResult",
    "AssetError",
    "AssetErrorCode",
]
