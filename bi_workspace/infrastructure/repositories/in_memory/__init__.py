"""
In-Memory Repository Implementations.

For testing, local development and embedding in a host that owns persistence.
Data is lost on process restart.
"""

from .assets import InMemoryAssetRepository

__all__ = ["InMemoryAssetRepository"]
