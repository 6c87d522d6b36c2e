"""
===============================================================================
TARJETA CRC — bi_workspace/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer repositorio, engines y facade siguiendo DIP.
  - Mantener singletons con caching (lru_cache).
  - Centralizar decisiones runtime basadas en Settings (política de permisos
    por defecto, delete policy, retries, profundidad máxima).

Colaboradores:
  - bi_workspace.crosscutting.config.get_settings
  - bi_workspace.domain.repositories.AssetRepository (puerto)
  - bi_workspace.infrastructure.* (implementaciones)
  - bi_workspace.application.* (engines + facade)

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Tests: `reset_container()` limpia los singletons entre casos.
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache

from .application import HierarchyManager, ShareMergeEngine, WorkspaceFacade
from .crosscutting.config import get_settings
from .domain.asset_policy import DefaultPermissionPolicy
from .domain.entities import Permission
from .domain.repositories import AssetRepository
from .infrastructure.repositories import InMemoryAssetRepository
from .infrastructure.services import create_conflict_retry


@lru_cache(maxsize=1)
def get_asset_repository() -> AssetRepository:
    """Repositorio de assets (in-memory; el storage real lo provee el host)."""
    return InMemoryAssetRepository()


@lru_cache(maxsize=1)
def get_permission_policy() -> DefaultPermissionPolicy:
    """Política de permisos por defecto (creador / assets sin dueño)."""
    settings = get_settings()
    return DefaultPermissionPolicy(
        creator_permission=Permission(settings.creator_permission),
        ownerless_permission=Permission(settings.ownerless_asset_permission),
    )


@lru_cache(maxsize=1)
def get_hierarchy_manager() -> HierarchyManager:
    settings = get_settings()
    return HierarchyManager(
        get_asset_repository(),
        max_depth=settings.max_folder_depth,
        cascade_by_default=settings.cascade_by_default(),
        retry_decorator=create_conflict_retry(),
    )


@lru_cache(maxsize=1)
def get_share_merge_engine() -> ShareMergeEngine:
    return ShareMergeEngine(
        get_asset_repository(),
        policy=get_permission_policy(),
        retry_decorator=create_conflict_retry(),
    )


@lru_cache(maxsize=1)
def get_workspace_facade() -> WorkspaceFacade:
    """Entry point para UI / handlers."""
    return WorkspaceFacade(
        get_asset_repository(),
        get_hierarchy_manager(),
        get_share_merge_engine(),
        policy=get_permission_policy(),
    )


def reset_container() -> None:
    for factory in (
        get_workspace_facade,
        get_share_merge_engine,
        get_hierarchy_manager,
        get_permission_policy,
        get_asset_repository,
    ):
        factory.cache_clear()
