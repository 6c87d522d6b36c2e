"""
===============================================================================
USE CASE SERVICE: Workspace Facade (Single Entry Point)
===============================================================================

Name:
    Workspace Facade

Business Goal:
    Ser el único punto de entrada para UI / handlers REST:
      - consultas: permiso efectivo, páginas visibles, filtrado RLS de filas,
        assets accesibles
      - comandos: share batch, move, delete, create, rename

Why (Context / Intención):
    - Las consultas nunca lanzan por "no permitido": devuelven NONE / vacío.
      Solo un id inexistente es un error (NotFoundError).
    - Los comandos devuelven OperationResult: el caller decide el status code
      a partir de AssetErrorCode sin conocer la taxonomía interna.
    - Cada comando corre dentro de operation_context para que todos los logs
      (incluidos los reintentos) compartan operación, actor y request_id.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    WorkspaceFacade

Responsibilities:
    - Resolver assets por (id, tipo).
    - Componer asset_policy + rls_evaluator para las consultas.
    - Autorizar al actor (can_edit / can_share) antes de mutar.
    - Traducir WorkspaceEngineError -> OperationResult.

Collaborators:
    - HierarchyManager, ShareMergeEngine
    - domain.asset_policy, domain.rls_evaluator
    - AssetRepository
    - context.operation_context, crosscutting.logger
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from ..context import operation_context
from ..crosscutting.exceptions import (
    ForbiddenError,
    HierarchyError,
    NotFoundError,
    WorkspaceEngineError,
)
from ..crosscutting.logger import logger
from ..domain import asset_policy
from ..domain.asset_policy import DefaultPermissionPolicy
from ..domain.entities import Asset, AssetType, Dashboard, Folder, Page, Permission
from ..domain.identity import Viewer, normalize
from ..domain.repositories import AssetRepository
from ..domain.rls_evaluator import Row, filter_rows as apply_rls
from ..domain.share_merge import ShareBatch
from .hierarchy_manager import HierarchyManager
from .results import OperationResult
from .share_merge_engine import ShareMergeEngine


class DeletePolicy(str, Enum):
    """Qué pasa con el contenido de un folder borrado."""

    CASCADE = "cascade"
    REPARENT = "reparent"

    @classmethod
    def to_cascade(cls, raw: Any) -> Optional[bool]:
        """None -> default configurado; bool / enum / string -> cascade explícito."""
        if raw is None:
            return None
        if isinstance(raw, bool):
            return raw
        try:
            return cls(normalize(raw)) is cls.CASCADE
        except ValueError as exc:
            raise HierarchyError(
                f"Unknown delete policy: {raw!r} (expected cascade or reparent)"
            ) from exc


@dataclass(frozen=True)
class AccessibleAssets:
    folders: List[Folder]
    dashboards: List[Dashboard]


def _parse_asset_type(raw: Any) -> AssetType:
    if isinstance(raw, AssetType):
        return raw
    try:
        return AssetType(normalize(raw))
    except ValueError as exc:
        raise HierarchyError(f"Unknown asset type: {raw!r}") from exc


class WorkspaceFacade:
    def __init__(
        self,
        repository: AssetRepository,
        hierarchy: HierarchyManager,
        shares: ShareMergeEngine,
        *,
        policy: DefaultPermissionPolicy | None = None,
    ) -> None:
        self._assets = repository
        self._hierarchy = hierarchy
        self._shares = shares
        self._policy = policy or DefaultPermissionPolicy()

    # =========================================================================
    # Consultas
    # =========================================================================

    def get_asset(self, asset_id: str, asset_type: AssetType | str) -> Asset:
        kind = _parse_asset_type(asset_type)
        if kind is AssetType.FOLDER:
            asset = self._assets.get_folder(asset_id)
        else:
            asset = self._assets.get_dashboard(asset_id)
        if asset is None:
            raise NotFoundError(kind.value, asset_id)
        return asset

    def resolve_permission(
        self, asset_id: str, asset_type: AssetType | str, viewer: Viewer | None
    ) -> Permission:
        asset = self.get_asset(asset_id, asset_type)
        return asset_policy.resolve_permission(asset, viewer, self._policy)

    def can_view(
        self, asset_id: str, asset_type: AssetType | str, viewer: Viewer | None
    ) -> bool:
        return self.resolve_permission(asset_id, asset_type, viewer).at_least(
            Permission.VIEW
        )

    def can_edit(
        self, asset_id: str, asset_type: AssetType | str, viewer: Viewer | None
    ) -> bool:
        asset = self.get_asset(asset_id, asset_type)
        return asset_policy.can_edit(asset, viewer, self._policy)

    def can_share(
        self, asset_id: str, asset_type: AssetType | str, viewer: Viewer | None
    ) -> bool:
        asset = self.get_asset(asset_id, asset_type)
        return asset_policy.can_share(asset, viewer, self._policy)

    def visible_pages(self, dashboard_id: str, viewer: Viewer | None) -> frozenset[str]:
        dashboard = self.get_asset(dashboard_id, AssetType.DASHBOARD)
        return asset_policy.visible_pages(dashboard, viewer, self._policy)

    def filter_rows(
        self,
        dashboard_id: str,
        viewer: Viewer | None,
        rows: Iterable[Row],
        *,
        page_id: str | None = None,
    ) -> list[Row]:
        """
        Filtra filas para el viewer.

        Orden:
          1. Gate de permiso: sin acceso -> [].
          2. Gate de página (si se informa page_id): página oculta -> [].
          3. RLS efectivo (AND de las reglas de todos los grants que matchean).
        """
        dashboard = self.get_asset(dashboard_id, AssetType.DASHBOARD)
        permission = asset_policy.resolve_permission(dashboard, viewer, self._policy)
        if permission is Permission.NONE:
            return []

        if page_id is not None:
            pages = asset_policy.visible_pages(dashboard, viewer, self._policy)
            if page_id not in pages:
                return []

        config = asset_policy.effective_rls(dashboard, viewer)
        return apply_rls(config, rows)

    def list_accessible_assets(self, viewer: Viewer | None) -> AccessibleAssets:
        """Folders y dashboards sobre los que el viewer tiene al menos VIEW."""
        folders = [
            f
            for f in self._assets.list_folders()
            if asset_policy.can_view(f, viewer, self._policy)
        ]
        dashboards = [
            d
            for d in self._assets.list_dashboards()
            if asset_policy.can_view(d, viewer, self._policy)
        ]
        return AccessibleAssets(folders=folders, dashboards=dashboards)

    # =========================================================================
    # Comandos
    # =========================================================================

    def apply_share_batch(
        self, batch: ShareBatch, *, actor: Viewer | None = None
    ) -> OperationResult:
        def _run() -> OperationResult:
            outcome = self._shares.apply_share_batch(batch, actor=actor)
            assets = outcome.assets
            return OperationResult(asset=assets[0] if assets else None, assets=assets)

        return self._execute("apply_share_batch", actor, _run)

    def move_asset(
        self,
        asset_id: str,
        asset_type: AssetType | str,
        new_parent_id: str | None = None,
        *,
        actor: Viewer | None = None,
    ) -> OperationResult:
        def _run() -> OperationResult:
            asset = self.get_asset(asset_id, asset_type)
            self._require_edit(actor, asset)
            if new_parent_id is not None:
                self._require_edit(
                    actor, self.get_asset(new_parent_id, AssetType.FOLDER)
                )
            if isinstance(asset, Folder):
                moved = self._hierarchy.move_folder(asset.id, new_parent_id)
            else:
                moved = self._hierarchy.move_dashboard(asset.id, new_parent_id)
            return OperationResult(asset=moved)

        return self._execute("move_asset", actor, _run)

    def delete_asset(
        self,
        asset_id: str,
        asset_type: AssetType | str,
        cascade_policy: DeletePolicy | str | bool | None = None,
        *,
        actor: Viewer | None = None,
    ) -> OperationResult:
        """Borra un asset; el OperationResult lleva el snapshot previo al borrado."""

        def _run() -> OperationResult:
            cascade = DeletePolicy.to_cascade(cascade_policy)
            asset = self.get_asset(asset_id, asset_type)
            self._require_edit(actor, asset)
            if isinstance(asset, Folder):
                self._hierarchy.delete_folder(asset.id, cascade=cascade)
            else:
                self._hierarchy.delete_dashboard(asset.id)
            return OperationResult(asset=asset)

        return self._execute("delete_asset", actor, _run)

    def create_folder(
        self,
        name: str | None = None,
        parent_id: str | None = None,
        *,
        actor: Viewer | None = None,
    ) -> OperationResult:
        def _run() -> OperationResult:
            if parent_id is not None:
                self._require_edit(actor, self.get_asset(parent_id, AssetType.FOLDER))
            folder = self._hierarchy.create_folder(
                name, parent_id, created_by=actor.display_id if actor else None
            )
            return OperationResult(asset=folder)

        return self._execute("create_folder", actor, _run)

    def create_dashboard(
        self,
        title: str | None = None,
        folder_id: str | None = None,
        *,
        pages: Iterable[Page] = (),
        actor: Viewer | None = None,
    ) -> OperationResult:
        def _run() -> OperationResult:
            if folder_id is not None:
                self._require_edit(actor, self.get_asset(folder_id, AssetType.FOLDER))
            dashboard = self._hierarchy.create_dashboard(
                title,
                folder_id,
                pages=pages,
                created_by=actor.display_id if actor else None,
            )
            return OperationResult(asset=dashboard)

        return self._execute("create_dashboard", actor, _run)

    def rename_asset(
        self,
        asset_id: str,
        asset_type: AssetType | str,
        name: str,
        *,
        actor: Viewer | None = None,
    ) -> OperationResult:
        def _run() -> OperationResult:
            asset = self.get_asset(asset_id, asset_type)
            self._require_edit(actor, asset)
            if isinstance(asset, Folder):
                renamed = self._hierarchy.rename_folder(asset.id, name)
            else:
                renamed = self._hierarchy.rename_dashboard(asset.id, name)
            return OperationResult(asset=renamed)

        return self._execute("rename_asset", actor, _run)

    # =========================================================================
    # Helpers privados
    # =========================================================================

    def _require_edit(self, actor: Viewer | None, asset: Asset) -> None:
        if actor is None:
            return
        if not asset_policy.can_edit(asset, actor, self._policy):
            raise ForbiddenError(
                f"Viewer {actor.display_id} cannot edit "
                f"{asset.asset_type.value} {asset.id}."
            )

    @staticmethod
    def _execute(
        operation: str,
        actor: Viewer | None,
        run: Callable[[], OperationResult],
    ) -> OperationResult:
        with operation_context(operation, actor_id=actor.display_id if actor else ""):
            try:
                result = run()
            except WorkspaceEngineError as exc:
                logger.warning(
                    "Workspace operation failed",
                    extra={
                        "error_code": exc.error_code,
                        "error_id": exc.error_id,
                        "error": exc.message,
                    },
                )
                return OperationResult.failure(exc)

            logger.info(
                "Workspace operation completed",
                extra={
                    "asset_id": result.asset.id if result.asset is not None else None,
                },
            )
            return result
