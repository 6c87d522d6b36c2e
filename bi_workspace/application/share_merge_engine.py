"""
===============================================================================
USE CASE SERVICE: Share Merge Engine (Atomic Share Batch)
===============================================================================

Name:
    Share Merge Engine

Business Goal:
    Aplicar un formulario de sharing (un target, un folder opcional y N
    dashboards) como UNA transacción: o se actualizan todos los assets o ninguno.

Why (Context / Intención):
    - El upsert-by-identity (quitar la entrada del target y re-agregarla) es un
      read-modify-write sobre shared_with: sin guard de versión, dos sesiones
      concurrentes pierden grants.
    - Cada intento relee los assets, recalcula el merge y commitea con
      compare-and-swap; ConflictError -> se reintenta la unidad completa.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    ShareMergeEngine

Responsibilities:
    - Validar el batch (target no vacío, ids de dashboards no vacíos).
    - Cargar folder + dashboards afectados (NotFoundError).
    - Autorizar al actor si se informa (can_share en cada asset).
    - Componer merge_shares por asset y commitear un único change set.

Collaborators:
    - domain.share_merge: merge_shares (función pura)
    - domain.asset_policy: can_share, DefaultPermissionPolicy
    - AssetRepository / AssetChangeSet
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple, TypeVar

from ..crosscutting.exceptions import ForbiddenError, NotFoundError, ShareError
from ..crosscutting.logger import logger
from ..domain.asset_policy import DefaultPermissionPolicy, can_share
from ..domain.entities import AssetType, Dashboard, Folder
from ..domain.identity import Viewer
from ..domain.repositories import AssetChangeSet, AssetRepository
from ..domain.share_merge import ShareBatch, merge_shares

T = TypeVar("T")


def _no_retry(fn: Callable[..., T]) -> Callable[..., T]:
    return fn


@dataclass(frozen=True)
class ShareBatchOutcome:
    """Assets tal como quedaron después del commit."""

    folder: Optional[Folder]
    dashboards: Tuple[Dashboard, ...]

    @property
    def assets(self) -> tuple:
        head = (self.folder,) if self.folder is not None else ()
        return head + self.dashboards


class ShareMergeEngine:
    def __init__(
        self,
        repository: AssetRepository,
        *,
        policy: DefaultPermissionPolicy | None = None,
        retry_decorator: Callable[[Callable[..., T]], Callable[..., T]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._assets = repository
        self._policy = policy or DefaultPermissionPolicy()
        self._retry = retry_decorator or _no_retry
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def apply_share_batch(
        self, batch: ShareBatch, *, actor: Viewer | None = None
    ) -> ShareBatchOutcome:
        """
        Aplica el batch completo o nada.

        Reglas:
          - folder_role se aplica solo si hay folder_id; los folders no llevan RLS.
          - cada dashboard toma allowed_page_ids / rls de rls_by_dashboard.
          - role NONE revoca al target en ese asset.
        """
        self._validate(batch)

        @self._retry
        def _attempt() -> ShareBatchOutcome:
            folder, dashboards = self._load(batch)
            if actor is not None:
                self._authorize(actor, folder, dashboards)

            shared_at = self._clock()
            change = AssetChangeSet()

            if folder is not None:
                change.folders.append(
                    replace(
                        folder,
                        shared_with=merge_shares(
                            folder.shared_with,
                            target=batch.target,
                            role=batch.folder_role,
                            shared_at=shared_at,
                        ),
                    )
                )

            for dashboard in dashboards:
                rls = batch.rls_by_dashboard.get(dashboard.id)
                change.dashboards.append(
                    replace(
                        dashboard,
                        shared_with=merge_shares(
                            dashboard.shared_with,
                            target=batch.target,
                            role=batch.dashboard_roles[dashboard.id],
                            shared_at=shared_at,
                            allowed_page_ids=rls.allowed_page_ids if rls else (),
                            rls=rls,
                        ),
                    )
                )

            self._assets.commit(change)
            return self._reload(folder, dashboards)

        outcome = _attempt()
        logger.info(
            "Share batch applied",
            extra={
                "target_type": batch.target.target_type.value,
                "target_id": batch.target.target_id,
                "folder_id": batch.folder_id,
                "folder_role": batch.folder_role.value if batch.folder_id else None,
                "dashboards": len(outcome.dashboards),
            },
        )
        return outcome

    # =========================================================================
    # Helpers privados
    # =========================================================================

    @staticmethod
    def _validate(batch: ShareBatch) -> None:
        if not batch.target.target_id:
            raise ShareError("Share target id is required.")
        for dashboard_id in batch.dashboard_ids:
            if not str(dashboard_id or "").strip():
                raise ShareError("Dashboard id is required for every dashboard role.")
        if batch.folder_id is None and not batch.dashboard_roles:
            raise ShareError("Share batch does not reference any asset.")

    def _load(self, batch: ShareBatch) -> tuple[Optional[Folder], list[Dashboard]]:
        folder = None
        if batch.folder_id is not None:
            folder = self._assets.get_folder(batch.folder_id)
            if folder is None:
                raise NotFoundError(AssetType.FOLDER.value, batch.folder_id)

        dashboards = []
        for dashboard_id in batch.dashboard_ids:
            dashboard = self._assets.get_dashboard(dashboard_id)
            if dashboard is None:
                raise NotFoundError(AssetType.DASHBOARD.value, dashboard_id)
            dashboards.append(dashboard)
        return folder, dashboards

    def _authorize(
        self, actor: Viewer, folder: Optional[Folder], dashboards: list[Dashboard]
    ) -> None:
        assets = ([folder] if folder is not None else []) + dashboards
        for asset in assets:
            if not can_share(asset, actor, self._policy):
                raise ForbiddenError(
                    f"Viewer {actor.display_id} cannot share "
                    f"{asset.asset_type.value} {asset.id}."
                )

    def _reload(
        self, folder: Optional[Folder], dashboards: list[Dashboard]
    ) -> ShareBatchOutcome:
        fresh_folder = None
        if folder is not None:
            fresh_folder = self._assets.get_folder(folder.id) or folder
        fresh_dashboards = tuple(
            self._assets.get_dashboard(d.id) or d for d in dashboards
        )
        return ShareBatchOutcome(folder=fresh_folder, dashboards=fresh_dashboards)
