"""
===============================================================================
USE CASE SERVICE: Hierarchy Manager (Folders / Dashboards Tree)
===============================================================================

Name:
    Hierarchy Manager

Business Goal:
    Ser dueño del árbol de folders y dashboards del workspace:
      - crear / renombrar assets
      - mover folders y dashboards sin crear ciclos
      - borrar folders en cascada o re-colgando su contenido en el padre

Why (Context / Intención):
    - Un folder nunca puede ser su propio ancestro: el check se hace caminando
      la cadena de padres desde el destino (costo proporcional a la profundidad,
      no al tamaño del árbol).
    - check-then-move debe ser atómico frente a otros movers: la cadena caminada
      se commitea como "guards" de versión; si alguien movió un ancestro en el
      medio, el commit falla con ConflictError y la unidad se reintenta.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    HierarchyManager

Responsibilities:
    - create_folder / create_dashboard (sin shares).
    - rename_folder / rename_dashboard.
    - move_folder (CycleError) / move_dashboard.
    - delete_folder (cascade | reparent) / delete_dashboard.

Collaborators:
    - AssetRepository (get/list/add/commit)
    - AssetChangeSet (unidad atómica)
    - crosscutting.exceptions: NotFoundError, CycleError, HierarchyError, ConflictError
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, TypeVar
from uuid import uuid4

from ..crosscutting.exceptions import (
    ConflictError,
    CycleError,
    HierarchyError,
    NotFoundError,
)
from ..crosscutting.logger import logger
from ..domain.entities import AssetType, Dashboard, Folder, Page
from ..domain.repositories import AssetChangeSet, AssetRepository

T = TypeVar("T")

_DEFAULT_FOLDER_NAME = "New Folder"
_DEFAULT_DASHBOARD_TITLE = "Untitled Dashboard"


def _no_retry(fn: Callable[..., T]) -> Callable[..., T]:
    return fn


@dataclass
class FolderDeletion:
    """Resumen de un delete_folder (qué se borró y qué se re-colgó)."""

    folder_id: str
    cascade: bool
    deleted_folder_ids: List[str] = field(default_factory=list)
    deleted_dashboard_ids: List[str] = field(default_factory=list)
    reparented_folder_ids: List[str] = field(default_factory=list)
    reparented_dashboard_ids: List[str] = field(default_factory=list)
    new_parent_id: Optional[str] = None


class HierarchyManager:
    """Árbol de assets: altas, renombres, moves sin ciclos y deletes."""

    def __init__(
        self,
        repository: AssetRepository,
        *,
        max_depth: int = 256,
        cascade_by_default: bool = False,
        retry_decorator: Callable[[Callable[..., T]], Callable[..., T]] | None = None,
    ) -> None:
        self._assets = repository
        self._max_depth = max_depth
        self._cascade_by_default = cascade_by_default
        self._retry = retry_decorator or _no_retry

    # =========================================================================
    # Altas
    # =========================================================================

    def create_folder(
        self,
        name: str | None,
        parent_id: str | None = None,
        *,
        created_by: str | None = None,
    ) -> Folder:
        if parent_id is not None:
            self._require_folder(parent_id)
        folder = self._assets.add_folder(
            Folder(
                id=str(uuid4()),
                name=(name or "").strip() or _DEFAULT_FOLDER_NAME,
                parent_id=parent_id,
                created_by=created_by,
            )
        )
        logger.info(
            "Folder created",
            extra={"folder_id": folder.id, "parent_id": parent_id},
        )
        return folder

    def create_dashboard(
        self,
        title: str | None,
        folder_id: str | None = None,
        *,
        pages: Iterable[Page] = (),
        created_by: str | None = None,
    ) -> Dashboard:
        if folder_id is not None:
            self._require_folder(folder_id)
        dashboard = self._assets.add_dashboard(
            Dashboard(
                id=str(uuid4()),
                title=(title or "").strip() or _DEFAULT_DASHBOARD_TITLE,
                folder_id=folder_id,
                created_by=created_by,
                pages=tuple(pages),
            )
        )
        logger.info(
            "Dashboard created",
            extra={"dashboard_id": dashboard.id, "folder_id": folder_id},
        )
        return dashboard

    # =========================================================================
    # Renombres
    # =========================================================================

    def rename_folder(self, folder_id: str, name: str) -> Folder:
        cleaned = (name or "").strip()
        if not cleaned:
            raise HierarchyError("Folder name cannot be empty.")

        @self._retry
        def _attempt() -> Folder:
            folder = self._require_folder(folder_id)
            updated = replace(folder, name=cleaned)
            self._assets.commit(AssetChangeSet(folders=[updated]))
            return self._assets.get_folder(folder_id) or updated

        return _attempt()

    def rename_dashboard(self, dashboard_id: str, title: str) -> Dashboard:
        cleaned = (title or "").strip()
        if not cleaned:
            raise HierarchyError("Dashboard title cannot be empty.")

        @self._retry
        def _attempt() -> Dashboard:
            dashboard = self._require_dashboard(dashboard_id)
            updated = replace(dashboard, title=cleaned)
            self._assets.commit(AssetChangeSet(dashboards=[updated]))
            return self._assets.get_dashboard(dashboard_id) or updated

        return _attempt()

    # =========================================================================
    # Moves
    # =========================================================================

    def move_folder(self, folder_id: str, new_parent_id: str | None = None) -> Folder:
        """
        Re-cuelga un folder. CycleError si el destino es él mismo o un descendiente.

        Pasos:
          1. Cargar el folder.
          2. Caminar la cadena de padres desde el destino hacia la raíz; si aparece
             folder_id -> CycleError.
          3. Commit del folder movido + guards sobre la cadena caminada.
        """

        @self._retry
        def _attempt() -> Folder:
            folder = self._require_folder(folder_id)
            if new_parent_id == folder_id:
                raise CycleError(f"Folder {folder_id} cannot be its own parent.")
            if new_parent_id == folder.parent_id:
                return folder

            change = AssetChangeSet()
            if new_parent_id is not None:
                for ancestor in self._walk_up(new_parent_id, forbidden_id=folder_id):
                    change.guard(ancestor)

            change.folders.append(replace(folder, parent_id=new_parent_id))
            self._assets.commit(change)
            return self._assets.get_folder(folder_id) or folder

        try:
            moved = _attempt()
        except CycleError:
            logger.warning(
                "Folder move rejected: cycle",
                extra={"folder_id": folder_id, "new_parent_id": new_parent_id},
            )
            raise

        logger.info(
            "Folder moved",
            extra={"folder_id": folder_id, "new_parent_id": new_parent_id},
        )
        return moved

    def move_dashboard(
        self, dashboard_id: str, new_folder_id: str | None = None
    ) -> Dashboard:
        @self._retry
        def _attempt() -> Dashboard:
            dashboard = self._require_dashboard(dashboard_id)
            if new_folder_id == dashboard.folder_id:
                return dashboard

            change = AssetChangeSet()
            if new_folder_id is not None:
                change.guard(self._require_folder(new_folder_id))
            change.dashboards.append(replace(dashboard, folder_id=new_folder_id))
            self._assets.commit(change)
            return self._assets.get_dashboard(dashboard_id) or dashboard

        moved = _attempt()
        logger.info(
            "Dashboard moved",
            extra={"dashboard_id": dashboard_id, "new_folder_id": new_folder_id},
        )
        return moved

    def ancestors(self, folder_id: str) -> List[Folder]:
        """Cadena de padres (más cercano primero), sin incluir el folder."""
        folder = self._require_folder(folder_id)
        if folder.parent_id is None:
            return []
        return self._walk_up(folder.parent_id, forbidden_id=folder_id)

    # =========================================================================
    # Deletes
    # =========================================================================

    def delete_folder(self, folder_id: str, cascade: bool | None = None) -> FolderDeletion:
        """
        Borra un folder.

        - cascade=True: borra todo el subárbol (folders + dashboards).
        - cascade=False: borra solo el folder; sus hijos directos (folders y
          dashboards) pasan al padre del folder borrado (o a la raíz). Lo que
          está más abajo sigue colgado de esos hijos.
        - cascade=None: usa la política configurada.
        """
        use_cascade = self._cascade_by_default if cascade is None else cascade

        @self._retry
        def _attempt() -> FolderDeletion:
            folder = self._require_folder(folder_id)
            change = AssetChangeSet(deleted_folder_ids=[folder.id])
            change.guard(folder)
            summary = FolderDeletion(
                folder_id=folder.id,
                cascade=use_cascade,
                deleted_folder_ids=[folder.id],
                new_parent_id=folder.parent_id,
            )

            if use_cascade:
                self._collect_subtree(folder.id, change, summary)
            else:
                for child in self._assets.list_child_folders(folder.id):
                    change.folders.append(replace(child, parent_id=folder.parent_id))
                    summary.reparented_folder_ids.append(child.id)
                for dashboard in self._assets.list_dashboards_in_folder(folder.id):
                    change.dashboards.append(
                        replace(dashboard, folder_id=folder.parent_id)
                    )
                    summary.reparented_dashboard_ids.append(dashboard.id)

            self._assets.commit(change)
            return summary

        summary = _attempt()
        logger.info(
            "Folder deleted",
            extra={
                "folder_id": folder_id,
                "cascade": summary.cascade,
                "deleted_folders": len(summary.deleted_folder_ids),
                "deleted_dashboards": len(summary.deleted_dashboard_ids),
                "reparented_folders": len(summary.reparented_folder_ids),
                "reparented_dashboards": len(summary.reparented_dashboard_ids),
            },
        )
        return summary

    def delete_dashboard(self, dashboard_id: str) -> None:
        @self._retry
        def _attempt() -> None:
            dashboard = self._require_dashboard(dashboard_id)
            change = AssetChangeSet(deleted_dashboard_ids=[dashboard.id])
            change.guard(dashboard)
            self._assets.commit(change)

        _attempt()
        logger.info("Dashboard deleted", extra={"dashboard_id": dashboard_id})

    # =========================================================================
    # Helpers privados
    # =========================================================================

    def _require_folder(self, folder_id: str) -> Folder:
        folder = self._assets.get_folder(folder_id)
        if folder is None:
            raise NotFoundError(AssetType.FOLDER.value, folder_id)
        return folder

    def _require_dashboard(self, dashboard_id: str) -> Dashboard:
        dashboard = self._assets.get_dashboard(dashboard_id)
        if dashboard is None:
            raise NotFoundError(AssetType.DASHBOARD.value, dashboard_id)
        return dashboard

    def _walk_up(self, start_id: str, *, forbidden_id: str) -> List[Folder]:
        """
        Camina desde start_id hacia la raíz.

        - forbidden_id en la cadena -> CycleError.
        - nodo repetido o cadena más larga que max_depth -> CycleError (datos corruptos).
        - start_id inexistente -> NotFoundError; un eslabón que desaparece en
          el medio -> ConflictError (reintentable).
        """
        chain: List[Folder] = []
        seen: set[str] = set()
        current: str | None = start_id

        while current is not None:
            if current == forbidden_id:
                raise CycleError(
                    f"Folder {forbidden_id} cannot be moved into its own descendant."
                )
            if current in seen or len(chain) >= self._max_depth:
                raise CycleError(f"Folder chain above {start_id} is not finite.")
            folder = self._assets.get_folder(current)
            if folder is None:
                if not chain:
                    raise NotFoundError(AssetType.FOLDER.value, current)
                raise ConflictError(f"Folder {current} was removed concurrently.")
            chain.append(folder)
            seen.add(current)
            current = folder.parent_id

        return chain

    def _collect_subtree(
        self, root_id: str, change: AssetChangeSet, summary: FolderDeletion
    ) -> None:
        pending = [root_id]
        while pending:
            current = pending.pop()
            for dashboard in self._assets.list_dashboards_in_folder(current):
                change.deleted_dashboard_ids.append(dashboard.id)
                change.guard(dashboard)
                summary.deleted_dashboard_ids.append(dashboard.id)
            for child in self._assets.list_child_folders(current):
                change.deleted_folder_ids.append(child.id)
                change.guard(child)
                summary.deleted_folder_ids.append(child.id)
                pending.append(child.id)
