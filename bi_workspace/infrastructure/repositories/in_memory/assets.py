"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/assets.py
============================================================
Class: InMemoryAssetRepository

Responsibilities:
  - Almacenar folders y dashboards en memoria (tests / local dev / embedding).
  - Implementar commit atómico multi-asset con concurrencia optimista
    (compare-and-swap de `version` sobre todo el change set).
  - Rechazar commits que dejen referencias colgantes o ciclos.
  - Mantener ordering determinístico para tests estables.

Collaborators:
  - domain.repositories.AssetRepository / AssetChangeSet (contrato)
  - domain.entities.Folder, Dashboard
  - crosscutting.exceptions.ConflictError / NotFoundError

Constraints / Notes:
  - Thread-safe: Lock protege ambas "tablas".
  - Repo puro: NO decide permisos ni políticas de borrado.
  - Copias defensivas: el caller nunca recibe la instancia almacenada.
  - El change set se valida completo antes de escribir: no hay escrituras
    parciales. Solo se revisan las referencias que el change set toca.
  - Índices parent -> hijos mantenidos en altas y commits.
============================================================
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Set

from ....crosscutting.exceptions import ConflictError, NotFoundError
from ....crosscutting.logger import logger
from ....domain.entities import AssetType, Dashboard, Folder
from ....domain.repositories import AssetChangeSet, AssetRepository


_MISSING = object()


class InMemoryAssetRepository(AssetRepository):
    """
    Repositorio in-memory, thread-safe, para los assets de un workspace.

    Modelo mental:
    - _folders / _dashboards actúan como tablas (id -> entidad).
    - _child_folders / _folder_dashboards son índices parent -> ids, para
      que listar hijos no recorra la tabla completa.
    - commit() valida versiones y solo las referencias que toca el change
      set; recién entonces escribe tablas e índices (todo bajo lock).
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._folders: Dict[str, Folder] = {}
        self._dashboards: Dict[str, Dashboard] = {}
        self._child_folders: Dict[Optional[str], Set[str]] = {}
        self._folder_dashboards: Dict[Optional[str], Set[str]] = {}

    # =========================================================
    # Helpers internos
    # =========================================================
    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _copy(asset):
        """Copia superficial: shared_with/pages son tuplas inmutables."""
        return replace(asset)

    @staticmethod
    def _folder_sort_key(folder: Folder) -> tuple[str, str]:
        return ((folder.name or "").lower(), folder.id)

    @staticmethod
    def _dashboard_sort_key(dashboard: Dashboard) -> tuple[str, str]:
        return ((dashboard.title or "").lower(), dashboard.id)

    @staticmethod
    def _index_add(
        index: Dict[Optional[str], Set[str]], key: Optional[str], asset_id: str
    ) -> None:
        index.setdefault(key, set()).add(asset_id)

    @staticmethod
    def _index_remove(
        index: Dict[Optional[str], Set[str]], key: Optional[str], asset_id: str
    ) -> None:
        members = index.get(key)
        if members is None:
            return
        members.discard(asset_id)
        if not members:
            del index[key]

    # =========================================================
    # Lecturas
    # =========================================================
    def get_folder(self, folder_id: str) -> Optional[Folder]:
        with self._lock:
            folder = self._folders.get(folder_id)
            return self._copy(folder) if folder is not None else None

    def get_dashboard(self, dashboard_id: str) -> Optional[Dashboard]:
        with self._lock:
            dashboard = self._dashboards.get(dashboard_id)
            return self._copy(dashboard) if dashboard is not None else None

    def list_folders(self) -> List[Folder]:
        with self._lock:
            values = [self._copy(f) for f in self._folders.values()]
        return sorted(values, key=self._folder_sort_key)

    def list_dashboards(self) -> List[Dashboard]:
        with self._lock:
            values = [self._copy(d) for d in self._dashboards.values()]
        return sorted(values, key=self._dashboard_sort_key)

    def list_child_folders(self, parent_id: str | None) -> List[Folder]:
        with self._lock:
            values = [
                self._copy(self._folders[folder_id])
                for folder_id in self._child_folders.get(parent_id, ())
            ]
        return sorted(values, key=self._folder_sort_key)

    def list_dashboards_in_folder(self, folder_id: str | None) -> List[Dashboard]:
        with self._lock:
            values = [
                self._copy(self._dashboards[dashboard_id])
                for dashboard_id in self._folder_dashboards.get(folder_id, ())
            ]
        return sorted(values, key=self._dashboard_sort_key)

    # =========================================================
    # Altas
    # =========================================================
    def add_folder(self, folder: Folder) -> Folder:
        """Inserta un folder nuevo (version=1). El parent debe existir."""
        now = self._now()
        with self._lock:
            if folder.id in self._folders:
                raise ConflictError(f"Folder already exists: {folder.id}")
            if folder.parent_id is not None and folder.parent_id not in self._folders:
                raise NotFoundError(AssetType.FOLDER.value, folder.parent_id)
            stored = replace(folder, created_at=now, updated_at=now, version=1)
            self._folders[folder.id] = stored
            self._index_add(self._child_folders, stored.parent_id, stored.id)
            return self._copy(stored)

    def add_dashboard(self, dashboard: Dashboard) -> Dashboard:
        """Inserta un dashboard nuevo (version=1). El folder debe existir."""
        now = self._now()
        with self._lock:
            if dashboard.id in self._dashboards:
                raise ConflictError(f"Dashboard already exists: {dashboard.id}")
            if (
                dashboard.folder_id is not None
                and dashboard.folder_id not in self._folders
            ):
                raise NotFoundError(AssetType.FOLDER.value, dashboard.folder_id)
            stored = replace(dashboard, created_at=now, updated_at=now, version=1)
            self._dashboards[dashboard.id] = stored
            self._index_add(self._folder_dashboards, stored.folder_id, stored.id)
            return self._copy(stored)

    # =========================================================
    # Commit atómico
    # =========================================================
    def commit(self, change_set: AssetChangeSet) -> None:
        """
        Aplica el change set completo o nada.

        Validaciones (bajo lock):
          1. Cada asset escrito existe y sigue en la versión leída.
          2. Cada asset borrado existe.
          3. Cada guard sigue en la versión leída.
          4. Las referencias que toca el change set no quedan colgando
             (parents escritos, folders de dashboards escritos, hijos de
             folders borrados) y ningún folder escrito cierra un ciclo.

        El costo es proporcional al change set (más la profundidad de los
        folders escritos), no al tamaño del workspace.
        """
        now = self._now()
        with self._lock:
            for folder in change_set.folders:
                self._check_version(self._folders, AssetType.FOLDER, folder.id, folder.version)
            for dashboard in change_set.dashboards:
                self._check_version(
                    self._dashboards, AssetType.DASHBOARD, dashboard.id, dashboard.version
                )
            for folder_id in change_set.deleted_folder_ids:
                self._check_exists(self._folders, AssetType.FOLDER, folder_id)
            for dashboard_id in change_set.deleted_dashboard_ids:
                self._check_exists(self._dashboards, AssetType.DASHBOARD, dashboard_id)
            for guard in change_set.guards:
                table = (
                    self._folders
                    if guard.asset_type is AssetType.FOLDER
                    else self._dashboards
                )
                self._check_version(table, guard.asset_type, guard.asset_id, guard.version)

            # Overlay: id -> entidad nueva, o None si se borra.
            staged_folders: Dict[str, Optional[Folder]] = {}
            staged_dashboards: Dict[str, Optional[Dashboard]] = {}
            for folder in change_set.folders:
                staged_folders[folder.id] = replace(
                    folder, updated_at=now, version=folder.version + 1
                )
            for dashboard in change_set.dashboards:
                staged_dashboards[dashboard.id] = replace(
                    dashboard, updated_at=now, version=dashboard.version + 1
                )
            for folder_id in change_set.deleted_folder_ids:
                staged_folders[folder_id] = None
            for dashboard_id in change_set.deleted_dashboard_ids:
                staged_dashboards[dashboard_id] = None

            self._check_integrity(staged_folders, staged_dashboards)
            self._apply(staged_folders, staged_dashboards)

        logger.debug(
            "Asset change set committed",
            extra={
                "folders_written": len(change_set.folders),
                "dashboards_written": len(change_set.dashboards),
                "folders_deleted": len(change_set.deleted_folder_ids),
                "dashboards_deleted": len(change_set.deleted_dashboard_ids),
            },
        )

    def _apply(
        self,
        staged_folders: Dict[str, Optional[Folder]],
        staged_dashboards: Dict[str, Optional[Dashboard]],
    ) -> None:
        for folder_id, folder in staged_folders.items():
            previous = self._folders.pop(folder_id)
            self._index_remove(self._child_folders, previous.parent_id, folder_id)
            if folder is not None:
                self._folders[folder_id] = folder
                self._index_add(self._child_folders, folder.parent_id, folder_id)
        for dashboard_id, dashboard in staged_dashboards.items():
            previous = self._dashboards.pop(dashboard_id)
            self._index_remove(self._folder_dashboards, previous.folder_id, dashboard_id)
            if dashboard is not None:
                self._dashboards[dashboard_id] = dashboard
                self._index_add(self._folder_dashboards, dashboard.folder_id, dashboard_id)

    # =========================================================
    # Validaciones
    # =========================================================
    @staticmethod
    def _check_exists(table: dict, asset_type: AssetType, asset_id: str) -> None:
        if asset_id not in table:
            raise ConflictError(
                f"{asset_type.value.capitalize()} {asset_id} was removed concurrently"
            )

    @classmethod
    def _check_version(
        cls, table: dict, asset_type: AssetType, asset_id: str, version: int
    ) -> None:
        cls._check_exists(table, asset_type, asset_id)
        stored = table[asset_id]
        if stored.version != version:
            raise ConflictError(
                f"{asset_type.value.capitalize()} {asset_id} changed concurrently "
                f"(expected version {version}, found {stored.version})"
            )

    def _resulting_folder(
        self, folder_id: str, staged: Dict[str, Optional[Folder]]
    ) -> Optional[Folder]:
        """Folder tal como quedaría tras el commit (None si no existe)."""
        found = staged.get(folder_id, _MISSING)
        if found is _MISSING:
            return self._folders.get(folder_id)
        return found

    def _resulting_dashboard(
        self, dashboard_id: str, staged: Dict[str, Optional[Dashboard]]
    ) -> Optional[Dashboard]:
        found = staged.get(dashboard_id, _MISSING)
        if found is _MISSING:
            return self._dashboards.get(dashboard_id)
        return found

    def _check_integrity(
        self,
        staged_folders: Dict[str, Optional[Folder]],
        staged_dashboards: Dict[str, Optional[Dashboard]],
    ) -> None:
        for folder_id, folder in staged_folders.items():
            if folder is None:
                self._check_no_survivors(folder_id, staged_folders, staged_dashboards)
                continue
            if (
                folder.parent_id is not None
                and self._resulting_folder(folder.parent_id, staged_folders) is None
            ):
                raise ConflictError(
                    f"Folder {folder.id} would reference a missing parent {folder.parent_id}"
                )

        for dashboard in staged_dashboards.values():
            if dashboard is None or dashboard.folder_id is None:
                continue
            if self._resulting_folder(dashboard.folder_id, staged_folders) is None:
                raise ConflictError(
                    f"Dashboard {dashboard.id} would reference a missing folder "
                    f"{dashboard.folder_id}"
                )

        # Solo los folders escritos pueden haber introducido un ciclo.
        for folder_id, folder in staged_folders.items():
            if folder is None:
                continue
            seen = {folder_id}
            current = folder.parent_id
            while current is not None:
                if current in seen:
                    raise ConflictError(f"Folder {folder_id} would create a cycle")
                seen.add(current)
                current = self._resulting_folder(current, staged_folders).parent_id

    def _check_no_survivors(
        self,
        folder_id: str,
        staged_folders: Dict[str, Optional[Folder]],
        staged_dashboards: Dict[str, Optional[Dashboard]],
    ) -> None:
        """Ningún hijo que sobreviva al commit puede seguir apuntando al folder borrado."""
        for child_id in self._child_folders.get(folder_id, ()):
            child = self._resulting_folder(child_id, staged_folders)
            if child is not None and child.parent_id == folder_id:
                raise ConflictError(
                    f"Folder {child_id} would reference a missing parent {folder_id}"
                )
        for dashboard_id in self._folder_dashboards.get(folder_id, ()):
            dashboard = self._resulting_dashboard(dashboard_id, staged_dashboards)
            if dashboard is not None and dashboard.folder_id == folder_id:
                raise ConflictError(
                    f"Dashboard {dashboard_id} would reference a missing folder {folder_id}"
                )
