"""
===============================================================================
TARJETA CRC — domain/repositories.py
===============================================================================

Módulo:
    Puertos de Persistencia (Repository Protocols)

Responsabilidades:
    - Definir el contrato que la capa application espera del storage.
    - Definir el change set atómico (upserts + deletes + guards de versión).

Colaboradores:
    - infrastructure.repositories.in_memory.assets: implementación de referencia.
    - application.*: dependen solo de este contrato (DIP).

Contrato de concurrencia:
    - Cada asset tiene `version`. `commit()` es compare-and-swap sobre TODO el
      change set: si algún asset escrito, borrado o "guardado" cambió desde que
      se leyó, se lanza ConflictError y no se escribe nada.
    - `commit()` tampoco deja referencias colgantes (parent/folder borrados).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from .entities import AssetType, Dashboard, Folder


@dataclass(frozen=True, slots=True)
class AssetVersion:
    """Entrada del read-set: el asset debe seguir en esta versión al commitear."""

    asset_type: AssetType
    asset_id: str
    version: int


@dataclass
class AssetChangeSet:
    """
    Unidad de escritura atómica.

    - folders / dashboards: snapshots modificados (su `version` es la leída).
    - deleted_*: ids a borrar (se valida la versión vía guards).
    - guards: assets leídos que no deben haber cambiado.
    """

    folders: List[Folder] = field(default_factory=list)
    dashboards: List[Dashboard] = field(default_factory=list)
    deleted_folder_ids: List[str] = field(default_factory=list)
    deleted_dashboard_ids: List[str] = field(default_factory=list)
    guards: List[AssetVersion] = field(default_factory=list)

    def guard(self, asset: Folder | Dashboard) -> None:
        self.guards.append(AssetVersion(asset.asset_type, asset.id, asset.version))

    @property
    def is_empty(self) -> bool:
        return not (
            self.folders
            or self.dashboards
            or self.deleted_folder_ids
            or self.deleted_dashboard_ids
        )


class AssetRepository(Protocol):
    """Storage de folders y dashboards de un workspace."""

    def get_folder(self, folder_id: str) -> Optional[Folder]: ...

    def get_dashboard(self, dashboard_id: str) -> Optional[Dashboard]: ...

    def list_folders(self) -> List[Folder]: ...

    def list_dashboards(self) -> List[Dashboard]: ...

    def list_child_folders(self, parent_id: str | None) -> List[Folder]: ...

    def list_dashboards_in_folder(self, folder_id: str | None) -> List[Dashboard]: ...

    def add_folder(self, folder: Folder) -> Folder: ...

    def add_dashboard(self, dashboard: Dashboard) -> Dashboard: ...

    def commit(self, change_set: AssetChangeSet) -> None: ...
