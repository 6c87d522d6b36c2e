"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (Folder, Dashboard, Page, SharePermission)

Responsabilidades:
    - Definir estructuras centrales del workspace BI (sin infraestructura).
    - Definir el vocabulario de permisos (none < view < edit < admin) y sus alias.
    - Brindar helpers mínimos para mantener invariantes simples.

Colaboradores:
    - domain.repositories: persisten/recuperan estas entidades.
    - domain.asset_policy: resuelve permisos efectivos sobre ellas.
    - domain.share_merge: reemplaza la lista shared_with.

Principios:
    - Sin dependencias a DB/HTTP.
    - shared_with y pages son tuplas: un snapshot leído no se muta por accidente.
    - `version` lo administra el repositorio (concurrencia optimista).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from .identity import normalize, normalize_target_id, target_key
from .rls import RLSConfig


def _utcnow() -> datetime:
    """Fecha/hora UTC (helper interno)."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Vocabulario
# ---------------------------------------------------------------------------


_PERMISSION_RANK = {"none": 0, "view": 1, "edit": 2, "admin": 3}

# Alias aceptados por la API de sharing (formularios viejos / integraciones).
_PERMISSION_ALIASES = {
    "none": "none",
    "view": "view",
    "viewer": "view",
    "read": "view",
    "edit": "edit",
    "editor": "edit",
    "write": "edit",
    "admin": "admin",
    "owner": "admin",
}


class Permission(str, Enum):
    """Nivel de permiso. Comparar siempre por `rank`, nunca como string."""

    NONE = "none"
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _PERMISSION_RANK[self.value]

    def at_least(self, other: "Permission") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, raw: Any) -> Optional["Permission"]:
        """Resuelve alias (viewer/read/editor/write/owner). None si es inválido."""
        if isinstance(raw, Permission):
            return raw
        canonical = _PERMISSION_ALIASES.get(normalize(raw))
        return cls(canonical) if canonical else None

    @classmethod
    def highest(cls, permissions: Iterable["Permission"]) -> "Permission":
        best = cls.NONE
        for permission in permissions:
            if permission.rank > best.rank:
                best = permission
        return best


class TargetType(str, Enum):
    USER = "user"
    GROUP = "group"

    @classmethod
    def parse(cls, raw: Any) -> "TargetType":
        """Todo lo que no sea "group" es USER (mismo criterio que la API)."""
        if isinstance(raw, TargetType):
            return raw
        return cls.GROUP if normalize(raw) == cls.GROUP.value else cls.USER


class AssetType(str, Enum):
    FOLDER = "folder"
    DASHBOARD = "dashboard"


# ---------------------------------------------------------------------------
# Share
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SharePermission:
    """
    Grant: liga un target (usuario o grupo) a un nivel de permiso sobre un asset.

    Nota:
      - allowed_page_ids / rls solo tienen sentido en dashboards.
      - A lo sumo un grant activo por (asset, key): lo garantiza el merge.
    """

    target_type: TargetType
    target_id: str
    permission: Permission
    shared_at: datetime = field(default_factory=_utcnow)
    allowed_page_ids: tuple[str, ...] = ()
    rls: RLSConfig | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_id", normalize_target_id(self.target_id))

    @property
    def key(self) -> str:
        return target_key(self.target_type.value, self.target_id)

    @property
    def page_restriction(self) -> tuple[str, ...]:
        """Páginas permitidas; vacío = sin restricción."""
        if self.allowed_page_ids:
            return self.allowed_page_ids
        if self.rls is not None:
            return self.rls.allowed_page_ids
        return ()


# ---------------------------------------------------------------------------
# Folder / Dashboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Page:
    id: str
    title: str | None = None


@dataclass
class Folder:
    """Folder: contenedor jerárquico de dashboards y subfolders."""

    id: str
    name: str
    parent_id: Optional[str] = None
    created_by: Optional[str] = None
    shared_with: tuple[SharePermission, ...] = ()

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def asset_type(self) -> AssetType:
        return AssetType.FOLDER

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class Dashboard:
    """Dashboard: asset compartible con páginas; sin folder_id queda "unfiled"."""

    id: str
    title: str
    folder_id: Optional[str] = None
    created_by: Optional[str] = None
    shared_with: tuple[SharePermission, ...] = ()
    pages: tuple[Page, ...] = ()

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def asset_type(self) -> AssetType:
        return AssetType.DASHBOARD

    @property
    def is_unfiled(self) -> bool:
        return self.folder_id is None

    @property
    def page_ids(self) -> frozenset[str]:
        return frozenset(page.id for page in self.pages)


Asset = Union[Folder, Dashboard]
