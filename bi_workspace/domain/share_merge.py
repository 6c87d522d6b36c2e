"""
===============================================================================
TARJETA CRC — domain/share_merge.py
===============================================================================

Módulo:
    Merge de Shares (upsert por identidad, función pura)

Responsabilidades:
    - Definir el batch de sharing (target + folder + N dashboards).
    - Calcular la nueva lista shared_with de UN asset: (actuales, cambio) -> nuevos.
    - Deduplicar listas crudas por identidad (última escritura gana).

Colaboradores:
    - domain.entities: SharePermission, Permission, TargetType
    - domain.identity: target_key
    - application.share_merge_engine: compone este merge en una transacción.

Notas:
    - No toca storage ni locks: la atomicidad vive en la capa application.
    - Los grants de otros targets conservan su orden original.
    - role == NONE revoca: se quita la entrada y no se agrega nada.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Sequence

from .entities import Permission, SharePermission, TargetType
from .identity import normalize_target_id, target_key
from .rls import RLSConfig


@dataclass(frozen=True, slots=True)
class ShareTarget:
    """Usuario o grupo al que aplica un batch."""

    target_type: TargetType
    target_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_id", normalize_target_id(self.target_id))

    @property
    def key(self) -> str:
        return target_key(self.target_type.value, self.target_id)


@dataclass(frozen=True)
class ShareBatch:
    """
    Cambio de sharing de un formulario: un target, un folder opcional y N dashboards.

    - folder_role se ignora si folder_id es None.
    - rls_by_dashboard aplica solo a dashboards presentes en dashboard_roles.
    """

    target: ShareTarget
    folder_id: str | None = None
    folder_role: Permission = Permission.NONE
    dashboard_roles: Mapping[str, Permission] = field(default_factory=dict)
    rls_by_dashboard: Mapping[str, RLSConfig] = field(default_factory=dict)

    @property
    def dashboard_ids(self) -> list[str]:
        return list(self.dashboard_roles.keys())


def merge_shares(
    current: Sequence[SharePermission],
    *,
    target: ShareTarget,
    role: Permission,
    shared_at: datetime,
    allowed_page_ids: Iterable[str] = (),
    rls: RLSConfig | None = None,
) -> tuple[SharePermission, ...]:
    """
    Upsert-by-identity de un target sobre la lista de un asset.

    Pasos:
      1. Quitar toda entrada cuya key coincida con la del target.
      2. Si role != NONE, agregar la entrada nueva al final.
    """
    key = target.key
    kept = [share for share in current if share.key != key]

    if role is Permission.NONE:
        return tuple(kept)

    kept.append(
        SharePermission(
            target_type=target.target_type,
            target_id=target.target_id,
            permission=role,
            shared_at=shared_at,
            allowed_page_ids=_unique(allowed_page_ids),
            rls=rls,
        )
    )
    return tuple(kept)


def dedupe_shares(shares: Iterable[SharePermission]) -> tuple[SharePermission, ...]:
    """Una entrada por key; la última gana y queda en la posición de la primera."""
    by_key: dict[str, SharePermission] = {}
    for share in shares:
        by_key[share.key] = share
    return tuple(by_key.values())


def _unique(page_ids: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for page_id in page_ids:
        cleaned = str(page_id or "").strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)
