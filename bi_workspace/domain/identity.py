"""
===============================================================================
TARJETA CRC — domain/identity.py
===============================================================================

Módulo:
    Normalización de Identidades (usuarios / grupos)

Responsabilidades:
    - Canonicalizar identificadores para comparación (strip + lower).
    - Decidir si un candidato (target de un share, created_by) es el viewer.
    - Construir la clave de identidad `tipo:id` usada por el merge de shares.

Colaboradores:
    - domain.asset_policy: matching de shares contra el viewer.
    - domain.share_merge: upsert por identidad.

Notas:
    - Helper puro: no toca DB ni infraestructura.
    - El string vacío nunca matchea nada (ni siquiera otro vacío).
    - Un viewer puede identificarse indistintamente por id o por email.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

_GROUP = "group"
_USER = "user"


def normalize(raw: Any) -> str:
    """Trim + lower. None/vacío -> ""."""
    if raw is None:
        return ""
    return str(raw).strip().lower()


def normalize_target_type(raw: Any) -> str:
    """Todo lo que no sea "group" se trata como "user"."""
    return _GROUP if normalize(raw) == _GROUP else _USER


def normalize_target_id(raw: Any) -> str:
    """Forma de almacenamiento: trim, preserva mayúsculas."""
    if raw is None:
        return ""
    return str(raw).strip()


def is_current_user(candidate: Any, viewer_id: Any, viewer_email: Any) -> bool:
    """True si el candidato coincide con el id O con el email del viewer."""
    normalized = normalize(candidate)
    if not normalized:
        return False
    return normalized in {normalize(viewer_id), normalize(viewer_email)}


def target_key(target_type: Any, target_id: Any) -> str:
    """Clave de identidad de un target: `user:ana@acme.io`, `group:finance`."""
    return f"{normalize(target_type)}:{normalize(target_id)}"


@dataclass(frozen=True, slots=True)
class Viewer:
    """
    Identidad confiable provista por la capa de autenticación.

    El engine nunca autentica: solo autoriza contra estos datos.
    """

    id: str | None = None
    email: str | None = None
    group: str | None = None

    def is_user(self, candidate: Any) -> bool:
        return is_current_user(candidate, self.id, self.email)

    def matches_group(self, group_id: Any) -> bool:
        mine = normalize(self.group)
        return bool(mine) and mine == normalize(group_id)

    @property
    def display_id(self) -> str:
        """Identificador para logs (id, sino email)."""
        return normalize_target_id(self.id or self.email)
