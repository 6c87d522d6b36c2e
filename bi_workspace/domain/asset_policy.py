"""
===============================================================================
TARJETA CRC — domain/asset_policy.py
===============================================================================

Módulo:
    Política de Acceso a Assets (Folder / Dashboard)

Responsabilidades:
    - Resolver el permiso efectivo de un viewer sobre un asset.
    - Resolver el set de páginas visibles de un dashboard.
    - Armar el RLS efectivo (conjunción de reglas de todos los grants que matchean).
    - Ser 100% testeable: funciones puras, inputs explícitos.

Colaboradores:
    - domain.entities: Folder, Dashboard, Permission, SharePermission
    - domain.identity: Viewer, is_current_user
    - domain.rls: RLSConfig
    - application.workspace_facade: consume esta policy.

Reglas (intención):
    - Entre grants de usuario y de grupo gana el más permisivo.
    - El creador siempre tiene al menos `creator_permission` (no hay auto-lockout).
    - Sin grants ni creador: `ownerless_permission` (política explícita, no fallback).
    - Folder y dashboard se evalúan por separado: no hay herencia de grants.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from .entities import Asset, Dashboard, Permission, SharePermission, TargetType
from .identity import Viewer
from .rls import RLSConfig


@dataclass(frozen=True, slots=True)
class DefaultPermissionPolicy:
    """Permisos por defecto cuando no hay grants explícitos."""

    creator_permission: Permission = Permission.ADMIN
    ownerless_permission: Permission = Permission.NONE

    @classmethod
    def legacy(cls) -> "DefaultPermissionPolicy":
        """Assets sin creador son admin para todos (datos históricos)."""
        return cls(ownerless_permission=Permission.ADMIN)


_DEFAULT_POLICY = DefaultPermissionPolicy()


def _share_matches(share: SharePermission, viewer: Viewer) -> bool:
    if share.target_type is TargetType.GROUP:
        return viewer.matches_group(share.target_id)
    return viewer.is_user(share.target_id)


def matching_shares(asset: Asset, viewer: Viewer | None) -> list[SharePermission]:
    """Grants del asset que aplican al viewer (por usuario o por grupo)."""
    if viewer is None:
        return []
    return [share for share in asset.shared_with if _share_matches(share, viewer)]


def is_creator(asset: Asset, viewer: Viewer | None) -> bool:
    return viewer is not None and viewer.is_user(asset.created_by)


def resolve_permission(
    asset: Asset,
    viewer: Viewer | None,
    policy: DefaultPermissionPolicy = _DEFAULT_POLICY,
) -> Permission:
    """Permiso efectivo. Nunca lanza por "no permitido": devuelve NONE."""
    if viewer is None:
        return Permission.NONE

    matches = matching_shares(asset, viewer)
    best = Permission.highest(share.permission for share in matches)

    if is_creator(asset, viewer):
        return Permission.highest((best, policy.creator_permission))

    if not matches and not (asset.created_by or "").strip():
        return policy.ownerless_permission

    return best


def can_view(
    asset: Asset,
    viewer: Viewer | None,
    policy: DefaultPermissionPolicy = _DEFAULT_POLICY,
) -> bool:
    return resolve_permission(asset, viewer, policy).at_least(Permission.VIEW)


def can_edit(
    asset: Asset,
    viewer: Viewer | None,
    policy: DefaultPermissionPolicy = _DEFAULT_POLICY,
) -> bool:
    return resolve_permission(asset, viewer, policy).at_least(Permission.EDIT)


def can_share(
    asset: Asset,
    viewer: Viewer | None,
    policy: DefaultPermissionPolicy = _DEFAULT_POLICY,
) -> bool:
    """Admin efectivo o creador (aunque su grant explícito haya bajado)."""
    if is_creator(asset, viewer):
        return True
    return resolve_permission(asset, viewer, policy) is Permission.ADMIN


def visible_pages(
    dashboard: Dashboard,
    viewer: Viewer | None,
    policy: DefaultPermissionPolicy = _DEFAULT_POLICY,
) -> frozenset[str]:
    """
    Páginas visibles del dashboard para el viewer.

    Reglas:
      - Sin acceso -> vacío.
      - Admin / creador -> todas (la ownership pisa restricciones viejas).
      - Si algún grant que matchea no restringe páginas -> todas.
      - Si no, unión de allowed_page_ids de los grants que matchean.
      - Ids que el dashboard ya no tiene se descartan.
    """
    all_pages = dashboard.page_ids
    permission = resolve_permission(dashboard, viewer, policy)
    if permission is Permission.NONE:
        return frozenset()

    if permission is Permission.ADMIN or is_creator(dashboard, viewer):
        return all_pages

    matches = matching_shares(dashboard, viewer)
    if not matches:
        return all_pages

    allowed: set[str] = set()
    for share in matches:
        restriction = share.page_restriction
        if not restriction:
            return all_pages
        allowed.update(restriction)

    return frozenset(allowed) & all_pages


def effective_rls(dashboard: Dashboard, viewer: Viewer | None) -> RLSConfig:
    """
    RLS efectivo: todas las reglas de todos los grants que matchean (AND).

    La ownership no agrega reglas implícitas.
    """
    rules = []
    for share in matching_shares(dashboard, viewer):
        if share.rls is not None:
            rules.extend(share.rls.rules)
    return RLSConfig(rules=tuple(rules))
