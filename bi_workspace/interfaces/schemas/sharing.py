"""
===============================================================================
TARJETA CRC — interfaces/schemas/sharing.py
===============================================================================

Módulo:
    Schemas de Sharing / RLS (DTOs Pydantic)

Responsabilidades:
    - Aceptar el JSON camelCase que manda el formulario de sharing.
    - Normalizar entradas sueltas (alias de permisos, userId/groupId, páginas
      repetidas, `values` escalar).
    - Convertir a objetos de dominio (ShareBatch, SharePermission, RLSConfig).
    - Nunca dejar escapar errores de pydantic: ShareError / ConfigError.

Colaboradores:
    - domain.rls.build_condition (variantes tipadas por operador)
    - domain.share_merge.ShareBatch / dedupe_shares
    - domain.entities.Permission / TargetType

Reglas:
    - Schemas NO ejecutan casos de uso ni tocan storage.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ...crosscutting.exceptions import ConfigError, ShareError
from ...domain.entities import Permission, SharePermission, TargetType
from ...domain.identity import normalize_target_id
from ...domain.rls import Combinator, RLSConfig, RLSRule, build_condition
from ...domain.share_merge import ShareBatch, ShareTarget, dedupe_shares


def _page_ids(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    ids: list[str] = []
    for raw in value:
        cleaned = str(raw if raw is not None else "").strip()
        if cleaned and cleaned not in ids:
            ids.append(cleaned)
    return ids


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# -----------------------------------------------------------------------------
# RLS
# -----------------------------------------------------------------------------
class RLSConditionPayload(_Payload):
    """Condición hoja tal como llega del editor de reglas."""

    field: str = ""
    operator: Any = None
    value: Any = None
    value_list: list[Any] | None = Field(default=None, alias="values")
    value2: Any = None

    @field_validator("value_list", mode="before")
    @classmethod
    def scalar_values_as_list(cls, v: Any) -> Any:
        if v is None or isinstance(v, list):
            return v
        if isinstance(v, (tuple, set, frozenset)):
            return list(v)
        return [v]

    def to_domain(self):
        return build_condition(
            self.field,
            self.operator,
            value=self.value,
            values=self.value_list,
            value2=self.value2,
        )


class RLSRulePayload(_Payload):
    combinator: Any = "AND"
    conditions: list[RLSConditionPayload] = Field(default_factory=list)

    def to_domain(self) -> RLSRule:
        return RLSRule(
            combinator=Combinator.parse(self.combinator or Combinator.AND.value),
            conditions=tuple(c.to_domain() for c in self.conditions),
        )


class RLSConfigPayload(_Payload):
    allowed_page_ids: list[str] = Field(default_factory=list, alias="allowedPageIds")
    rules: list[RLSRulePayload] = Field(default_factory=list)

    @field_validator("allowed_page_ids", mode="before")
    @classmethod
    def normalize_page_ids(cls, v: Any) -> list[str]:
        return _page_ids(v)

    def to_domain(self) -> RLSConfig:
        return RLSConfig(
            allowed_page_ids=tuple(self.allowed_page_ids),
            rules=tuple(rule.to_domain() for rule in self.rules),
        )


def parse_rls_config(raw: Mapping[str, Any] | None) -> RLSConfig:
    """JSON -> RLSConfig. Estructura inválida -> ConfigError."""
    if raw is None:
        return RLSConfig()
    try:
        payload = RLSConfigPayload.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError("Invalid RLS configuration payload.", original_error=exc) from exc
    return payload.to_domain()


# -----------------------------------------------------------------------------
# Share entries
# -----------------------------------------------------------------------------
class SharePermissionPayload(_Payload):
    """
    Entrada de shared_with en formato API.

    El target se toma de targetId; si falta, de groupId (grupos) o userId (usuarios).
    """

    target_type: Any = Field(default="user", alias="targetType")
    target_id: Any = Field(default=None, alias="targetId")
    user_id: Any = Field(default=None, alias="userId")
    group_id: Any = Field(default=None, alias="groupId")
    permission: Any = None
    allowed_page_ids: list[str] = Field(default_factory=list, alias="allowedPageIds")
    rls: RLSConfigPayload | None = None
    shared_at: datetime | None = Field(default=None, alias="sharedAt")

    @field_validator("allowed_page_ids", mode="before")
    @classmethod
    def normalize_page_ids(cls, v: Any) -> list[str]:
        return _page_ids(v)

    @field_validator("rls", mode="before")
    @classmethod
    def rls_must_be_object(cls, v: Any) -> Any:
        return v if isinstance(v, Mapping) else None

    def to_domain(self, index: int = 0) -> SharePermission:
        target_type = TargetType.parse(self.target_type)
        fallback = self.group_id if target_type is TargetType.GROUP else self.user_id
        target_id = normalize_target_id(self.target_id or fallback)
        if not target_id:
            raise ShareError(f"permissions[{index}].targetId is required")

        permission = Permission.parse(self.permission)
        if permission is None or permission is Permission.NONE:
            raise ShareError(f"permissions[{index}].permission is invalid")

        rls = self.rls.to_domain() if self.rls is not None else None
        extra = {"shared_at": self.shared_at} if self.shared_at is not None else {}
        return SharePermission(
            target_type=target_type,
            target_id=target_id,
            permission=permission,
            allowed_page_ids=tuple(self.allowed_page_ids),
            rls=rls,
            **extra,
        )


def normalize_share_permissions(raw: Any) -> tuple[SharePermission, ...]:
    """
    Lista cruda de shares -> lista de dominio sin duplicados.

    - Una entrada por (tipo, id normalizado); la última gana.
    - Errores reportan el índice ofensivo: `permissions[2].permission is invalid`.
    """
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise ShareError("permissions must be an array")

    shares: list[SharePermission] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ShareError(f"permissions[{index}] must be an object")
        try:
            payload = SharePermissionPayload.model_validate(entry)
        except ValidationError as exc:
            raise ShareError(
                f"permissions[{index}] is invalid", original_error=exc
            ) from exc
        shares.append(payload.to_domain(index))

    return dedupe_shares(shares)


# -----------------------------------------------------------------------------
# Share batch (formulario)
# -----------------------------------------------------------------------------
class ShareBatchPayload(_Payload):
    target_type: Any = Field(default="user", alias="targetType")
    target_id: Any = Field(default=None, alias="targetId")
    folder_id: str | None = Field(default=None, alias="folderId")
    folder_role: Any = Field(default="none", alias="folderRole")
    dashboard_roles: dict[str, Any] = Field(default_factory=dict, alias="dashboardRoles")
    dashboard_rls: dict[str, RLSConfigPayload] = Field(
        default_factory=dict, alias="dashboardRLS"
    )

    @staticmethod
    def _role(raw: Any, label: str) -> Permission:
        role = Permission.parse(raw if raw is not None else Permission.NONE.value)
        if role is None:
            raise ShareError(f"{label} is invalid: {raw!r}")
        return role

    def to_domain(self) -> ShareBatch:
        target_id = normalize_target_id(self.target_id)
        if not target_id:
            raise ShareError("targetId is required")

        roles = {
            dashboard_id: self._role(role, f"dashboardRoles[{dashboard_id}]")
            for dashboard_id, role in self.dashboard_roles.items()
        }
        rls_by_dashboard = {
            dashboard_id: config.to_domain()
            for dashboard_id, config in self.dashboard_rls.items()
            if dashboard_id in roles
        }
        return ShareBatch(
            target=ShareTarget(TargetType.parse(self.target_type), target_id),
            folder_id=(self.folder_id or "").strip() or None,
            folder_role=self._role(self.folder_role, "folderRole"),
            dashboard_roles=roles,
            rls_by_dashboard=rls_by_dashboard,
        )


def parse_share_batch(raw: Mapping[str, Any]) -> ShareBatch:
    """JSON del formulario -> ShareBatch. ShareError / ConfigError, nunca pydantic."""
    try:
        payload = ShareBatchPayload.model_validate(raw)
    except ValidationError as exc:
        raise ShareError("Invalid share batch payload.", original_error=exc) from exc
    return payload.to_domain()
