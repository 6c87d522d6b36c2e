"""
===============================================================================
TARJETA CRC — schemas/__init__.py
===============================================================================

Módulo:
    Paquete de Schemas (DTOs Pydantic)

Reglas:
    - Schemas NO deben importar infraestructura.
    - Schemas NO deben ejecutar casos de uso.
    - Solo tipos, validación de input y conversión a dominio.
===============================================================================
"""

from .sharing import (
    RLSConditionPayload,
    RLSConfigPayload,
    RLSRulePayload,
    ShareBatchPayload,
    SharePermissionPayload,
    normalize_share_permissions,
    parse_rls_config,
    parse_share_batch,
)

__all__ = [
    "RLSConditionPayload",
    "RLSRulePayload",
    "RLSConfigPayload",
    "SharePermissionPayload",
    "ShareBatchPayload",
    "normalize_share_permissions",
    "parse_rls_config",
    "parse_share_batch",
]
