# bi_workspace/crosscutting/exceptions.py
"""
===============================================================================
MÓDULO: Excepciones tipadas del engine (errores internos)
===============================================================================

Objetivo
--------
Tener excepciones internas coherentes, con:
- error_code estable
- error_id para correlación con logs
- message “humana” (sin filtrar datos de filas ni reglas completas)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  WorkspaceEngineError + subclases

Responsabilidades:
  - Estandarizar los errores de jerarquía, sharing y RLS
  - Generar error_id para rastreo
  - Marcar cuáles son reintentables (ConflictError)

Colaboradores:
  - application/results.py (mapea a OperationResult)
  - infrastructure/services/retry.py (reintenta ConflictError)
  - crosscutting/logger.py
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class ErrorResponse:
    """Estructura mínima para responder errores de forma consistente."""

    error_code: str
    message: str
    error_id: str

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }


class WorkspaceEngineError(Exception):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      WorkspaceEngineError

    Responsabilidades:
      - Base para errores internos del engine
      - Proveer error_code + error_id + message

    Colaboradores:
      - application/results.py
    ----------------------------------------------------------------------------
    """

    error_code: str = "WORKSPACE_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code, message=self.message, error_id=self.error_id
        )


class NotFoundError(WorkspaceEngineError):
    """Asset (folder/dashboard) o target inexistente."""

    error_code: str = "NOT_FOUND"

    def __init__(self, asset_type: str, asset_id: str | None, **kwargs):
        self.asset_type = asset_type
        self.asset_id = asset_id
        super().__init__(f"{asset_type.capitalize()} not found: {asset_id}", **kwargs)


class HierarchyError(WorkspaceEngineError):
    """Operación de jerarquía inválida (nombre vacío, profundidad, etc.)."""

    error_code: str = "VALIDATION_ERROR"


class CycleError(HierarchyError):
    """Un move crearía un ciclo en el árbol de folders."""

    error_code: str = "CYCLE"


class ShareError(WorkspaceEngineError):
    """Batch o payload de sharing mal formado."""

    error_code: str = "VALIDATION_ERROR"


class ConfigError(WorkspaceEngineError):
    """Regla RLS mal formada (operador desconocido, valor requerido faltante)."""

    error_code: str = "CONFIG_ERROR"


class ConflictError(WorkspaceEngineError):
    """Escritura concurrente detectada; el caller puede reintentar la unidad completa."""

    error_code: str = "CONFLICT"
    retryable: bool = True


class ForbiddenError(WorkspaceEngineError):
    """El actor no tiene permiso para mutar el asset."""

    error_code: str = "FORBIDDEN"
