"""
===============================================================================
WORKSPACE OPERATION RESULTS (Shared Result / Error Models)
===============================================================================

Name:
    Operation Results

Business Goal:
    Proveer modelos compartidos de resultados y errores para los comandos del
    facade (share / move / delete / create / rename), con un contrato estable:
      - validaciones
      - autorización
      - recursos no encontrados
      - ciclos en la jerarquía
      - reglas RLS inválidas
      - conflictos de concurrencia (reintentables)

Why (Context / Intención):
    - Los comandos devuelven resultados tipados en lugar de lanzar excepciones
      hacia afuera: la UI / handlers REST mapean `code` a status codes.
    - Los engines internos sí lanzan excepciones tipadas; este módulo es el
      único punto de traducción.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Component:
    results models (module)

Responsibilities:
    - Definir AssetErrorCode.
    - Representar AssetError (code + message + error_id).
    - Representar OperationResult (asset opcional + error opcional).
    - Traducir WorkspaceEngineError -> AssetError.

Collaborators:
    - crosscutting.exceptions (taxonomía de errores)
    - domain.entities (Folder / Dashboard retornados)
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..crosscutting.exceptions import WorkspaceEngineError
from ..domain.entities import Asset


class AssetErrorCode(str, Enum):
    """
    Códigos de error estables para comandos sobre assets.

    - VALIDATION_ERROR: inputs inválidos o incompletos.
    - FORBIDDEN: actor sin permiso para la mutación.
    - NOT_FOUND: folder/dashboard inexistente.
    - CYCLE: el move crearía un ciclo.
    - CONFIG_ERROR: regla RLS mal formada.
    - CONFLICT: escritura concurrente; reintentar la operación completa.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CYCLE = "CYCLE"
    CONFIG_ERROR = "CONFIG_ERROR"
    CONFLICT = "CONFLICT"


@dataclass(frozen=True)
class AssetError:
    code: AssetErrorCode
    message: str
    error_id: str | None = None

    @property
    def retryable(self) -> bool:
        return self.code is AssetErrorCode.CONFLICT

    @classmethod
    def from_exception(cls, exc: WorkspaceEngineError) -> "AssetError":
        response = exc.to_response()
        try:
            code = AssetErrorCode(response.error_code)
        except ValueError:
            code = AssetErrorCode.VALIDATION_ERROR
        return cls(code=code, message=response.message, error_id=response.error_id)


@dataclass
class OperationResult:
    """
    Resultado de un comando.

    Contrato:
      - error is None => éxito (asset presente si el comando produce uno;
        assets lista todo lo tocado por un batch de sharing)
      - error != None => nada se aplicó
    """

    asset: Asset | None = None
    assets: tuple[Asset, ...] = ()
    error: AssetError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, exc: WorkspaceEngineError) -> "OperationResult":
        return cls(error=AssetError.from_exception(exc))
