"""
===============================================================================
TARJETA CRC — bi_workspace/context.py (Contexto por operación)
===============================================================================

Responsabilidades:
  - Mantener contexto “operation-scoped” usando ContextVars (thread/async-safe).
  - Permitir correlación de logs sin pasar parámetros por todo el stack.
  - Proveer helpers mínimos: operation_context(), get_context_dict().

Colaboradores:
  - application.workspace_facade: abre un contexto por comando.
  - crosscutting.logger: enriquece logs leyendo get_context_dict().

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
===============================================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Final, Iterator
from uuid import uuid4

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
operation_var: ContextVar[str] = ContextVar("operation", default="")
actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_OPERATION: Final[str] = "operation"
_CTX_ACTOR_ID: Final[str] = "actor_id"


@contextmanager
def operation_context(
    operation: str, *, actor_id: str = "", request_id: str = ""
) -> Iterator[str]:
    """
    Setea operación/actor/request_id mientras dura el bloque.

    Regla:
      - Si no llega request_id, se genera uno (los reintentos comparten el mismo).
      - Al salir se restauran los valores previos (contextos anidados).
    """
    rid = request_id or request_id_var.get() or str(uuid4())
    tokens = (
        request_id_var.set(rid),
        operation_var.set(operation or ""),
        actor_id_var.set(actor_id or ""),
    )
    try:
        yield rid
    finally:
        actor_id_var.reset(tokens[2])
        operation_var.reset(tokens[1])
        request_id_var.reset(tokens[0])


def get_context_dict() -> dict[str, str]:
    """Devuelve solo las claves con valor (logs más compactos)."""
    ctx = {
        _CTX_REQUEST_ID: request_id_var.get(),
        _CTX_OPERATION: operation_var.get(),
        _CTX_ACTOR_ID: actor_id_var.get(),
    }
    return {k: v for k, v in ctx.items() if v}
