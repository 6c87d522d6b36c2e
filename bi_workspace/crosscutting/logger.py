# bi_workspace/crosscutting/logger.py
"""
===============================================================================
MÓDULO: Logger estructurado (JSON) del engine de acceso
===============================================================================

Objetivo
--------
Cada línea de log es un objeto JSON que se puede correlacionar por operación
(request_id / operation / actor_id) sin exponer datos de negocio: las filas
filtradas por RLS y los valores de las reglas nunca llegan al log.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  JSONFormatter + setup_logger()

Responsabilidades:
  - Serializar LogRecord -> JSON compacto
  - Completar el contexto de operación (context.get_context_dict)
  - Redactar filas / valores RLS / secretos y acotar colecciones grandes

Colaboradores:
  - bi_workspace/context.py (ContextVars)
  - crosscutting/config.py (LOG_LEVEL / LOG_JSON)
===============================================================================
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

from ..context import get_context_dict

# Atributos estándar de LogRecord: todo lo demás vino por `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

_REDACTED = "***REDACTADO***"


class _Redactor:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      _Redactor

    Responsabilidades:
      - Ocultar claves con datos de negocio (filas, valores de condiciones)
        o credenciales
      - Acotar strings, colecciones y anidamiento

    Colaboradores:
      - JSONFormatter
    ----------------------------------------------------------------------------
    """

    HIDDEN_KEYS = frozenset(
        {
            "rows",
            "row",
            "value",
            "values",
            "value2",
            "password",
            "secret",
            "token",
            "authorization",
        }
    )

    def __init__(self, max_str: int = 2_000, max_items: int = 50, max_depth: int = 4):
        self._max_str = max_str
        self._max_items = max_items
        self._max_depth = max_depth

    def scrub(self, value: Any, *, key: str | None = None, depth: int = 0) -> Any:
        if key is not None and key.lower() in self.HIDDEN_KEYS:
            return _REDACTED
        if depth > self._max_depth:
            return "…"

        if isinstance(value, str):
            return value if len(value) <= self._max_str else value[: self._max_str] + "…"

        if isinstance(value, dict):
            return {
                str(k): self.scrub(v, key=str(k), depth=depth + 1)
                for k, v in value.items()
            }

        if isinstance(value, (list, tuple, set, frozenset)):
            items = list(value)
            head = [self.scrub(v, depth=depth + 1) for v in items[: self._max_items]]
            hidden = len(items) - self._max_items
            return head + [f"…(+{hidden})"] if hidden > 0 else head

        if value is None or isinstance(value, (bool, int, float)):
            return value
        return str(value)


class JSONFormatter(logging.Formatter):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      JSONFormatter

    Responsabilidades:
      - LogRecord -> JSON (timestamp del record, nivel, logger, mensaje)
      - Agregar contexto de operación y campos `extra` saneados
      - Adjuntar tipo/mensaje/stacktrace de la excepción si la hay

    Colaboradores:
      - context.get_context_dict()
      - _Redactor
    ----------------------------------------------------------------------------
    """

    def __init__(self) -> None:
        super().__init__()
        self._redactor = _Redactor()

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(get_context_dict())

        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS:
                payload[key] = self._redactor.scrub(value, key=key)

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "stacktrace": traceback.format_exception(exc_type, exc, tb),
            }

        return json.dumps(payload, ensure_ascii=False, default=str, separators=(",", ":"))


def setup_logger(name: str = "bi-workspace") -> logging.Logger:
    """
    Logger del engine configurado desde Settings.

    Idempotente: un segundo llamado no agrega otro handler.
    """
    from .config import get_settings

    settings = get_settings()
    log = logging.getLogger(name)
    log.setLevel(getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO))

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        if settings.log_json:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
            )
        log.addHandler(handler)

    return log


logger = setup_logger()
