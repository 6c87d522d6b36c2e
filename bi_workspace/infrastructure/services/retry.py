"""bi_workspace.infrastructure.services.retry

Name: Conflict Retry Helper with Exponential Backoff + Jitter

Qué es
------
Utilidad de **resiliencia** para unidades de trabajo que mutan assets.
Implementa:
  - Clasificación de errores: **retryable** (ConflictError) vs **permanent**
  - Decorator de `tenacity` para aplicar **exponential backoff + jitter**
  - Logging estructurado de intentos de retry

Patrones de diseño
------------------
- **Decorator**: `create_conflict_retry()` retorna un decorator.
- **Policy Object**: `is_retryable_error()` es la política de clasificación.
- **Fail-fast**: NotFound / Cycle / Config / Forbidden no se reintentan.

CRC (Component Card)
--------------------
Component: conflict retry helper
Responsibilities:
  - Decidir qué errores son reintentables
  - Proveer un decorator estándar (tenacity) con backoff+jitter
  - Loguear intentos con el contexto de operación
Collaborators:
  - tenacity (motor de retry)
  - crosscutting.config.get_settings (attempts/delays)
  - crosscutting.logger
Constraints:
  - La función decorada debe releer el estado en cada intento (unidad completa)
  - reraise=True: el último ConflictError llega al caller
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...crosscutting.config import get_settings
from ...crosscutting.exceptions import WorkspaceEngineError
from ...crosscutting.logger import logger

T = TypeVar("T")


def is_retryable_error(exception: BaseException) -> bool:
    """Solo los errores del engine marcados `retryable` (ConflictError)."""
    return isinstance(exception, WorkspaceEngineError) and exception.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    """Loguea cada intento antes de dormir (before_sleep)."""
    fn = getattr(retry_state, "fn", None)
    fn_name = getattr(fn, "__name__", "unknown")
    wait_time = (
        retry_state.next_action.sleep
        if getattr(retry_state, "next_action", None) is not None
        else 0
    )

    exc: Optional[BaseException] = None
    if retry_state.outcome is not None:
        exc = retry_state.outcome.exception()

    logger.warning(
        "Retrying conflicting unit of work",
        extra={
            "unit_of_work": fn_name,
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(float(wait_time), 3),
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_conflict_retry(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Crea un decorator `tenacity` con exponential backoff + jitter.

    Config:
      - stop: `stop_after_attempt(max_attempts)`
      - wait: `wait_exponential_jitter(initial=base_delay, max=max_delay)`
      - retry: solo si `is_retryable_error(exception)`
      - before_sleep: `_log_retry`
      - reraise: True (propaga la última excepción)
    """
    settings = get_settings()
    attempts = max_attempts if max_attempts is not None else settings.conflict_retry_max_attempts
    initial = base_delay if base_delay is not None else settings.conflict_retry_base_delay_seconds
    ceiling = max_delay if max_delay is not None else settings.conflict_retry_max_delay_seconds

    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=initial, max=ceiling, jitter=initial),
        retry=retry_if_exception(is_retryable_error),
        before_sleep=_log_retry,
        reraise=True,
    )
