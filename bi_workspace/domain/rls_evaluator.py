"""
===============================================================================
TARJETA CRC — domain/rls_evaluator.py
===============================================================================

Módulo:
    Evaluador de Reglas RLS (fila por fila)

Responsabilidades:
    - Decidir si una fila cumple una condición / regla / config RLS.
    - Comparar de forma "type-aware": números como números, fechas como fechas,
      booleanos como booleanos y el resto como string.
    - Fallar cerrado: ante datos ambiguos (campo null/ausente, tipos no
      comparables) la condición es False y la fila queda excluida.

Colaboradores:
    - domain.rls: variantes de condición, RLSRule, RLSConfig.
    - domain.asset_policy: arma el RLSConfig efectivo del viewer.
    - crosscutting.exceptions.ConfigError: estructura de regla inválida.

Reglas (intención):
    - AND: todas las condiciones; OR: al menos una.
    - Config: AND entre reglas; sin reglas = sin restricción.
    - isNull / isNotNull son los únicos operadores que aceptan el campo ausente.
    - Estructura desconocida -> ConfigError (nunca pasa en silencio).
===============================================================================
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping

from ..crosscutting.exceptions import ConfigError
from .rls import (
    Combinator,
    ComparisonCondition,
    NullCondition,
    Operator,
    RangeCondition,
    RLSCondition,
    RLSConfig,
    RLSRule,
    SetCondition,
    TextCondition,
)

Row = Mapping[str, Any]

_MISSING = object()
_TRUE_TOKENS = {"true", "1", "yes"}
_FALSE_TOKENS = {"false", "0", "no"}


# ---------------------------------------------------------------------------
# Coerción
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if _is_number(value):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    # NaN / Infinity no tienen orden útil: se tratan como no comparables.
    return parsed if parsed.is_finite() else None


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def _to_temporal(value: Any, like: date) -> date | None:
    """Parsea `value` al mismo tipo temporal que `like` (date vs datetime)."""
    if isinstance(like, datetime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=like.tzinfo)
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
        if parsed.tzinfo is None and like.tzinfo is not None:
            parsed = parsed.replace(tzinfo=like.tzinfo)
        return parsed
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _comparable_pair(field_value: Any, raw: Any) -> tuple[Any, Any] | None:
    """
    Lleva (campo, valor de regla) a un par ordenable o None si no se puede.

    Orden de intento: número, fecha (según el tipo del campo); si el campo es
    string se intenta número y luego fecha ISO en ambos lados.
    """
    if isinstance(field_value, bool):
        return None
    if _is_number(field_value):
        lhs, rhs = _to_decimal(field_value), _to_decimal(raw)
        return (lhs, rhs) if lhs is not None and rhs is not None else None
    if isinstance(field_value, date):
        rhs = _to_temporal(raw, field_value)
        return (field_value, rhs) if rhs is not None else None
    if isinstance(field_value, str):
        lhs_num, rhs_num = _to_decimal(field_value), _to_decimal(raw)
        if lhs_num is not None and rhs_num is not None:
            return lhs_num, rhs_num
        try:
            lhs_dt = datetime.fromisoformat(field_value.strip())
        except ValueError:
            return None
        rhs_dt = _to_temporal(raw, lhs_dt)
        return (lhs_dt, rhs_dt) if rhs_dt is not None else None
    return None


def _values_equal(field_value: Any, raw: Any) -> bool:
    if isinstance(field_value, bool):
        return _to_bool(raw) is field_value
    if _is_number(field_value) or isinstance(field_value, date):
        pair = _comparable_pair(field_value, raw)
        if pair is None:
            return False
        try:
            return pair[0] == pair[1]
        except (TypeError, ArithmeticError):
            return False
    return str(field_value) == str(raw)


def _ordered(field_value: Any, raw: Any, check: Callable[[Any, Any], bool]) -> bool:
    pair = _comparable_pair(field_value, raw)
    if pair is None:
        return False
    try:
        return check(pair[0], pair[1])
    except (TypeError, ArithmeticError):
        # naive vs aware datetimes, decimal signaling comparisons
        return False


_ORDERINGS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.GT: lambda a, b: a > b,
    Operator.GTE: lambda a, b: a >= b,
    Operator.LT: lambda a, b: a < b,
    Operator.LTE: lambda a, b: a <= b,
}

_TEXT_TESTS: dict[Operator, Callable[[str, str], bool]] = {
    Operator.CONTAINS: lambda text, needle: needle in text,
    Operator.STARTS_WITH: lambda text, prefix: text.startswith(prefix),
    Operator.ENDS_WITH: lambda text, suffix: text.endswith(suffix),
}


# ---------------------------------------------------------------------------
# API pública
# ---------------------------------------------------------------------------


def evaluate_condition(condition: RLSCondition, row: Row) -> bool:
    """Evalúa una condición hoja contra una fila."""
    if not isinstance(condition, _CONDITION_TYPES):
        raise ConfigError(f"Unsupported RLS condition: {type(condition).__name__}")

    field_value = row.get(condition.field, _MISSING)
    is_null = field_value is _MISSING or field_value is None

    if isinstance(condition, NullCondition):
        if condition.operator is Operator.IS_NULL:
            return is_null
        if condition.operator is Operator.IS_NOT_NULL:
            return not is_null
        raise ConfigError(f"Invalid operator for null check: {condition.operator!r}")

    if is_null:
        return False

    if isinstance(condition, ComparisonCondition):
        if condition.operator is Operator.EQ:
            return _values_equal(field_value, condition.value)
        if condition.operator is Operator.NEQ:
            return not _values_equal(field_value, condition.value)
        check = _ORDERINGS.get(condition.operator)
        if check is None:
            raise ConfigError(f"Invalid comparison operator: {condition.operator!r}")
        return _ordered(field_value, condition.value, check)

    if isinstance(condition, SetCondition):
        member = any(_values_equal(field_value, v) for v in condition.values)
        if condition.operator is Operator.IN:
            return member
        if condition.operator is Operator.NOT_IN:
            return not member
        raise ConfigError(f"Invalid set operator: {condition.operator!r}")

    if isinstance(condition, RangeCondition):
        return _ordered(
            field_value, condition.value, lambda a, b: a >= b
        ) and _ordered(field_value, condition.value2, lambda a, b: a <= b)

    if isinstance(condition, TextCondition):
        test = _TEXT_TESTS.get(condition.operator)
        if test is None:
            raise ConfigError(f"Invalid text operator: {condition.operator!r}")
        return test(str(field_value), condition.value)

    raise ConfigError(f"Unsupported RLS condition: {type(condition).__name__}")


_CONDITION_TYPES = (
    ComparisonCondition,
    SetCondition,
    RangeCondition,
    TextCondition,
    NullCondition,
)


def evaluate(rule: RLSRule, row: Row) -> bool:
    """Evalúa una regla con su combinador (AND vacío = True, OR vacío = False)."""
    if not isinstance(rule, RLSRule):
        raise ConfigError(f"Unsupported RLS rule: {type(rule).__name__}")
    if rule.combinator is Combinator.AND:
        return all(evaluate_condition(c, row) for c in rule.conditions)
    if rule.combinator is Combinator.OR:
        return any(evaluate_condition(c, row) for c in rule.conditions)
    raise ConfigError(f"Unknown RLS combinator: {rule.combinator!r}")


def evaluate_config(config: RLSConfig, row: Row) -> bool:
    """AND entre todas las reglas; sin reglas no hay restricción."""
    return all(evaluate(rule, row) for rule in config.rules)


def filter_rows(config: RLSConfig, rows: Iterable[Row]) -> list[Row]:
    """
    Filtra filas conservando orden.

    Un ConfigError aborta el filtrado completo (no hay resultados parciales).
    """
    if not config.rules:
        return list(rows)
    return [row for row in rows if evaluate_config(config, row)]
