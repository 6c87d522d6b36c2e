"""
===============================================================================
TARJETA CRC — domain/rls.py
===============================================================================

Módulo:
    Modelo de Reglas RLS (Row-Level Security)

Responsabilidades:
    - Representar condiciones como variantes tipadas por operador, de modo que
      los campos requeridos (value / values / value2) siempre estén presentes.
    - Construir condiciones desde datos sueltos (UI/JSON) validando operador y
      valores: `build_condition` es el único punto de entrada "dinámico".
    - Agrupar condiciones en reglas (AND/OR) y reglas en configs por share.

Colaboradores:
    - domain.rls_evaluator: evalúa estas estructuras contra una fila.
    - interfaces.schemas.sharing: parsea payloads y llama a build_condition.
    - crosscutting.exceptions.ConfigError

Notas:
    - Inmutables (frozen dataclasses): se comparten entre threads sin locks.
    - `allowed_page_ids` vacío significa "sin restricción de páginas".
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Union

from ..crosscutting.exceptions import ConfigError


class Combinator(str, Enum):
    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, raw: Any) -> "Combinator":
        """Default AND; "or" en cualquier casing -> OR; otro valor -> ConfigError."""
        if raw is None or str(raw).strip() == "":
            return cls.AND
        key = str(raw).strip().upper()
        try:
            return cls(key)
        except ValueError:
            raise ConfigError(f"Unknown RLS combinator: {raw!r}") from None


class Operator(str, Enum):
    """Operadores soportados (valores = wire format de la UI)."""

    EQ = "eq"
    NEQ = "neq"
    IN = "in"
    NOT_IN = "notIn"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"


COMPARISON_OPERATORS = frozenset(
    {Operator.EQ, Operator.NEQ, Operator.GT, Operator.GTE, Operator.LT, Operator.LTE}
)
SET_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN})
TEXT_OPERATORS = frozenset(
    {Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH}
)
NULL_OPERATORS = frozenset({Operator.IS_NULL, Operator.IS_NOT_NULL})


# ---------------------------------------------------------------------------
# Condition variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ComparisonCondition:
    """eq / neq / gt / gte / lt / lte contra un único valor."""

    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True, slots=True)
class SetCondition:
    """in / notIn contra un conjunto de valores."""

    field: str
    operator: Operator
    values: frozenset


@dataclass(frozen=True, slots=True)
class RangeCondition:
    """between inclusivo: value <= campo <= value2."""

    field: str
    value: Any
    value2: Any
    operator: Operator = Operator.BETWEEN


@dataclass(frozen=True, slots=True)
class TextCondition:
    """contains / startsWith / endsWith, case-sensitive."""

    field: str
    operator: Operator
    value: str


@dataclass(frozen=True, slots=True)
class NullCondition:
    """isNull / isNotNull (ignora cualquier valor)."""

    field: str
    operator: Operator


RLSCondition = Union[
    ComparisonCondition, SetCondition, RangeCondition, TextCondition, NullCondition
]


@dataclass(frozen=True, slots=True)
class RLSRule:
    combinator: Combinator = Combinator.AND
    conditions: tuple[RLSCondition, ...] = ()


@dataclass(frozen=True, slots=True)
class RLSConfig:
    """Config RLS de un share de dashboard: páginas permitidas + reglas."""

    allowed_page_ids: tuple[str, ...] = ()
    rules: tuple[RLSRule, ...] = ()

    @property
    def is_unrestricted(self) -> bool:
        return not self.allowed_page_ids and not self.rules


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def parse_operator(raw: Any) -> Operator:
    """Acepta el wire format exacto ("notIn", "startsWith", ...)."""
    if isinstance(raw, Operator):
        return raw
    try:
        return Operator(str(raw).strip())
    except ValueError:
        raise ConfigError(f"Unknown RLS operator: {raw!r}") from None


def build_condition(
    field: str,
    operator: Any,
    *,
    value: Any = None,
    values: Iterable[Any] | None = None,
    value2: Any = None,
) -> RLSCondition:
    """
    Construye la variante correcta según el operador.

    Reglas:
      - field vacío -> ConfigError.
      - operador desconocido -> ConfigError.
      - in/notIn: usa `values`; si no hay, acepta un `value` escalar como lista
        de un elemento. Sin ninguno -> ConfigError.
      - between: requiere value y value2.
      - isNull/isNotNull: ignora value/values/value2.
      - Solo None cuenta como valor faltante: "" es un valor (campo == "").
    """
    name = (field or "").strip()
    if not name:
        raise ConfigError("RLS condition requires a field name")

    op = parse_operator(operator)

    if op in NULL_OPERATORS:
        return NullCondition(field=name, operator=op)

    if op in SET_OPERATORS:
        items = [v for v in (values or []) if v is not None]
        if not items and value is not None:
            items = [value]
        if not items:
            raise ConfigError(f"RLS operator {op.value!r} requires 'values'")
        try:
            members = frozenset(items)
        except TypeError:
            raise ConfigError(
                f"RLS operator {op.value!r} requires scalar 'values'"
            ) from None
        return SetCondition(field=name, operator=op, values=members)

    if op is Operator.BETWEEN:
        if value is None or value2 is None:
            raise ConfigError("RLS operator 'between' requires 'value' and 'value2'")
        return RangeCondition(field=name, value=value, value2=value2)

    if value is None:
        raise ConfigError(f"RLS operator {op.value!r} requires 'value'")

    if op in TEXT_OPERATORS:
        return TextCondition(field=name, operator=op, value=str(value))

    return ComparisonCondition(field=name, operator=op, value=value)
