"""
Condition trees for search queries.

Leaf predicates:
- Equals   (text phrase, tag, number, boolean, date)
- Range    (number, date)
- Contains (tag membership)
- Matches  (full-text terms)
- Within   (geo radius)
- VectorKNN (nearest neighbours of a query vector)

Combinators:
- And, Or, Not

Every builder function checks the field's declared type against the
predicate kind and raises SchemaMismatchError straight away, so a bad
query never reaches the store.

Example:
    >>> price = schema["price"]
    >>> name = schema["name"]
    >>> node = and_(range_(price, 10, 100), matches(name, "phone cover"))
    >>>
    >>> # Operators work too
    >>> node = equals(schema["inStock"], True) & ~contains(schema["tags"], "sale")
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterator, Optional, Sequence, Tuple, Union

from ..core.exceptions import SchemaMismatchError, ValidationError
from ..core.schema import FieldDescriptor, FieldType
from ..core.vector import Vector, encode_vector
from ..utils.validation import validate_k


GEO_UNITS = ("m", "km", "mi", "ft")

Number = Union[int, float]


class ConditionNode:
    """Base class for all condition nodes."""

    def __and__(self, other: "ConditionNode") -> "And":
        """Combine with AND."""
        if isinstance(self, And):
            return And(self.children + (other,))
        return And((self, other))

    def __or__(self, other: "ConditionNode") -> "Or":
        """Combine with OR."""
        if isinstance(self, Or):
            return Or(self.children + (other,))
        return Or((self, other))

    def __invert__(self) -> "Not":
        """Negate with NOT."""
        return Not(self)


# =============================================================================
# LEAF PREDICATES
# =============================================================================

@dataclass(frozen=True)
class Equals(ConditionNode):
    """Field equals a single value."""
    field: FieldDescriptor
    value: Any


@dataclass(frozen=True)
class Range(ConditionNode):
    """
    Numeric or date range.

    A bound of None is open (``-inf`` / ``+inf``).
    """
    field: FieldDescriptor
    lower: Optional[Number] = None
    upper: Optional[Number] = None
    lower_inclusive: bool = True
    upper_inclusive: bool = True


@dataclass(frozen=True)
class Contains(ConditionNode):
    """Tag field contains one (or any) of the given values."""
    field: FieldDescriptor
    values: Tuple[str, ...]


@dataclass(frozen=True)
class Matches(ConditionNode):
    """Full-text match; ``exact`` matches the whole phrase."""
    field: FieldDescriptor
    pattern: str
    exact: bool = False


@dataclass(frozen=True)
class Within(ConditionNode):
    """Geo field lies within ``radius`` of a point."""
    field: FieldDescriptor
    longitude: float
    latitude: float
    radius: float
    unit: str = "mi"


@dataclass(frozen=True)
class VectorKNN(ConditionNode):
    """
    K nearest neighbours of ``vector`` in a vector field.

    ``vector`` holds the already-encoded bytes. ``score_alias`` names
    the distance column returned by the store; None uses the
    configured default.
    """
    field: FieldDescriptor
    k: int
    vector: bytes
    score_alias: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"VectorKNN(field={self.field.name!r}, k={self.k}, "
            f"vector=<{len(self.vector)} bytes>)"
        )


# =============================================================================
# COMBINATORS
# =============================================================================

@dataclass(frozen=True)
class And(ConditionNode):
    """Logical AND of child conditions, in order."""
    children: Tuple[ConditionNode, ...] = ()


@dataclass(frozen=True)
class Or(ConditionNode):
    """Logical OR of child conditions, in order."""
    children: Tuple[ConditionNode, ...] = ()


@dataclass(frozen=True)
class Not(ConditionNode):
    """Logical NOT of a condition."""
    child: ConditionNode


# =============================================================================
# BUILDERS
# =============================================================================

def _require(field: FieldDescriptor, predicate: str, *allowed: FieldType) -> None:
    if not isinstance(field, FieldDescriptor):
        raise TypeError(f"Expected FieldDescriptor, got {type(field).__name__}")
    if field.type not in allowed:
        names = ", ".join(t.value for t in allowed)
        raise SchemaMismatchError(
            f"'{predicate}' cannot be used on {field.type.value} field '{field.name}' "
            f"(allowed: {names})"
        )


def _require_number(field: FieldDescriptor, value: Any) -> Number:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(
            f"Field '{field.name}' expects a number, got {type(value).__name__}"
        )
    value = int(value) if isinstance(value, numbers.Integral) else float(value)
    if isinstance(value, float) and math.isnan(value):
        raise ValidationError(f"NaN is not a valid value for field '{field.name}'")
    return value


def to_epoch(value: Any) -> Number:
    """
    Convert a date-like value to epoch seconds.

    Accepts datetimes (naive ones are taken as UTC), dates, ISO 8601
    strings and plain numbers.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Cannot use {value!r} as a date")

    if isinstance(value, numbers.Real):
        return int(value) if isinstance(value, numbers.Integral) else float(value)

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"Invalid date string: {value!r}") from e

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        epoch = value.timestamp()
        return int(epoch) if epoch.is_integer() else epoch

    if isinstance(value, date):
        return int(datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp())

    raise ValidationError(f"Cannot use {type(value).__name__} as a date")


def _bound(field: FieldDescriptor, value: Any) -> Optional[Number]:
    if value is None:
        return None
    if field.type is FieldType.DATE:
        return to_epoch(value)
    return _require_number(field, value)


def equals(field: FieldDescriptor, value: Any) -> Equals:
    """Field equals ``value``."""
    _require(
        field, "equals",
        FieldType.TEXT, FieldType.TAG, FieldType.NUMBER, FieldType.BOOLEAN, FieldType.DATE,
    )

    if field.type is FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise ValidationError(
                f"Field '{field.name}' expects a boolean, got {type(value).__name__}"
            )
    elif field.type is FieldType.NUMBER:
        value = _require_number(field, value)
    elif field.type is FieldType.DATE:
        value = to_epoch(value)
    elif field.type is FieldType.TAG:
        if isinstance(value, bool) or not isinstance(value, (str, numbers.Real)):
            raise ValidationError(
                f"Field '{field.name}' expects a string, got {type(value).__name__}"
            )
        value = str(value)
        if not value:
            raise ValidationError(f"Field '{field.name}' cannot equal an empty tag")
    elif not isinstance(value, str):
        raise ValidationError(
            f"Field '{field.name}' expects a string, got {type(value).__name__}"
        )
    elif not value.strip():
        raise ValidationError(f"Field '{field.name}' cannot equal an empty phrase")

    return Equals(field, value)


def range_(
    field: FieldDescriptor,
    minimum: Any = None,
    maximum: Any = None,
    min_inclusive: bool = True,
    max_inclusive: bool = True,
) -> Range:
    """Field lies between ``minimum`` and ``maximum`` (None = unbounded)."""
    _require(field, "range", FieldType.NUMBER, FieldType.DATE)

    lower = _bound(field, minimum)
    upper = _bound(field, maximum)

    if lower is not None and upper is not None and lower > upper:
        raise ValidationError(
            f"Empty range for field '{field.name}': {minimum!r} > {maximum!r}"
        )

    return Range(field, lower, upper, min_inclusive, max_inclusive)


def contains(field: FieldDescriptor, value: str) -> Contains:
    """Tag field contains ``value``."""
    return contains_any(field, [value])


def contains_any(field: FieldDescriptor, values: Sequence[str]) -> Contains:
    """Tag field contains at least one of ``values``."""
    _require(field, "contains", FieldType.TAG)

    if isinstance(values, str):
        values = [values]

    values = tuple(str(v) for v in values)
    if not values:
        raise ValidationError(f"contains on '{field.name}' needs at least one value")
    if not all(values):
        raise ValidationError(f"contains on '{field.name}' got an empty tag value")

    return Contains(field, values)


def matches(field: FieldDescriptor, pattern: str, exact: bool = False) -> Matches:
    """Full-text field matches ``pattern``."""
    _require(field, "matches", FieldType.TEXT)

    if not isinstance(pattern, str) or not pattern.strip():
        raise ValidationError(f"matches on '{field.name}' needs a non-empty string")

    return Matches(field, pattern, exact)


def within(
    field: FieldDescriptor,
    longitude: float,
    latitude: float,
    radius: float,
    unit: str = "mi",
) -> Within:
    """Geo field lies within ``radius`` ``unit`` of (longitude, latitude)."""
    _require(field, "within", FieldType.GEO)

    unit = unit.lower()
    if unit not in GEO_UNITS:
        raise ValidationError(f"Unknown distance unit {unit!r} (use one of {GEO_UNITS})")

    if not -180.0 <= longitude <= 180.0:
        raise ValidationError(f"Longitude out of range: {longitude}")
    if not -85.05112878 <= latitude <= 85.05112878:
        raise ValidationError(f"Latitude out of range: {latitude}")
    if radius < 0:
        raise ValidationError(f"Radius must be non-negative, got {radius}")

    return Within(field, float(longitude), float(latitude), float(radius), unit)


def vector_knn(
    field: FieldDescriptor,
    k: int,
    query_vector: Vector,
    score_alias: Optional[str] = None,
) -> VectorKNN:
    """
    K nearest neighbours of ``query_vector`` in a vector field.

    Raises:
        SchemaMismatchError: If ``field`` is not a vector field
        VectorDimensionMismatchError: If the vector's byte length doesn't
            match the field's declared dimension
    """
    _require(field, "vector_knn", FieldType.VECTOR)
    validate_k(k)

    blob = encode_vector(query_vector, field.vector_params)
    return VectorKNN(field, k, blob, score_alias)


def and_(*nodes: ConditionNode) -> And:
    """All of ``nodes`` hold."""
    return And(_children(nodes))


def or_(*nodes: ConditionNode) -> Or:
    """At least one of ``nodes`` holds."""
    return Or(_children(nodes))


def not_(node: ConditionNode) -> Not:
    """``node`` does not hold."""
    if not isinstance(node, ConditionNode):
        raise TypeError(f"Expected ConditionNode, got {type(node).__name__}")
    return Not(node)


def _children(nodes: Sequence[ConditionNode]) -> Tuple[ConditionNode, ...]:
    for node in nodes:
        if not isinstance(node, ConditionNode):
            raise TypeError(f"Expected ConditionNode, got {type(node).__name__}")
    return tuple(nodes)


def walk(node: Optional[ConditionNode]) -> Iterator[ConditionNode]:
    """Depth-first, left-to-right traversal of a condition tree."""
    if node is None:
        return
    yield node
    if isinstance(node, (And, Or)):
        for child in node.children:
            yield from walk(child)
    elif isinstance(node, Not):
        yield from walk(node.child)


def is_empty(node: Optional[ConditionNode]) -> bool:
    """True if the tree places no constraint at all."""
    if node is None:
        return True
    if isinstance(node, And):
        return all(is_empty(child) for child in node.children)
    return False
