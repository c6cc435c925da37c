"""
Query compilation for omsearch.

Translates a condition tree plus execution options into a QueryPlan:
the query string for the store's search command, the PARAMS block and
the RETURN / SORTBY / LIMIT / DIALECT options.

Emission table (dialect 2):

    empty tree              *
    Equals    TAG           @f:{value}
    Equals    TEXT          @f:"phrase"
    Equals    NUMBER, DATE  @f:[v v]
    Equals    BOOLEAN       @f:{1} | @f:{0}       (JSON: {true} | {false})
    Range     NUMBER, DATE  @f:[lo hi]            exclusive bound: (v, open: -inf / +inf
    Contains  TAG           @f:{a|b}
    Matches   TEXT          @f:(terms)            exact: @f:"phrase"
    Within    GEO           @f:[lon lat radius unit]
    And                     a b                   parenthesised when nested
    Or                      (a | b)
    Not                     -(a)
    VectorKNN VECTOR        (prefilter)=>[KNN k @f $query_vector AS __f_score]

Tag and text values have the query language's punctuation escaped with a
backslash. Tag values also have whitespace escaped.

Example:
    >>> compiler = QueryCompiler(schema)
    >>> plan = compiler.compile(
    ...     range_(schema["price"], 10, None),
    ...     SearchOptions(sort_by="price", offset=0, count=5),
    ... )
    >>> plan.query_string
    '@price:[10 +inf]'
"""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .conditions import (
    ConditionNode,
    Equals,
    Range,
    Contains,
    Matches,
    Within,
    VectorKNN,
    And,
    Or,
    Not,
    is_empty,
    walk,
)
from ..config import Settings
from ..core.exceptions import (
    InvalidQueryError,
    SchemaError,
    SchemaMismatchError,
    ValidationError,
)
from ..core.schema import FieldDescriptor, FieldType, Schema
from ..core.vector import check_vector_length
from ..utils.logging import get_logger
from ..utils.validation import validate_page


logger = get_logger(__name__)

WILDCARD = "*"

SORT_DIRECTIONS = ("ASC", "DESC")

# Predicate kind -> field types it may target
ALLOWED_TYPES: Dict[type, Tuple[FieldType, ...]] = {
    Equals: (FieldType.TEXT, FieldType.TAG, FieldType.NUMBER, FieldType.BOOLEAN, FieldType.DATE),
    Range: (FieldType.NUMBER, FieldType.DATE),
    Contains: (FieldType.TAG,),
    Matches: (FieldType.TEXT,),
    Within: (FieldType.GEO,),
    VectorKNN: (FieldType.VECTOR,),
}

UNSORTABLE_TYPES = (FieldType.GEO, FieldType.VECTOR)

_TEXT_ESCAPE = re.compile(r"[,.<>{}\[\]\"':;!@#$%^&*()\-+=~|/\\]")
_TAG_ESCAPE = re.compile(r"[,.<>{}\[\]\"':;!@#$%^&*()\-+=~|/\\\s]")


def escape_tag(value: str) -> str:
    """Escape a tag value, including whitespace."""
    return _TAG_ESCAPE.sub(lambda m: "\\" + m.group(0), value)


def escape_text(value: str) -> str:
    """Escape punctuation in full-text terms, keeping word spacing."""
    return _TEXT_ESCAPE.sub(lambda m: "\\" + m.group(0), value)


def format_number(value: Any) -> str:
    """Render a number for a range clause."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidQueryError(f"Expected a number, got {type(value).__name__}")
    if isinstance(value, numbers.Integral):
        return str(int(value))
    value = float(value)
    if math.isnan(value):
        raise InvalidQueryError("NaN cannot be used in a query")
    if math.isinf(value):
        return "+inf" if value > 0 else "-inf"
    return repr(value)


@dataclass(frozen=True)
class SortBy:
    """Sort clause (store-side field name)."""
    field: str
    direction: str = "ASC"


@dataclass(frozen=True)
class Limit:
    """Pagination window."""
    offset: int
    size: int


@dataclass(frozen=True)
class SearchOptions:
    """
    Execution options, compiled independently of the condition tree.

    Attributes:
        offset: First result to return
        count: Page size; None leaves the store's default
        sort_by: Declared field name (or a KNN score alias) to sort by
        sort_direction: ASC or DESC
        return_fields: Declared field names to return. None returns
            every declared field; an empty sequence returns keys only.
    """
    offset: int = 0
    count: Optional[int] = None
    sort_by: Optional[str] = None
    sort_direction: str = "ASC"
    return_fields: Optional[Sequence[str]] = None


@dataclass(frozen=True)
class QueryPlan:
    """
    Compiled, ready-to-execute query.

    Plans are immutable and compiled fresh for every execution.
    """

    index_name: str
    query_string: str
    params: Mapping[str, bytes] = field(default_factory=lambda: MappingProxyType({}))
    return_fields: Tuple[str, ...] = ()
    sort_by: Optional[SortBy] = None
    limit: Optional[Limit] = None
    dialect: int = 2
    score_fields: Tuple[str, ...] = ()

    def to_options(self) -> Dict[str, Any]:
        """Options block for the transport's search call."""
        options: Dict[str, Any] = {}

        if self.params:
            options["PARAMS"] = dict(self.params)

        options["RETURN"] = list(self.return_fields)

        if self.sort_by is not None:
            options["SORTBY"] = {"BY": self.sort_by.field, "DIRECTION": self.sort_by.direction}

        if self.limit is not None:
            options["LIMIT"] = {"from": self.limit.offset, "size": self.limit.size}

        options["DIALECT"] = self.dialect
        return options

    def explain(self) -> str:
        """Generate explain output."""
        lines = [
            "Query Plan",
            "=" * 40,
            f"Index: {self.index_name}",
            f"Query: {self.query_string}",
            f"Return: {', '.join(self.return_fields) or '(keys only)'}",
            f"Dialect: {self.dialect}",
        ]

        if self.sort_by is not None:
            lines.append(f"Sort: {self.sort_by.field} {self.sort_by.direction}")

        if self.limit is not None:
            lines.append(f"Limit: {self.limit.offset} {self.limit.size}")

        for name, value in self.params.items():
            lines.append(f"Param: ${name} <{len(value)} bytes>")

        return "\n".join(lines)


class QueryCompiler:
    """
    Compiles condition trees against a schema.

    The compiler holds no mutable state; one instance can serve any
    number of concurrent callers.
    """

    def __init__(self, schema: Schema, settings: Optional[Settings] = None):
        self.schema = schema
        self.settings = settings or Settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compile(
        self,
        node: Optional[ConditionNode] = None,
        options: Optional[SearchOptions] = None,
    ) -> QueryPlan:
        """
        Compile a condition tree and options into a QueryPlan.

        Raises:
            SchemaMismatchError: A predicate targets a field of the wrong type
            VectorDimensionMismatchError: A KNN vector has the wrong length
            InvalidQueryError: The tree or options cannot be expressed
        """
        options = options or SearchOptions()

        knn = self._find_knn(node)
        params: Dict[str, bytes] = {}
        score_fields: Tuple[str, ...] = ()

        if knn is None:
            query_string = self.compile_conditions(node)
        else:
            prefilter = self.compile_conditions(_without(node, knn))
            alias = self.score_alias(knn)
            param_name = self.settings.vector_param_name
            params[param_name] = knn.vector
            score_fields = (alias,)

            if prefilter != WILDCARD:
                prefilter = f"({prefilter})"
            query_string = (
                f"{prefilter}=>[KNN {knn.k} @{knn.field.store_name} ${param_name} AS {alias}]"
            )

        sort_by = self._compile_sort(options, score_fields)
        return_fields = self._compile_return(options, score_fields)
        limit = self._compile_limit(options)
        if limit is None and knn is not None:
            # Without LIMIT the store caps replies at 10 rows
            limit = Limit(0, knn.k)

        plan = QueryPlan(
            index_name=self.schema.index_name,
            query_string=query_string,
            params=MappingProxyType(params),
            return_fields=return_fields,
            sort_by=sort_by,
            limit=limit,
            dialect=self.settings.dialect,
            score_fields=score_fields,
        )

        logger.debug(f"Compiled query for '{plan.index_name}': {plan.query_string}")
        return plan

    def compile_raw(
        self,
        query_string: str,
        options: Optional[SearchOptions] = None,
    ) -> QueryPlan:
        """Wrap a caller-written query string with compiled options."""
        if not isinstance(query_string, str) or not query_string.strip():
            raise InvalidQueryError("Raw query must be a non-empty string")

        options = options or SearchOptions()

        return QueryPlan(
            index_name=self.schema.index_name,
            query_string=query_string,
            params=MappingProxyType({}),
            return_fields=self._compile_return(options, ()),
            sort_by=self._compile_sort(options, ()),
            limit=self._compile_limit(options),
            dialect=self.settings.dialect,
        )

    def compile_conditions(self, node: Optional[ConditionNode]) -> str:
        """Compile a condition tree (without KNN) into a query string."""
        if is_empty(node):
            return WILDCARD
        return self._emit(node, nested=False)

    def score_alias(self, knn: VectorKNN) -> str:
        """Name under which the store returns a KNN distance."""
        if knn.score_alias:
            return knn.score_alias
        return self.settings.score_alias_format.format(field=knn.field.store_name)

    # ------------------------------------------------------------------
    # Condition emission
    # ------------------------------------------------------------------

    def _emit(self, node: ConditionNode, nested: bool) -> str:
        if isinstance(node, And):
            parts = [
                self._emit(child, nested=True)
                for child in node.children
                if not is_empty(child)
            ]
            if len(parts) == 1:
                return parts[0]
            joined = " ".join(parts)
            return f"({joined})" if nested else joined

        if isinstance(node, Or):
            if not node.children:
                raise InvalidQueryError("OR group has no conditions")
            if any(is_empty(child) for child in node.children):
                raise InvalidQueryError("OR group contains an empty condition")
            if len(node.children) == 1:
                return self._emit(node.children[0], nested)
            return "(" + " | ".join(self._emit(c, nested=True) for c in node.children) + ")"

        if isinstance(node, Not):
            if is_empty(node.child):
                raise InvalidQueryError("Cannot negate an empty condition")
            return f"-({self._emit(node.child, nested=False)})"

        if isinstance(node, VectorKNN):
            raise InvalidQueryError(
                "Vector KNN must be the root condition or a direct child of the root AND"
            )

        return self._emit_leaf(node)

    def _emit_leaf(self, node: ConditionNode) -> str:
        descriptor = self._check_field(node)
        name = f"@{descriptor.store_name}"
        field_type = descriptor.type

        if isinstance(node, Equals):
            if field_type is FieldType.TAG:
                return f"{name}:{{{escape_tag(node.value)}}}"
            if field_type is FieldType.TEXT:
                return f'{name}:"{escape_text(node.value)}"'
            if field_type is FieldType.BOOLEAN:
                return f"{name}:{{{self._boolean_token(node.value)}}}"
            value = format_number(node.value)
            return f"{name}:[{value} {value}]"

        if isinstance(node, Range):
            lower = "-inf" if node.lower is None else format_number(node.lower)
            upper = "+inf" if node.upper is None else format_number(node.upper)
            if node.lower is not None and not node.lower_inclusive:
                lower = f"({lower}"
            if node.upper is not None and not node.upper_inclusive:
                upper = f"({upper}"
            return f"{name}:[{lower} {upper}]"

        if isinstance(node, Contains):
            return f"{name}:{{{'|'.join(escape_tag(v) for v in node.values)}}}"

        if isinstance(node, Matches):
            if node.exact:
                return f'{name}:"{escape_text(node.pattern)}"'
            return f"{name}:({escape_text(node.pattern)})"

        if isinstance(node, Within):
            return (
                f"{name}:[{format_number(node.longitude)} {format_number(node.latitude)} "
                f"{format_number(node.radius)} {node.unit}]"
            )

        raise InvalidQueryError(f"Unknown condition node: {type(node).__name__}")

    def _boolean_token(self, value: bool) -> str:
        if self.schema.data_structure == "JSON":
            return "true" if value else "false"
        return "1" if value else "0"

    def _check_field(self, node: ConditionNode) -> FieldDescriptor:
        """Re-validate a leaf against the schema."""
        descriptor = node.field
        declared = self.schema.by_store_name(descriptor.store_name)

        if declared is None or declared != descriptor:
            raise SchemaError(
                f"Field '{descriptor.name}' is not declared in schema '{self.schema.entity_name}'"
            )

        allowed = ALLOWED_TYPES.get(type(node), ())
        if descriptor.type not in allowed:
            raise SchemaMismatchError(
                f"{type(node).__name__} cannot target {descriptor.type.value} "
                f"field '{descriptor.name}'"
            )

        return descriptor

    # ------------------------------------------------------------------
    # KNN handling
    # ------------------------------------------------------------------

    def _find_knn(self, node: Optional[ConditionNode]) -> Optional[VectorKNN]:
        found = [n for n in walk(node) if isinstance(n, VectorKNN)]

        if not found:
            return None

        if len(found) > 1:
            raise InvalidQueryError("Only one vector KNN clause is allowed per query")

        knn = found[0]
        top_level = node is knn or (
            isinstance(node, And) and any(child is knn for child in node.children)
        )
        if not top_level:
            raise InvalidQueryError(
                "Vector KNN must be the root condition or a direct child of the root AND"
            )

        self._check_field(knn)
        check_vector_length(knn.vector, knn.field.vector_params)
        return knn

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def _compile_sort(
        self,
        options: SearchOptions,
        score_fields: Tuple[str, ...],
    ) -> Optional[SortBy]:
        direction = str(options.sort_direction).upper()
        if direction not in SORT_DIRECTIONS:
            raise InvalidQueryError(f"Sort direction must be ASC or DESC, got {options.sort_direction!r}")

        if options.sort_by is None:
            if score_fields:
                return SortBy(score_fields[0], "ASC")
            return None

        if options.sort_by in score_fields:
            return SortBy(options.sort_by, direction)

        try:
            descriptor = self.schema[options.sort_by]
        except SchemaError as e:
            raise InvalidQueryError(str(e)) from e

        if descriptor.type in UNSORTABLE_TYPES:
            raise InvalidQueryError(
                f"Cannot sort by {descriptor.type.value} field '{descriptor.name}'"
            )

        if not descriptor.sortable and self.settings.warn_on_unsortable:
            logger.warning(
                f"'{descriptor.name}' is not marked as sortable; "
                "sorting may be slow or rejected by the store"
            )

        return SortBy(descriptor.store_name, direction)

    def _compile_return(
        self,
        options: SearchOptions,
        score_fields: Tuple[str, ...],
    ) -> Tuple[str, ...]:
        if options.return_fields is None:
            return score_fields + tuple(self.schema.store_names)

        if isinstance(options.return_fields, str):
            raise InvalidQueryError("return_fields must be a sequence of field names")

        names: List[str] = []
        for name in options.return_fields:
            if name in score_fields:
                names.append(name)
                continue
            try:
                names.append(self.schema[name].store_name)
            except SchemaError as e:
                raise InvalidQueryError(str(e)) from e

        if names:
            for alias in score_fields:
                if alias not in names:
                    names.insert(0, alias)

        return tuple(names)

    def _compile_limit(self, options: SearchOptions) -> Optional[Limit]:
        if options.count is None:
            if options.offset:
                raise InvalidQueryError("An offset requires a page size")
            return None

        try:
            offset, count = validate_page(options.offset, options.count)
        except ValidationError as e:
            raise InvalidQueryError(str(e)) from e

        return Limit(offset, count)


def _without(node: ConditionNode, target: ConditionNode) -> Optional[ConditionNode]:
    """The tree with ``target`` (a root or root-AND child) removed."""
    if node is target:
        return None
    rest = tuple(child for child in node.children if child is not target)
    if len(rest) == 1:
        return rest[0]
    return And(rest)
