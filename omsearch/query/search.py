"""
Search facade for omsearch.

Builds a condition tree through an immutable fluent API, compiles it,
runs it through the transport and decodes the reply.

Example:
    >>> search = Search(schema, RedisTransport.from_url("redis://localhost"))
    >>>
    >>> # Fluent conditions; every call returns a new Search
    >>> cheap_covers = (
    ...     search.where("price").lt(100)
    ...     .and_("name").match("cover")
    ...     .sort_descending("price")
    ... )
    >>> page = cheap_covers.return_page(0, 10)
    >>>
    >>> # Nested groups
    >>> results = search.where("inStock").true().and_(
    ...     lambda s: s.where("colour").eq("red").or_("colour").eq("blue")
    ... ).return_all()
    >>>
    >>> # Or pass condition trees directly
    >>> results = search.run(range_(schema["price"], 10, 20))
    >>> cheapest = search.return_min_id("price")
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from .compiler import QueryCompiler, QueryPlan, SearchOptions
from .conditions import (
    ConditionNode,
    And,
    Or,
    Not,
    equals,
    range_,
    contains,
    contains_any,
    matches,
    within,
    vector_knn,
)
from .decoder import DecodedRecord, DecodedReply, ResultDecoder
from ..config import Settings
from ..core.exceptions import ValidationError
from ..core.schema import FieldDescriptor, Schema
from ..core.vector import Vector
from ..transport import SearchTransport
from ..utils.logging import get_logger


logger = get_logger(__name__)

FieldRef = Union[str, FieldDescriptor]
GroupBuilder = Callable[["Search"], "Search"]


class Search:
    """
    Immutable search builder and executor for one schema.

    The transport is passed in explicitly; a Search never owns or
    opens a connection itself.
    """

    def __init__(
        self,
        schema: Schema,
        transport: SearchTransport,
        settings: Optional[Settings] = None,
    ):
        self.schema = schema
        self.transport = transport
        self.settings = settings or Settings()
        self.compiler = QueryCompiler(schema, self.settings)
        self.decoder = ResultDecoder(schema, self.settings)

        self._node: Optional[ConditionNode] = None
        self._knn: Optional[ConditionNode] = None
        self._sort: Optional[Tuple[str, str]] = None

    def _derive(self, **changes: Any) -> "Search":
        clone = object.__new__(Search)
        clone.__dict__.update(self.__dict__)
        for name, value in changes.items():
            setattr(clone, f"_{name}", value)
        return clone

    @property
    def conditions(self) -> Optional[ConditionNode]:
        """Condition tree built so far, KNN clause included."""
        if self._knn is None:
            return self._node
        if self._node is None:
            return self._knn
        return And((self._node, self._knn))

    def __repr__(self) -> str:
        return f"Search(index='{self.schema.index_name}', conditions={self.conditions!r})"

    # ------------------------------------------------------------------
    # Fluent building
    # ------------------------------------------------------------------

    def where(self, target: Union[FieldRef, GroupBuilder]) -> Any:
        """Start a condition on a field, or add a nested group."""
        return self.and_(target)

    def and_(self, target: Union[FieldRef, GroupBuilder]) -> Any:
        """AND the next condition (or group) onto the current tree."""
        return self._start(target, "and")

    def or_(self, target: Union[FieldRef, GroupBuilder]) -> Any:
        """OR the next condition (or group) onto the current tree."""
        return self._start(target, "or")

    def _start(self, target: Union[FieldRef, GroupBuilder], combinator: str) -> Any:
        if callable(target) and not isinstance(target, (str, FieldDescriptor)):
            group = target(Search(self.schema, self.transport, self.settings))
            if not isinstance(group, Search):
                raise ValidationError("Group builder must return a Search")
            if group._knn is not None:
                raise ValidationError("Nested groups cannot contain a KNN clause")
            if group._node is None:
                return self
            return self._combine(group._node, combinator)

        return WhereField(self, self.schema.resolve(target), combinator)

    def _combine(self, node: ConditionNode, combinator: str) -> "Search":
        current = self._node

        if current is None:
            combined = node
        elif combinator == "and":
            combined = And(current.children + (node,)) if isinstance(current, And) else And((current, node))
        else:
            combined = Or(current.children + (node,)) if isinstance(current, Or) else Or((current, node))

        return self._derive(node=combined)

    def nearest(
        self,
        field: FieldRef,
        k: int,
        vector: Vector,
        score_alias: Optional[str] = None,
    ) -> "Search":
        """Restrict results to the ``k`` nearest neighbours of ``vector``."""
        knn = vector_knn(self.schema.resolve(field), k, vector, score_alias)
        return self._derive(knn=knn)

    def sort_by(self, field: str, direction: str = "ASC") -> "Search":
        """Sort results by a field."""
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise ValidationError(f"Sort direction must be ASC or DESC, got {direction!r}")
        return self._derive(sort=(field, direction))

    def sort_ascending(self, field: str) -> "Search":
        return self.sort_by(field, "ASC")

    def sort_descending(self, field: str) -> "Search":
        return self.sort_by(field, "DESC")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _options(self, **overrides: Any) -> SearchOptions:
        values = {}
        if self._sort is not None:
            values["sort_by"], values["sort_direction"] = self._sort
        values.update(overrides)
        return SearchOptions(**values)

    def _execute(self, plan: QueryPlan) -> Any:
        logger.debug(f"Executing on '{plan.index_name}': {plan.query_string}")
        return self.transport.search(plan.index_name, plan.query_string, plan.to_options())

    def execute_plan(self, plan: QueryPlan) -> DecodedReply:
        """Run an already compiled plan and decode its reply."""
        reply = self._execute(plan)
        return self.decoder.decode(reply, plan.score_fields)

    def run(
        self,
        conditions: Optional[ConditionNode] = None,
        options: Optional[SearchOptions] = None,
    ) -> DecodedReply:
        """
        Compile, execute and decode one search.

        Args:
            conditions: Condition tree; defaults to the one built fluently
            options: Execution options; defaults to the fluent sort order

        Returns:
            DecodedReply (a sequence of DecodedRecord with ``total``)
        """
        if conditions is None:
            conditions = self.conditions
        if options is None:
            options = self._options()

        plan = self.compiler.compile(conditions, options)
        return self.execute_plan(plan)

    def count(self, conditions: Optional[ConditionNode] = None) -> int:
        """Number of matches, without fetching any records."""
        if conditions is None:
            conditions = self.conditions

        plan = self.compiler.compile(
            conditions, SearchOptions(offset=0, count=0, return_fields=())
        )
        return self.decoder.decode_count(self._execute(plan))

    def raw_search(
        self,
        query_string: str,
        options: Optional[SearchOptions] = None,
    ) -> DecodedReply:
        """Run a hand-written query string with the usual decoding."""
        plan = self.compiler.compile_raw(query_string, options or self._options())
        return self.execute_plan(plan)

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def _first_by(self, field: Optional[str], direction: str, keys_only: bool) -> Optional[DecodedRecord]:
        overrides = {"offset": 0, "count": 1}
        if field is not None:
            overrides.update(sort_by=field, sort_direction=direction)
        if keys_only:
            overrides["return_fields"] = ()

        reply = self.run(self.conditions, self._options(**overrides))
        return reply.records[0] if reply.records else None

    def return_min_id(self, field: str) -> Optional[str]:
        """Identifier of the match with the smallest ``field``, or None."""
        record = self._first_by(field, "ASC", keys_only=True)
        return record.identifier if record else None

    def return_max_id(self, field: str) -> Optional[str]:
        """Identifier of the match with the largest ``field``, or None."""
        record = self._first_by(field, "DESC", keys_only=True)
        return record.identifier if record else None

    def return_min(self, field: str) -> Optional[DecodedRecord]:
        """Match with the smallest ``field``, or None."""
        return self._first_by(field, "ASC", keys_only=False)

    def return_max(self, field: str) -> Optional[DecodedRecord]:
        """Match with the largest ``field``, or None."""
        return self._first_by(field, "DESC", keys_only=False)

    def return_first(self) -> Optional[DecodedRecord]:
        """First match in the current sort order, or None."""
        return self._first_by(None, "ASC", keys_only=False)

    def return_first_id(self) -> Optional[str]:
        """Identifier of the first match, or None."""
        record = self._first_by(None, "ASC", keys_only=True)
        return record.identifier if record else None

    def return_count(self) -> int:
        """Alias for count() on the fluent conditions."""
        return self.count()

    def return_page(self, offset: int, count: int) -> DecodedReply:
        """One page of matches."""
        return self.run(self.conditions, self._options(offset=offset, count=count))

    def return_page_of_ids(self, offset: int, count: int) -> List[str]:
        """Identifiers on one page of matches."""
        reply = self.run(
            self.conditions,
            self._options(offset=offset, count=count, return_fields=()),
        )
        return reply.ids

    def return_all(self, page_size: Optional[int] = None) -> List[DecodedRecord]:
        """Every match, fetched page by page."""
        return list(self._pages(page_size, keys_only=False))

    def return_all_ids(self, page_size: Optional[int] = None) -> List[str]:
        """Identifiers of every match, fetched page by page."""
        return [r.identifier for r in self._pages(page_size, keys_only=True)]

    def _pages(self, page_size: Optional[int], keys_only: bool):
        page_size = page_size or self.settings.default_page_size
        if page_size < 1:
            raise ValidationError(f"page_size must be at least 1, got {page_size}")

        offset = 0
        while True:
            overrides = {"offset": offset, "count": page_size}
            if keys_only:
                overrides["return_fields"] = ()

            reply = self.run(self.conditions, self._options(**overrides))
            yield from reply.records

            offset += page_size
            if len(reply.records) < page_size or offset >= reply.total:
                break


class WhereField:
    """
    Pending condition on one field.

    Every terminal method returns a new Search with the condition added.
    """

    def __init__(
        self,
        search: Search,
        field: FieldDescriptor,
        combinator: str = "and",
        negated: bool = False,
    ):
        self._search = search
        self._field = field
        self._combinator = combinator
        self._negated = negated

    @property
    def not_(self) -> "WhereField":
        """Negate the next condition."""
        return WhereField(self._search, self._field, self._combinator, not self._negated)

    def _apply(self, node: ConditionNode) -> Search:
        if self._negated:
            node = Not(node)
        return self._search._combine(node, self._combinator)

    # Equality

    def eq(self, value: Any) -> Search:
        return self._apply(equals(self._field, value))

    equals = eq
    equal_to = eq

    def true(self) -> Search:
        return self.eq(True)

    def false(self) -> Search:
        return self.eq(False)

    # Ranges

    def gt(self, value: Any) -> Search:
        return self._apply(range_(self._field, value, None, min_inclusive=False))

    def gte(self, value: Any) -> Search:
        return self._apply(range_(self._field, value, None))

    def lt(self, value: Any) -> Search:
        return self._apply(range_(self._field, None, value, max_inclusive=False))

    def lte(self, value: Any) -> Search:
        return self._apply(range_(self._field, None, value))

    def between(self, lower: Any, upper: Any) -> Search:
        return self._apply(range_(self._field, lower, upper))

    greater_than = gt
    greater_than_or_equal = gte
    less_than = lt
    less_than_or_equal = lte

    # Dates

    on = eq
    after = gt
    before = lt
    on_or_after = gte
    on_or_before = lte

    # Text and tags

    def match(self, pattern: str) -> Search:
        return self._apply(matches(self._field, pattern))

    def match_exact(self, phrase: str) -> Search:
        return self._apply(matches(self._field, phrase, exact=True))

    def contains(self, value: str) -> Search:
        return self._apply(contains(self._field, value))

    def contains_one_of(self, *values: Union[str, Sequence[str]]) -> Search:
        if len(values) == 1 and not isinstance(values[0], str):
            values = tuple(values[0])
        return self._apply(contains_any(self._field, values))

    # Geo

    def in_radius(self, longitude: float, latitude: float, radius: float, unit: str = "mi") -> Search:
        return self._apply(within(self._field, longitude, latitude, radius, unit))
