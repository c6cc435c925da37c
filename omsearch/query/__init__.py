"""
Query processing module for omsearch.

This module provides:
- Condition trees (predicates and AND/OR/NOT combinators)
- Query compilation to the store's query language
- Result decoding
- The Search facade

Example:
    >>> from omsearch.query import Search, range_, matches, and_
    >>> 
    >>> search = Search(schema, transport)
    >>> node = and_(range_(schema["price"], 10, 100), matches(schema["name"], "cover"))
    >>> results = search.run(node)
    >>> 
    >>> # Fluent
    >>> results = search.where("price").lt(100).sort_by("price").return_all()
"""

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
    equals,
    range_,
    contains,
    contains_any,
    matches,
    within,
    vector_knn,
    and_,
    or_,
    not_,
    walk,
)

from .compiler import (
    QueryCompiler,
    QueryPlan,
    SearchOptions,
    SortBy,
    Limit,
    escape_tag,
    escape_text,
)

from .decoder import (
    ResultDecoder,
    DecodedRecord,
    DecodedReply,
    decode_reply,
)

from .search import (
    Search,
    WhereField,
)

__all__ = [
    # Conditions
    "ConditionNode",
    "Equals",
    "Range",
    "Contains",
    "Matches",
    "Within",
    "VectorKNN",
    "And",
    "Or",
    "Not",
    "equals",
    "range_",
    "contains",
    "contains_any",
    "matches",
    "within",
    "vector_knn",
    "and_",
    "or_",
    "not_",
    "walk",
    # Compiler
    "QueryCompiler",
    "QueryPlan",
    "SearchOptions",
    "SortBy",
    "Limit",
    "escape_tag",
    "escape_text",
    # Decoder
    "ResultDecoder",
    "DecodedRecord",
    "DecodedReply",
    "decode_reply",
    # Facade
    "Search",
    "WhereField",
]
