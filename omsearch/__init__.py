"""
omsearch - typed query layer over a key-value search store.

Example:
    >>> from omsearch import Schema, Search, RedisTransport
    >>> 
    >>> schema = Schema.from_dict("Product", {
    ...     "name": {"type": "text"},
    ...     "price": {"type": "number", "sortable": True},
    ... })
    >>> search = Search(schema, RedisTransport.from_url("redis://localhost:6379"))
    >>> 
    >>> cheapest = search.return_min_id("price")
    >>> covers = search.where("name").match("cover").return_all()
"""

from .core import (
    # Schema
    Schema,
    FieldDescriptor,
    FieldType,
    VectorParams,
    DistanceMetric,
    # Exceptions
    OMSearchError,
    SchemaError,
    SchemaMismatchError,
    VectorDimensionMismatchError,
    InvalidQueryError,
    DecodeError,
    KeyPrefixMismatchError,
    ValidationError,
)

from .query import (
    Search,
    SearchOptions,
    QueryCompiler,
    QueryPlan,
    ResultDecoder,
    DecodedRecord,
    DecodedReply,
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
)

from .config import Settings, load_config
from .transport import SearchTransport, RedisTransport

__version__ = "0.1.0"

__all__ = [
    # Schema
    "Schema",
    "FieldDescriptor",
    "FieldType",
    "VectorParams",
    "DistanceMetric",
    # Exceptions
    "OMSearchError",
    "SchemaError",
    "SchemaMismatchError",
    "VectorDimensionMismatchError",
    "InvalidQueryError",
    "DecodeError",
    "KeyPrefixMismatchError",
    "ValidationError",
    # Query
    "Search",
    "SearchOptions",
    "QueryCompiler",
    "QueryPlan",
    "ResultDecoder",
    "DecodedRecord",
    "DecodedReply",
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
    # Config
    "Settings",
    "load_config",
    # Transport
    "SearchTransport",
    "RedisTransport",
]
