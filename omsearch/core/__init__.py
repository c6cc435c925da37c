"""
Core components for omsearch.
"""

from .schema import (
    Schema,
    FieldDescriptor,
    FieldType,
    VectorParams,
    VectorAlgorithm,
    VectorType,
    DistanceMetric,
)
from .vector import encode_vector, decode_vector, check_vector_length
from .exceptions import (
    OMSearchError,
    SchemaError,
    SchemaMismatchError,
    VectorDimensionMismatchError,
    InvalidQueryError,
    DecodeError,
    KeyPrefixMismatchError,
    ValidationError,
)

__all__ = [
    # Schema
    "Schema",
    "FieldDescriptor",
    "FieldType",
    "VectorParams",
    "VectorAlgorithm",
    "VectorType",
    "DistanceMetric",
    # Vector
    "encode_vector",
    "decode_vector",
    "check_vector_length",
    # Exceptions
    "OMSearchError",
    "SchemaError",
    "SchemaMismatchError",
    "VectorDimensionMismatchError",
    "InvalidQueryError",
    "DecodeError",
    "KeyPrefixMismatchError",
    "ValidationError",
]
