"""
Custom exceptions for omsearch.
"""


class OMSearchError(Exception):
    """Base exception for omsearch."""
    pass


class SchemaError(OMSearchError):
    """Error in a schema or field declaration."""
    pass


class SchemaMismatchError(SchemaError):
    """Predicate kind is not valid for the target field's type."""
    pass


class VectorDimensionMismatchError(SchemaError):
    """Query vector byte length doesn't match the field's declared dimension."""
    pass


class InvalidQueryError(OMSearchError):
    """Query cannot be compiled into a valid query string."""
    pass


class DecodeError(OMSearchError):
    """Error while decoding a search reply."""
    pass


class KeyPrefixMismatchError(DecodeError):
    """Returned key does not start with the schema's key prefix."""
    pass


class ValidationError(OMSearchError):
    """Input validation error."""
    pass
