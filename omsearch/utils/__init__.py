"""
Utility functions for omsearch.
"""

from .validation import (
    validate_field_name,
    validate_dimension,
    validate_k,
    validate_page,
    validate_prefix,
)
from .logging import setup_logger, get_logger, LogContext

__all__ = [
    "validate_field_name",
    "validate_dimension",
    "validate_k",
    "validate_page",
    "validate_prefix",
    "setup_logger",
    "get_logger",
    "LogContext",
]
