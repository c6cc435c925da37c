"""
Input validation utilities.
"""

from typing import Any
import re

from ..core.exceptions import ValidationError


# Field names: letters, digits, underscores, hyphens, dots and dollar paths
FIELD_NAME_PATTERN = re.compile(r'^[a-zA-Z_$][a-zA-Z0-9_\-\.\$\[\]\*]*$')

# Maximum limits
MAX_FIELD_NAME_LENGTH = 256
MAX_DIMENSION = 32768
MAX_K = 10000
MAX_PAGE_SIZE = 10000


def validate_field_name(name: str) -> str:
    """
    Validate a field name.
    
    Args:
        name: The field name to validate
        
    Returns:
        The validated name
        
    Raises:
        ValidationError: If the name is invalid
    """
    if not isinstance(name, str):
        raise ValidationError(
            f"Field name must be a string, got {type(name).__name__}"
        )
    
    if not name:
        raise ValidationError("Field name cannot be empty")
    
    if len(name) > MAX_FIELD_NAME_LENGTH:
        raise ValidationError(
            f"Field name too long: {len(name)} characters (max {MAX_FIELD_NAME_LENGTH})"
        )
    
    if not FIELD_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid field name '{name}': must start with a letter or underscore "
            "and contain only alphanumeric characters, underscores, hyphens, or dots"
        )
    
    return name


def validate_dimension(dimension: int, min_dim: int = 1, max_dim: int = MAX_DIMENSION) -> int:
    """
    Validate a vector dimension.
    
    Raises:
        ValidationError: If dimension is invalid
    """
    if isinstance(dimension, bool) or not isinstance(dimension, int):
        raise ValidationError(
            f"Dimension must be an integer, got {type(dimension).__name__}"
        )
    
    if dimension < min_dim:
        raise ValidationError(f"Dimension too small: {dimension} (min {min_dim})")
    
    if dimension > max_dim:
        raise ValidationError(f"Dimension too large: {dimension} (max {max_dim})")
    
    return dimension


def validate_k(k: int, max_k: int = MAX_K) -> int:
    """
    Validate k (number of nearest neighbours).
    
    Raises:
        ValidationError: If k is invalid
    """
    if isinstance(k, bool) or not isinstance(k, int):
        raise ValidationError(f"k must be an integer, got {type(k).__name__}")
    
    if k < 1:
        raise ValidationError(f"k must be at least 1, got {k}")
    
    if k > max_k:
        raise ValidationError(f"k too large: {k} (max {max_k})")
    
    return k


def validate_page(offset: Any, count: Any, max_count: int = MAX_PAGE_SIZE) -> tuple:
    """
    Validate a pagination window.
    
    Returns:
        (offset, count) tuple
        
    Raises:
        ValidationError: If either value is invalid
    """
    for label, value in (("offset", offset), ("count", count)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"{label} must be an integer, got {type(value).__name__}"
            )
        if value < 0:
            raise ValidationError(f"{label} must be non-negative, got {value}")
    
    if count > max_count:
        raise ValidationError(f"count too large: {count} (max {max_count})")
    
    return offset, count


def validate_prefix(prefix: str) -> str:
    """Validate a key prefix."""
    if not isinstance(prefix, str) or not prefix:
        raise ValidationError("Key prefix must be a non-empty string")
    return prefix
