"""
Vector marshalling between Python values and the store's binary blobs.

Vectors travel as raw little-endian component arrays. They are only
ever placed in a query's PARAMS block, never in the query string.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .exceptions import VectorDimensionMismatchError, ValidationError
from .schema import VectorParams


# Type alias
Vector = Union[bytes, bytearray, memoryview, np.ndarray, Sequence[float]]


def encode_vector(vector: Vector, params: VectorParams) -> bytes:
    """
    Encode a query vector for a field with the given parameters.

    Byte strings are passed through untouched; numeric sequences are
    converted to the field's component type.

    Args:
        vector: Raw bytes, numpy array or sequence of floats
        params: The target field's vector parameters

    Returns:
        Encoded vector bytes

    Raises:
        VectorDimensionMismatchError: If the encoded length is not
            ``dim * bytes_per_component``
        ValidationError: If the vector cannot be converted
    """
    if isinstance(vector, (bytes, bytearray, memoryview)):
        blob = bytes(vector)
    else:
        try:
            array = np.asarray(vector, dtype=params.vector_type.numpy_dtype)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Cannot convert query vector: {e}") from e

        if array.ndim != 1:
            raise ValidationError(f"Vector must be 1D, got {array.ndim}D")

        if not np.isfinite(array).all():
            raise ValidationError("Vector contains NaN or Inf values")

        blob = array.tobytes()

    check_vector_length(blob, params)
    return blob


def check_vector_length(blob: bytes, params: VectorParams) -> None:
    """Raise VectorDimensionMismatchError unless ``blob`` fits ``params``."""
    if len(blob) != params.byte_length:
        raise VectorDimensionMismatchError(
            f"Query vector is {len(blob)} bytes, expected {params.byte_length} "
            f"({params.dim} x {params.bytes_per_component}-byte "
            f"{params.vector_type.value} components)"
        )


def decode_vector(blob: bytes, params: VectorParams) -> np.ndarray:
    """
    Decode a stored vector blob into a numpy array.

    Raises:
        VectorDimensionMismatchError: If the blob length doesn't match
    """
    check_vector_length(blob, params)
    return np.frombuffer(blob, dtype=params.vector_type.numpy_dtype).copy()
