"""
Pytest fixtures for omsearch tests.
"""

import pytest
import numpy as np
from typing import Any, List, Mapping, Tuple

from omsearch.core.schema import Schema, FieldDescriptor, FieldType, VectorParams


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs a live Redis Stack server")


class FakeTransport:
    """Records search calls and hands back canned replies in order."""

    def __init__(self, replies: List[Any] = None):
        self.replies = list(replies or [])
        self.calls: List[Tuple[str, str, Mapping[str, Any]]] = []

    def search(self, index_name: str, query: str, options: Mapping[str, Any]) -> Any:
        self.calls.append((index_name, query, options))
        if not self.replies:
            return [0]
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def simple_schema() -> Schema:
    """Hash schema with one field of every scalar type."""
    return Schema.from_dict("SimpleHashEntity", {
        "aString": {"type": "string"},
        "someText": {"type": "text"},
        "aNumber": {"type": "number", "sortable": True},
        "aBoolean": {"type": "boolean"},
        "aPoint": {"type": "point"},
        "aDate": {"type": "date", "sortable": True},
        "someStrings": {"type": "string[]"},
    })


@pytest.fixture
def dimension() -> int:
    """Dimension of the product image vectors."""
    return 512


@pytest.fixture
def product_schema(dimension) -> Schema:
    """Schema with a COSINE vector field."""
    return Schema("Product", [
        FieldDescriptor("name", FieldType.TEXT),
        FieldDescriptor("price", FieldType.NUMBER, sortable=True),
        FieldDescriptor(
            "image",
            FieldType.VECTOR,
            vector_params=VectorParams(
                algorithm="FLAT",
                dim=dimension,
                distance_metric="COSINE",
                initial_cap=5,
                block_size=5,
            ),
        ),
    ])


@pytest.fixture
def random_vector(dimension) -> np.ndarray:
    """Generate a random float32 vector."""
    return np.random.randn(dimension).astype(np.float32)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def simple_entity_1_reply() -> list:
    """Reply holding the fields of SimpleHashEntity:1."""
    return [
        1,
        b"SimpleHashEntity:1",
        [
            b"aString", b"foo",
            b"someText", b"the quick brown fox",
            b"aNumber", b"42",
            b"aBoolean", b"0",
            b"aPoint", b"12.34,56.78",
            b"aDate", b"1000000000",
            b"someStrings", b"alfa|bravo|charlie",
        ],
    ]
