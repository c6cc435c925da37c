"""
Integration tests for vector KNN and sorted accessors against Redis.
"""

import uuid

import pytest
import numpy as np

from omsearch import Search, Schema, FieldDescriptor, FieldType, VectorParams, RedisTransport
from . import REDIS_URL, integration, requires_redis


pytestmark = [integration, requires_redis]


@pytest.fixture
def redis_transport():
    with RedisTransport.from_url(REDIS_URL) as transport:
        yield transport


@pytest.fixture
def product_schema(dimension):
    """Product schema with a unique prefix per test run."""
    entity = f"Product{uuid.uuid4().hex[:8]}"
    return Schema(entity, [
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
def product_index(redis_transport, product_schema, dimension):
    """Create the index, load five products and drop everything afterwards."""
    client = redis_transport.client
    client.execute_command(
        "FT.CREATE", product_schema.index_name,
        "ON", "HASH",
        "PREFIX", 1, product_schema.prefix,
        "SCHEMA",
        "name", "TEXT",
        "price", "NUMERIC", "SORTABLE",
        "image", "VECTOR", "FLAT", 10,
        "TYPE", "FLOAT32",
        "DIM", dimension,
        "DISTANCE_METRIC", "COSINE",
        "INITIAL_CAP", 5,
        "BLOCK_SIZE", 5,
    )

    np.random.seed(42)
    vectors = np.random.randn(5, dimension).astype(np.float32)
    for i, vector in enumerate(vectors):
        client.hset(product_schema.make_key(str(i)), mapping={
            "name": f"product {i}",
            "price": 10 * (i + 1),
            "image": vector.tobytes(),
        })

    yield vectors

    client.execute_command("FT.DROPINDEX", product_schema.index_name, "DD")


class TestVectorKNN:
    """KNN queries against a live index."""

    def test_knn_returns_k_sorted_hits(self, redis_transport, product_schema, product_index):
        """Test KNN returns k hits sorted by distance."""
        search = Search(product_schema, redis_transport)

        reply = search.nearest("image", 2, product_index[0]).run()

        assert len(reply) == 2
        scores = [record.score for record in reply]
        assert all(isinstance(score, float) for score in scores)
        assert scores == sorted(scores)
        assert reply[0].identifier == "0"
        assert reply[0].score == pytest.approx(0.0, abs=1e-5)

    def test_knn_with_prefilter(self, redis_transport, product_schema, product_index):
        """Test KNN with a prefilter."""
        search = Search(product_schema, redis_transport)

        reply = search.where("price").gte(30).nearest("image", 5, product_index[0]).run()

        assert sorted(reply.ids) == ["2", "3", "4"]


class TestSortedAccessors:
    """Min / max / count accessors against a live index."""

    def test_min_and_max_id(self, redis_transport, product_schema, product_index):
        """Test min and max identifiers."""
        search = Search(product_schema, redis_transport)

        assert search.return_min_id("price") == "0"
        assert search.return_max_id("price") == "4"

    def test_min_id_no_match(self, redis_transport, product_schema, product_index):
        """Test the min identifier with no match."""
        search = Search(product_schema, redis_transport)
        assert search.where("price").gt(1000).return_min_id("price") is None

    def test_count(self, redis_transport, product_schema, product_index):
        """Test counting matches."""
        search = Search(product_schema, redis_transport)
        assert search.where("price").between(20, 40).count() == 3
