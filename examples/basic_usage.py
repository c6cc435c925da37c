"""
Basic usage example for omsearch.

Needs a Redis Stack server; set OMSEARCH_REDIS_URL to point at it
(defaults to redis://localhost:6379).
"""

import os

import numpy as np
from omsearch import Schema, Search, RedisTransport, range_, matches, and_


DIMENSION = 128


def main():
    print("=" * 60)
    print("omsearch Basic Usage Example")
    print("=" * 60)
    
    # 1. Declare the schema
    print("\n1. Declaring schema...")
    schema = Schema.from_dict("Document", {
        "title": {"type": "text"},
        "category": {"type": "string"},
        "tags": {"type": "string[]"},
        "year": {"type": "number", "sortable": True},
        "embedding": {
            "type": "vector",
            "vector": {"algorithm": "HNSW", "dim": DIMENSION, "distance_metric": "COSINE"},
        },
    })
    print(f"   Index: {schema.index_name}, prefix: {schema.prefix}")
    
    transport = RedisTransport.from_url(os.environ.get("OMSEARCH_REDIS_URL", "redis://localhost:6379"))
    client = transport.client
    
    # 2. Create the index and load some documents
    print("\n2. Creating index and loading documents...")
    client.execute_command(
        "FT.CREATE", schema.index_name, "ON", "HASH", "PREFIX", 1, schema.prefix,
        "SCHEMA",
        "title", "TEXT",
        "category", "TAG",
        "tags", "TAG", "SEPARATOR", "|",
        "year", "NUMERIC", "SORTABLE",
        "embedding", "VECTOR", "HNSW", 6,
        "TYPE", "FLOAT32", "DIM", DIMENSION, "DISTANCE_METRIC", "COSINE",
    )
    
    for i in range(100):
        client.hset(schema.make_key(f"doc_{i:03d}"), mapping={
            "title": f"Document {i}",
            "category": ["tutorial", "guide", "reference"][i % 3],
            "tags": "|".join(["python", "redis", "search"][: 1 + i % 3]),
            "year": 2020 + (i % 5),
            "embedding": np.random.randn(DIMENSION).astype(np.float32).tobytes(),
        })
    
    search = Search(schema, transport)
    
    try:
        # 3. Fluent queries
        print("\n3. Fluent query...")
        recent_guides = (
            search.where("category").eq("guide")
            .and_("year").gte(2023)
            .sort_descending("year")
        )
        page = recent_guides.return_page(0, 5)
        print(f"   {page.total} matches, first page:")
        for record in page:
            print(f"   - {record.identifier}: {record['title']} ({record['year']:.0f})")
        
        # 4. Condition trees
        print("\n4. Condition tree...")
        node = and_(range_(schema["year"], 2021, 2022), matches(schema["title"], "document"))
        print(f"   Query: {search.compiler.compile(node).query_string}")
        print(f"   Count: {search.count(node)}")
        
        # 5. Vector search
        print("\n5. Vector search...")
        query = np.random.randn(DIMENSION).astype(np.float32)
        results = search.where("tags").contains("redis").nearest("embedding", 5, query).run()
        for i, record in enumerate(results, 1):
            print(f"   {i}. {record.identifier}: distance={record.score:.4f}")
        
        # 6. Min / max
        print("\n6. Min / max...")
        print(f"   Oldest: {search.return_min_id('year')}")
        print(f"   Newest: {search.return_max_id('year')}")
    finally:
        client.execute_command("FT.DROPINDEX", schema.index_name, "DD")
        transport.close()
    
    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
