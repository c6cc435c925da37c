"""
Transport adapters for the store's search command.

The query layer only needs one call shape::

    transport.search(index_name, query_string, options) -> raw reply

where ``options`` is the dictionary built by ``QueryPlan.to_options``::

    {
        "PARAMS": {"query_vector": b"..."},        # only when present
        "RETURN": ["name", "price"],
        "SORTBY": {"BY": "price", "DIRECTION": "ASC"},
        "LIMIT": {"from": 0, "size": 10},
        "DIALECT": 2,
    }

Anything with a matching ``search`` method can be passed to the
search facade, which makes test doubles trivial.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Protocol

import redis

from .utils.logging import get_logger


logger = get_logger(__name__)


class SearchTransport(Protocol):
    """Anything able to run a search command."""

    def search(self, index_name: str, query: str, options: Mapping[str, Any]) -> Any:
        ...


def build_search_args(index_name: str, query: str, options: Mapping[str, Any]) -> List[Any]:
    """
    Flatten an options block into FT.SEARCH arguments.

    Example:
        >>> build_search_args("Product:index", "*", {"RETURN": [], "DIALECT": 2})
        ['FT.SEARCH', 'Product:index', '*', 'RETURN', 0, 'DIALECT', 2]
    """
    args: List[Any] = ["FT.SEARCH", index_name, query]

    if "RETURN" in options:
        fields = list(options["RETURN"])
        args += ["RETURN", len(fields), *fields]

    sort_by = options.get("SORTBY")
    if sort_by:
        args += ["SORTBY", sort_by["BY"], sort_by.get("DIRECTION", "ASC")]

    limit = options.get("LIMIT")
    if limit:
        args += ["LIMIT", limit["from"], limit["size"]]

    params: Dict[str, Any] = options.get("PARAMS") or {}
    if params:
        args += ["PARAMS", len(params) * 2]
        for name, value in params.items():
            args += [name, value]

    if "DIALECT" in options:
        args += ["DIALECT", options["DIALECT"]]

    return args


class RedisTransport:
    """
    Runs searches through a redis-py client.

    The client should be created with ``decode_responses=False`` so that
    vector blobs come back as bytes.

    Example:
        >>> transport = RedisTransport.from_url("redis://localhost:6379")
        >>> search = Search(schema, transport)
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisTransport":
        """Create a transport from a connection URL."""
        kwargs.setdefault("decode_responses", False)
        return cls(redis.Redis.from_url(url, **kwargs))

    def search(self, index_name: str, query: str, options: Mapping[str, Any]) -> Any:
        """Execute FT.SEARCH; errors from the client propagate unchanged."""
        args = build_search_args(index_name, query, options)
        logger.debug(f"FT.SEARCH {index_name} {query}")
        return self.client.execute_command(*args)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RedisTransport":
        return self

    def __exit__(self, *args) -> None:
        self.close()
