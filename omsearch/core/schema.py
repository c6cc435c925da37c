"""
Field descriptors and schemas.

A Schema is the static description of one entity type: the ordered
field descriptors, the key prefix under which its records are stored
and the name of the search index covering them.

Example:
    >>> schema = Schema.from_dict("Product", {
    ...     "name": {"type": "text"},
    ...     "price": {"type": "number", "sortable": True},
    ...     "image": {"type": "binary", "vector": {
    ...         "algorithm": "FLAT", "dim": 512, "distance_metric": "COSINE",
    ...     }},
    ... })
    >>> schema.prefix
    'Product:'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from .exceptions import SchemaError, ValidationError
from ..utils.validation import validate_dimension, validate_field_name, validate_prefix


class FieldType(str, Enum):
    """Semantic field types understood by the query compiler."""

    TEXT = "text"
    TAG = "tag"
    NUMBER = "number"
    BOOLEAN = "boolean"
    GEO = "geo"
    DATE = "date"
    VECTOR = "vector"

    def __str__(self) -> str:
        return self.value


class VectorAlgorithm(str, Enum):
    """Vector index algorithms."""
    FLAT = "FLAT"
    HNSW = "HNSW"


class DistanceMetric(str, Enum):
    """Distance metrics supported by vector fields."""

    L2 = "L2"
    IP = "IP"
    COSINE = "COSINE"

    def __str__(self) -> str:
        return self.value


class VectorType(str, Enum):
    """Component types of stored vectors."""

    FLOAT32 = "FLOAT32"
    FLOAT64 = "FLOAT64"

    @property
    def bytes_per_component(self) -> int:
        return 4 if self is VectorType.FLOAT32 else 8

    @property
    def numpy_dtype(self) -> str:
        # Little-endian, matching the store's blob layout
        return "<f4" if self is VectorType.FLOAT32 else "<f8"


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    return enum_cls(str(value).upper())


# Declaration aliases accepted by Schema.from_dict
_TYPE_ALIASES: Dict[str, tuple] = {
    "text": (FieldType.TEXT, False),
    "tag": (FieldType.TAG, False),
    "string": (FieldType.TAG, False),
    "string[]": (FieldType.TAG, True),
    "number": (FieldType.NUMBER, False),
    "boolean": (FieldType.BOOLEAN, False),
    "geo": (FieldType.GEO, False),
    "point": (FieldType.GEO, False),
    "date": (FieldType.DATE, False),
    "vector": (FieldType.VECTOR, False),
    "binary": (FieldType.VECTOR, False),
}


@dataclass(frozen=True)
class VectorParams:
    """
    Index parameters of a vector field.

    Attributes:
        algorithm: FLAT or HNSW
        dim: Number of components per vector
        distance_metric: L2, IP or COSINE
        initial_cap: Initial index capacity
        block_size: FLAT block size
        vector_type: Component type (determines bytes per component)
        m: HNSW max outgoing edges
        ef_construction: HNSW build-time candidate list size
        ef_runtime: HNSW query-time candidate list size
    """

    algorithm: VectorAlgorithm
    dim: int
    distance_metric: DistanceMetric
    initial_cap: Optional[int] = None
    block_size: Optional[int] = None
    vector_type: VectorType = VectorType.FLOAT32
    m: Optional[int] = None
    ef_construction: Optional[int] = None
    ef_runtime: Optional[int] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, "algorithm", _coerce(VectorAlgorithm, self.algorithm))
            object.__setattr__(
                self, "distance_metric", _coerce(DistanceMetric, self.distance_metric)
            )
            object.__setattr__(self, "vector_type", _coerce(VectorType, self.vector_type))
        except ValueError as e:
            raise SchemaError(f"Invalid vector parameters: {e}") from e

        try:
            validate_dimension(self.dim)
        except ValidationError as e:
            raise SchemaError(str(e)) from e

    @property
    def bytes_per_component(self) -> int:
        return self.vector_type.bytes_per_component

    @property
    def byte_length(self) -> int:
        """Expected byte length of an encoded vector."""
        return self.dim * self.bytes_per_component

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VectorParams":
        """Create from a declaration such as ``{"algorithm": "FLAT", "dim": 512}``."""
        try:
            return cls(
                algorithm=data["algorithm"],
                dim=data["dim"],
                distance_metric=data.get("distance_metric", "COSINE"),
                initial_cap=data.get("initial_cap"),
                block_size=data.get("block_size"),
                vector_type=data.get("type", data.get("vector_type", "FLOAT32")),
                m=data.get("m"),
                ef_construction=data.get("ef_construction"),
                ef_runtime=data.get("ef_runtime"),
            )
        except KeyError as e:
            raise SchemaError(f"Vector declaration missing {e}") from e


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Static metadata for one entity field.

    Attributes:
        name: Declared (application-side) field name
        type: Semantic field type
        store_name: Attribute name inside the store and index
        sortable: Whether the index keeps the field sortable
        vector_params: Index parameters, VECTOR fields only
        separator: Value separator for multi-valued TAG fields
        multi: TAG field holds a list of values
    """

    name: str
    type: FieldType
    store_name: Optional[str] = None
    sortable: bool = False
    vector_params: Optional[VectorParams] = None
    separator: str = "|"
    multi: bool = False

    def __post_init__(self):
        try:
            validate_field_name(self.name)
            if self.store_name is not None:
                validate_field_name(self.store_name)
        except ValidationError as e:
            raise SchemaError(str(e)) from e

        try:
            object.__setattr__(self, "type", FieldType(self.type))
        except ValueError as e:
            raise SchemaError(f"Unknown field type for '{self.name}': {self.type}") from e

        if self.store_name is None:
            object.__setattr__(self, "store_name", self.name)

        if self.type is FieldType.VECTOR and self.vector_params is None:
            raise SchemaError(f"Vector field '{self.name}' requires vector parameters")

        if self.type is not FieldType.VECTOR and self.vector_params is not None:
            raise SchemaError(
                f"Field '{self.name}' of type {self.type} cannot carry vector parameters"
            )

        if self.multi and self.type is not FieldType.TAG:
            raise SchemaError(f"Only tag fields can be multi-valued, '{self.name}' is {self.type}")

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "FieldDescriptor":
        """Create from a declaration such as ``{"type": "number", "sortable": True}``."""
        type_name = str(data.get("type", "")).lower()
        if type_name not in _TYPE_ALIASES:
            raise SchemaError(f"Unknown field type for '{name}': {data.get('type')!r}")

        field_type, multi = _TYPE_ALIASES[type_name]
        vector = data.get("vector")

        return cls(
            name=name,
            type=field_type,
            store_name=data.get("alias", data.get("field")),
            sortable=bool(data.get("sortable", False)),
            vector_params=VectorParams.from_dict(vector) if vector else None,
            separator=data.get("separator", "|"),
            multi=multi,
        )

    def __repr__(self) -> str:
        alias = f", store_name='{self.store_name}'" if self.store_name != self.name else ""
        return f"FieldDescriptor('{self.name}', {self.type.value}{alias})"


@dataclass(frozen=True)
class Schema:
    """
    Ordered field descriptors plus key prefix and index name.

    Attributes:
        entity_name: Entity type name
        fields: Field descriptors in declaration order
        prefix: Key prefix of stored records (default ``"<entity>:"``)
        index_name: Search index name (default ``"<entity>:index"``)
        data_structure: HASH or JSON
    """

    entity_name: str
    fields: Sequence[FieldDescriptor]
    prefix: Optional[str] = None
    index_name: Optional[str] = None
    data_structure: str = "HASH"
    _by_name: Dict[str, FieldDescriptor] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _by_store_name: Dict[str, FieldDescriptor] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        if not self.entity_name:
            raise SchemaError("Schema requires an entity name")

        object.__setattr__(self, "fields", tuple(self.fields))
        if self.prefix is None:
            object.__setattr__(self, "prefix", f"{self.entity_name}:")
        if self.index_name is None:
            object.__setattr__(self, "index_name", f"{self.entity_name}:index")

        try:
            validate_prefix(self.prefix)
        except ValidationError as e:
            raise SchemaError(str(e)) from e

        data_structure = self.data_structure.upper()
        if data_structure not in ("HASH", "JSON"):
            raise SchemaError(f"Unknown data structure: {self.data_structure}")
        object.__setattr__(self, "data_structure", data_structure)

        for descriptor in self.fields:
            if not isinstance(descriptor, FieldDescriptor):
                raise SchemaError(f"Expected FieldDescriptor, got {type(descriptor).__name__}")
            if descriptor.name in self._by_name:
                raise SchemaError(f"Duplicate field name: '{descriptor.name}'")
            if descriptor.store_name in self._by_store_name:
                raise SchemaError(f"Duplicate store name: '{descriptor.store_name}'")
            self._by_name[descriptor.name] = descriptor
            self._by_store_name[descriptor.store_name] = descriptor

    @classmethod
    def from_dict(
        cls,
        entity_name: str,
        definition: Mapping[str, Mapping[str, Any]],
        **options: Any,
    ) -> "Schema":
        """Build a schema from ``{field_name: declaration}`` pairs."""
        fields = [FieldDescriptor.from_dict(name, data) for name, data in definition.items()]
        return cls(entity_name, fields, **options)

    def __getitem__(self, name: str) -> FieldDescriptor:
        """Look up a field by declared name."""
        try:
            return self._by_name[name]
        except KeyError:
            raise SchemaError(
                f"Field '{name}' is not declared in schema '{self.entity_name}'"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def by_store_name(self, store_name: str) -> Optional[FieldDescriptor]:
        """Look up a field by store name, None if undeclared."""
        return self._by_store_name.get(store_name)

    def resolve(self, field_or_name) -> FieldDescriptor:
        """Accept either a descriptor or a declared name."""
        if isinstance(field_or_name, FieldDescriptor):
            return field_or_name
        return self[field_or_name]

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def store_names(self) -> List[str]:
        return [f.store_name for f in self.fields]

    def make_key(self, identifier: str) -> str:
        """Key under which an entity with this identifier is stored."""
        return f"{self.prefix}{identifier}"
