"""
Decoding of raw search replies.

A reply is a flat sequence::

    [total, key1, [name, value, ...], key2, [name, value, ...], ...]

Replies requested with ``RETURN 0`` carry no field arrays at all, only
keys. Values arrive as bytes or str depending on the client; vector
fields are passed through as bytes, everything else is decoded as
UTF-8 and coerced by the field's declared type.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import Settings
from ..core.exceptions import DecodeError, KeyPrefixMismatchError
from ..core.schema import FieldDescriptor, FieldType, Schema
from ..utils.logging import get_logger


logger = get_logger(__name__)

TRUE_TOKENS = ("1", "true")
FALSE_TOKENS = ("0", "false")


@dataclass
class DecodedRecord:
    """
    One search hit.

    Attributes:
        identifier: Entity id (key without the schema prefix)
        key: Full store key
        fields: Declared field name -> typed value
        extras: Computed or undeclared fields (score aliases as floats,
            anything else as returned)
    """

    identifier: str
    key: str
    fields: Dict[str, Any] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def score(self) -> Optional[float]:
        """First float-valued extra, typically the KNN distance."""
        for value in self.extras.values():
            if isinstance(value, float):
                return value
        return None

    def __getitem__(self, name: str) -> Any:
        if name in self.fields:
            return self.fields[name]
        return self.extras[name]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.identifier,
            "key": self.key,
            "fields": dict(self.fields),
            "extras": dict(self.extras),
        }


@dataclass
class DecodedReply:
    """Decoded reply: total match count plus the records on this page."""

    total: int = 0
    records: List[DecodedRecord] = field(default_factory=list)

    def __iter__(self) -> Iterator[DecodedRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> DecodedRecord:
        return self.records[index]

    @property
    def ids(self) -> List[str]:
        return [r.identifier for r in self.records]


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Value is not valid UTF-8: {e}") from e
    return str(value)


class ResultDecoder:
    """
    Converts raw replies into DecodedRecords for one schema.

    Stateless apart from its configuration; safe to share.
    """

    def __init__(self, schema: Schema, settings: Optional[Settings] = None):
        self.schema = schema
        self.settings = settings or Settings()

        self._coercers: Dict[FieldType, Callable[[FieldDescriptor, Any], Any]] = {
            FieldType.TEXT: self._to_text,
            FieldType.TAG: self._to_tag,
            FieldType.NUMBER: self._to_number,
            FieldType.BOOLEAN: self._to_boolean,
            FieldType.GEO: self._to_geo,
            FieldType.DATE: self._to_date,
            FieldType.VECTOR: self._to_vector,
        }

    def decode(
        self,
        reply: Sequence[Any],
        score_fields: Sequence[str] = (),
    ) -> DecodedReply:
        """
        Decode a whole reply.

        Args:
            reply: Raw reply from the transport
            score_fields: Computed aliases to coerce to float

        Raises:
            DecodeError: If the reply is malformed or a typed value fails
                to parse; the whole reply is rejected
            KeyPrefixMismatchError: If a key lacks the schema prefix
        """
        if not isinstance(reply, (list, tuple)) or not reply:
            raise DecodeError(f"Malformed search reply: {reply!r}")

        total = self._to_count(reply[0])
        records: List[DecodedRecord] = []

        items = reply[1:]
        i = 0
        while i < len(items):
            key = _text(items[i])
            i += 1

            raw_fields: Sequence[Any] = ()
            if i < len(items) and isinstance(items[i], (list, tuple)):
                raw_fields = items[i]
                i += 1

            records.append(self.decode_record(key, raw_fields, score_fields))

        logger.debug(f"Decoded {len(records)} of {total} results from '{self.schema.index_name}'")
        return DecodedReply(total=total, records=records)

    def decode_count(self, reply: Sequence[Any]) -> int:
        """Decode only the total count of a reply."""
        if not isinstance(reply, (list, tuple)) or not reply:
            raise DecodeError(f"Malformed search reply: {reply!r}")
        return self._to_count(reply[0])

    def decode_record(
        self,
        key: str,
        raw_fields: Sequence[Any],
        score_fields: Sequence[str] = (),
    ) -> DecodedRecord:
        """Decode one key and its flat field array."""
        record = DecodedRecord(identifier=self.identifier_for(key), key=key)

        if len(raw_fields) % 2:
            raise DecodeError(f"Odd-length field array for key '{key}'")

        for name_raw, value in zip(raw_fields[0::2], raw_fields[1::2]):
            name = _text(name_raw)
            descriptor = self.schema.by_store_name(name)

            if descriptor is not None:
                try:
                    record.fields[descriptor.name] = self.coerce(descriptor, value)
                except DecodeError as e:
                    raise DecodeError(f"Key '{key}': {e}") from e
            elif name in score_fields:
                record.extras[name] = self._parse_float(name, value)
            else:
                record.extras[name] = value

        return record

    def identifier_for(self, key: str) -> str:
        """Strip the schema prefix from a key."""
        prefix = self.schema.prefix
        if not key.startswith(prefix):
            raise KeyPrefixMismatchError(
                f"Key '{key}' does not start with prefix '{prefix}'"
            )
        return key[len(prefix):]

    def coerce(self, descriptor: FieldDescriptor, value: Any) -> Any:
        """Coerce one raw value per its field's declared type."""
        return self._coercers[descriptor.type](descriptor, value)

    # ------------------------------------------------------------------
    # Coercers
    # ------------------------------------------------------------------

    def _to_count(self, value: Any) -> int:
        try:
            return int(_text(value))
        except ValueError as e:
            raise DecodeError(f"Invalid result count: {value!r}") from e

    def _parse_float(self, name: str, value: Any) -> float:
        token = _text(value).strip()
        sentinel = self.settings.numeric_sentinels.get(token.lower())
        if sentinel is not None:
            return sentinel
        try:
            return float(token)
        except ValueError as e:
            raise DecodeError(f"Field '{name}' is not a number: {token!r}") from e

    def _to_text(self, descriptor: FieldDescriptor, value: Any) -> str:
        return _text(value)

    def _to_tag(self, descriptor: FieldDescriptor, value: Any) -> Any:
        text = _text(value)
        if descriptor.multi:
            return [v for v in text.split(descriptor.separator) if v] if text else []
        return text

    def _to_number(self, descriptor: FieldDescriptor, value: Any) -> float:
        return self._parse_float(descriptor.name, value)

    def _to_boolean(self, descriptor: FieldDescriptor, value: Any) -> bool:
        token = _text(value).strip().lower()
        if token in TRUE_TOKENS:
            return True
        if token in FALSE_TOKENS:
            return False
        raise DecodeError(f"Field '{descriptor.name}' is not a boolean: {token!r}")

    def _to_geo(self, descriptor: FieldDescriptor, value: Any) -> Tuple[float, float]:
        text = _text(value)
        try:
            longitude, latitude = (float(part) for part in text.split(","))
        except ValueError as e:
            raise DecodeError(f"Field '{descriptor.name}' is not a point: {text!r}") from e
        return longitude, latitude

    def _to_date(self, descriptor: FieldDescriptor, value: Any) -> datetime:
        epoch = self._parse_float(descriptor.name, value)
        if not math.isfinite(epoch):
            raise DecodeError(f"Field '{descriptor.name}' is not a valid date: {epoch}")
        try:
            return datetime.fromtimestamp(epoch, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise DecodeError(f"Field '{descriptor.name}' is out of range: {epoch}") from e

    def _to_vector(self, descriptor: FieldDescriptor, value: Any) -> Any:
        return value


def decode_reply(
    schema: Schema,
    reply: Sequence[Any],
    score_fields: Sequence[str] = (),
    settings: Optional[Settings] = None,
) -> DecodedReply:
    """Convenience wrapper around ResultDecoder.decode."""
    return ResultDecoder(schema, settings).decode(reply, score_fields)
