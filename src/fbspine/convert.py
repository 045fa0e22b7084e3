"""Conversion between Python objects and :class:`~fbspine.values.Value`.

``to_value(obj)`` turns an application object into a bindable value;
``from_value(value, target)`` reads a value back as ``target``, returning
None when the value cannot represent that type.

Built-in mappings
─────────────────
==========================  ==============  ===================================
Python type                 Bound as        Read back from
==========================  ==============  ===================================
None                        NULL            NULL
bool                        BOOLEAN         BOOLEAN, INTEGER, FLOAT (non-zero)
int                         INTEGER         INTEGER, FLOAT (truncated)
float                       FLOAT           FLOAT, INTEGER
decimal.Decimal             DECIMAL         DECIMAL, INTEGER, FLOAT
str                         TEXT            TEXT
bytes / bytearray           BLOB            BITS, materialized BLOB
datetime.datetime           TIMESTAMP       TIMESTAMP
uuid.UUID                   BITS (16)       TEXT, BITS (16 or 12), BLOB (16)
Bit96                       BITS (12)       BITS (12)
BlobSize                    (read only)     BLOB (declared size, no fetch)
ValueConvertible            (own rules)     (own rules)
==========================  ==============  ===================================

Application types participate by implementing the ``ValueConvertible``
protocol, or by registering with ``to_value.register`` and
``register_reader``.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from functools import singledispatch
from typing import Any, Protocol, TypeVar, runtime_checkable

from fbspine.blob import Blob
from fbspine.values import NULL, Value, ValueKind

T = TypeVar("T")


@runtime_checkable
class ValueConvertible(Protocol):
    """Application types that convert themselves to and from values."""

    def to_frontbase_value(self) -> Value: ...

    @classmethod
    def from_frontbase_value(cls, value: Value) -> Any: ...


class Bit96:
    """Fixed 12-byte bit string, e.g. a ``BIT(96)`` primary key."""

    __slots__ = ("bits",)

    SIZE = 12

    def __init__(self, bits: bytes | bytearray):
        bits = bytes(bits)
        if len(bits) != self.SIZE:
            raise ValueError(f"Bit96 requires {self.SIZE} bytes, got {len(bits)}")
        self.bits = bits

    def __bytes__(self) -> bytes:
        return self.bits

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bit96):
            return NotImplemented
        return self.bits == other.bits

    def __hash__(self) -> int:
        return hash(self.bits)

    def __repr__(self) -> str:
        return f"Bit96({self.bits.hex()!r})"


class BlobSize(int):
    """Declared byte size of a BLOB/CLOB column, read without fetching it."""

    def __repr__(self) -> str:
        return f"BlobSize({int(self)})"


# =============================================================================
# PYTHON -> VALUE
# =============================================================================


@singledispatch
def to_value(obj: Any) -> Value:
    """Convert ``obj`` to a :class:`Value`.

    Raises:
        TypeError: No conversion is known for ``type(obj)``.
    """
    if isinstance(obj, ValueConvertible):
        return obj.to_frontbase_value()
    raise TypeError(f"Cannot convert {type(obj).__name__} to a Frontbase value")


@to_value.register
def _(obj: Value) -> Value:
    return obj


@to_value.register(type(None))
def _(obj: None) -> Value:
    return NULL


@to_value.register
def _(obj: bool) -> Value:
    return Value.boolean(obj)


@to_value.register
def _(obj: int) -> Value:
    return Value.integer(obj)


@to_value.register
def _(obj: float) -> Value:
    return Value.float(obj)


@to_value.register
def _(obj: Decimal) -> Value:
    return Value.decimal(obj)


@to_value.register
def _(obj: str) -> Value:
    return Value.text(obj)


@to_value.register(bytes)
@to_value.register(bytearray)
@to_value.register(memoryview)
def _(obj: bytes | bytearray | memoryview) -> Value:
    return Value.blob(Blob.from_bytes(obj))


@to_value.register
def _(obj: Blob) -> Value:
    return Value.blob(obj)


@to_value.register
def _(obj: datetime) -> Value:
    return Value.timestamp(obj)


@to_value.register
def _(obj: uuid.UUID) -> Value:
    return Value.bits(obj.bytes)


@to_value.register
def _(obj: Bit96) -> Value:
    return Value.bits(obj.bits)


# =============================================================================
# VALUE -> PYTHON
# =============================================================================

_READERS: dict[type, Callable[[Value], Any]] = {}


def register_reader(target: type[T], reader: Callable[[Value], T | None]) -> None:
    """Register how to read a value back as ``target``."""
    _READERS[target] = reader


def from_value(value: Value, target: type[T], **options: Any) -> T | None:
    """Read ``value`` as an instance of ``target``.

    ``int`` accepts ``bits`` and ``signed`` options to emulate fixed-width
    integer types, e.g. ``from_value(v, int, bits=16, signed=False)``.

    Returns:
        The converted object, or None when ``value`` cannot represent
        ``target`` (including NULL).

    Raises:
        TypeError: No reader is known for ``target``.
    """
    if target is Value:
        return value  # type: ignore[return-value]
    reader = _READERS.get(target)
    if reader is not None:
        return reader(value, **options) if options else reader(value)
    if isinstance(target, type) and issubclass(target, ValueConvertible):
        return target.from_frontbase_value(value)
    raise TypeError(f"Cannot convert a Frontbase value to {getattr(target, '__name__', target)}")


def _read_int(value: Value, bits: int = 64, signed: bool = True) -> int | None:
    match value.kind:
        case ValueKind.INTEGER:
            number = value.payload
        case ValueKind.FLOAT:
            number = int(value.payload)
        case _:
            return None
    low, high = (-(2 ** (bits - 1)), 2 ** (bits - 1) - 1) if signed else (0, 2**bits - 1)
    return number if low <= number <= high else None


def _read_float(value: Value) -> float | None:
    if value.kind in (ValueKind.INTEGER, ValueKind.FLOAT):
        return float(value.payload)
    return None


def _read_decimal(value: Value) -> Decimal | None:
    match value.kind:
        case ValueKind.DECIMAL:
            return value.payload
        case ValueKind.INTEGER:
            return Decimal(value.payload)
        case ValueKind.FLOAT:
            return Decimal(repr(value.payload))
    return None


def _read_bool(value: Value) -> bool | None:
    if value.kind in (ValueKind.BOOLEAN, ValueKind.INTEGER, ValueKind.FLOAT):
        return bool(value.payload)
    return None


def _read_str(value: Value) -> str | None:
    return value.payload if value.kind is ValueKind.TEXT else None


def _read_bytes(value: Value) -> bytes | None:
    if value.kind is ValueKind.BITS:
        return value.payload
    if value.kind is ValueKind.BLOB:
        # Unrealized blobs must be read with ``await blob.read()`` first.
        return value.payload.content
    return None


def _read_datetime(value: Value) -> datetime | None:
    return value.payload if value.kind is ValueKind.TIMESTAMP else None


def _read_uuid(value: Value) -> uuid.UUID | None:
    match value.kind:
        case ValueKind.TEXT:
            try:
                return uuid.UUID(value.payload)
            except ValueError:
                return None
        case ValueKind.BITS:
            if len(value.payload) == 16:
                return uuid.UUID(bytes=value.payload)
            if len(value.payload) == 12:
                return uuid.UUID(bytes=value.payload + bytes(4))
        case ValueKind.BLOB:
            content = value.payload.content
            if content is not None and len(content) == 16:
                return uuid.UUID(bytes=content)
    return None


def _read_blob_size(value: Value) -> BlobSize | None:
    return BlobSize(value.payload.size) if value.kind is ValueKind.BLOB else None


def _read_bit96(value: Value) -> Bit96 | None:
    if value.kind is ValueKind.BITS and len(value.payload) == Bit96.SIZE:
        return Bit96(value.payload)
    return None


register_reader(int, _read_int)
register_reader(float, _read_float)
register_reader(Decimal, _read_decimal)
register_reader(bool, _read_bool)
register_reader(str, _read_str)
register_reader(bytes, _read_bytes)
register_reader(datetime, _read_datetime)
register_reader(uuid.UUID, _read_uuid)
register_reader(Bit96, _read_bit96)
register_reader(BlobSize, _read_blob_size)


__all__ = [
    "Bit96",
    "BlobSize",
    "ValueConvertible",
    "from_value",
    "register_reader",
    "to_value",
]
