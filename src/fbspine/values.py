"""
Value model: the closed set of SQL values the driver moves in and out.

A ``Value`` is a tagged union ``(kind, payload)``.  Exactly one kind is
active; equality compares kind and payload, so ``Value.integer(1)`` and
``Value.boolean(True)`` are different values even though ``1 == True`` in
Python.

The engine accepts literal SQL only (no native parameter binding), so every
bound value is rendered to an unambiguous literal by :meth:`Value.sql` before
it is spliced into the statement text.

Manifesto:
    - **Closed set:** NULL, BOOLEAN, INTEGER, FLOAT, DECIMAL, TEXT, BITS,
      TIMESTAMP, BLOB; nothing else reaches the engine
    - **Injection-safe literals:** text is single-quoted with ``'`` doubled,
      the engine's string grammar has no other metacharacter
    - **Exact decimals:** rendered fixed-point with their declared scale,
      never through a binary float
    - **UTC timestamps:** stored aware in UTC, rendered at microsecond
      precision with round-half-up

Architecture:
    ::

        Python object ──to_value()──► Value ──sql(conn)──► literal SQL text
                                        ▲
        native row ──decode_column()────┘

        Kind        Payload              Literal
        ─────────   ──────────────────   ───────────────────────────────
        NULL        None                 NULL
        BOOLEAN     bool                 TRUE / FALSE
        INTEGER     int (64-bit signed)  42
        FLOAT       float                1.5
        DECIMAL     decimal.Decimal      12.50
        TEXT        str                  'it''s'
        BITS        bytes                X'DEADBEEF'
        TIMESTAMP   datetime (UTC)       TIMESTAMP '2024-01-02 03:04:05.000006'
        BLOB        Blob                 native handle string

Examples:
    >>> Value.text("it's").sql(None)
    "'it''s'"
    >>> Value.bits(b"\\xde\\xad").sql(None)
    "X'DEAD'"

Tags:
    value-model, tagged-union, sql-literal, fbspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from fbspine.blob import Blob
from fbspine.errors import BindError

if TYPE_CHECKING:
    from fbspine.connection import Connection

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Native timestamps are seconds relative to this instant.
REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=UTC)


class ValueKind(str, Enum):
    """Active variant of a :class:`Value`."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    BITS = "bits"
    TIMESTAMP = "timestamp"
    BLOB = "blob"


# =============================================================================
# TIMESTAMPS
# =============================================================================


def as_utc(instant: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


@dataclass(frozen=True)
class TimestampFormatter:
    """Formats UTC instants as ``YYYY-MM-DD HH:MM:SS[.f...]``.

    The sub-second part is rounded half-up to ``precision`` digits; a
    rounding carry moves into the seconds.
    """

    precision: int

    def __post_init__(self) -> None:
        if not 0 <= self.precision <= 6:
            raise ValueError(f"Timestamp precision must be 0-6, got {self.precision}")

    @property
    def divisor(self) -> int:
        return 10 ** (6 - self.precision)

    def format(self, instant: datetime) -> str:
        instant = as_utc(instant)
        fraction = (instant.microsecond + self.divisor // 2) // self.divisor
        instant = instant.replace(microsecond=0)
        if fraction * self.divisor >= 1_000_000:
            instant += timedelta(seconds=1)
            fraction = 0

        text = (
            f"{instant.year:04d}-{instant.month:02d}-{instant.day:02d} "
            f"{instant.hour:02d}:{instant.minute:02d}:{instant.second:02d}"
        )
        if self.precision:
            text += f".{fraction:0{self.precision}d}"
        return text


TIMESTAMP_FORMATTERS = MappingProxyType(
    {precision: TimestampFormatter(precision) for precision in range(7)}
)


def timestamp_from_native(seconds: float) -> datetime:
    """Convert native seconds since ``REFERENCE_DATE`` to a UTC datetime."""
    return REFERENCE_DATE + timedelta(microseconds=math.floor(seconds * 1_000_000 + 0.5))


def timestamp_to_native(instant: datetime) -> float:
    """Inverse of :func:`timestamp_from_native`."""
    return (as_utc(instant) - REFERENCE_DATE).total_seconds()


# =============================================================================
# VALUE
# =============================================================================


@dataclass(frozen=True)
class Value:
    """
    One SQL value.

    Build values with the named constructors rather than the raw
    ``Value(kind, payload)`` form; the constructors validate and normalize
    the payload.
    """

    kind: ValueKind
    payload: Any = None

    # ── Constructors ─────────────────────────────────────────────

    @classmethod
    def null(cls) -> Value:
        return NULL

    @classmethod
    def boolean(cls, value: bool) -> Value:
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def integer(cls, value: int) -> Value:
        value = int(value)
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"Integer {value} is outside the 64-bit signed range")
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def float(cls, value: float) -> Value:
        return cls(ValueKind.FLOAT, float(value))

    @classmethod
    def decimal(cls, value: Decimal | str | int) -> Value:
        return cls(ValueKind.DECIMAL, value if isinstance(value, Decimal) else Decimal(value))

    @classmethod
    def text(cls, value: str) -> Value:
        return cls(ValueKind.TEXT, str(value))

    @classmethod
    def bits(cls, value: bytes | bytearray | memoryview) -> Value:
        return cls(ValueKind.BITS, bytes(value))

    @classmethod
    def timestamp(cls, value: datetime) -> Value:
        return cls(ValueKind.TIMESTAMP, as_utc(value))

    @classmethod
    def blob(cls, value: Blob | bytes) -> Value:
        if not isinstance(value, Blob):
            value = Blob.from_bytes(value)
        return cls(ValueKind.BLOB, value)

    # ── Introspection ────────────────────────────────────────────

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def to_python(self) -> Any:
        """Plain payload for logging and JSON; blobs become their handle."""
        if self.kind is ValueKind.BLOB:
            return self.payload.handle
        if self.kind is ValueKind.TIMESTAMP:
            return self.payload.isoformat()
        if self.kind in (ValueKind.DECIMAL, ValueKind.BITS):
            return str(self)
        return self.payload

    # ── Literal rendering ────────────────────────────────────────

    def sql(self, connection: Connection | None) -> str:
        """Render as a literal SQL expression.

        ``connection`` is only used by blobs, which must realize a native
        handle on the connection the statement is sent to.  Must run on that
        connection's worker thread when the value is a blob.

        Raises:
            BindError: The payload has no valid literal form.
            BlobCreationError: A blob handle could not be created.
        """
        match self.kind:
            case ValueKind.NULL:
                return "NULL"
            case ValueKind.BOOLEAN:
                return "TRUE" if self.payload else "FALSE"
            case ValueKind.INTEGER:
                return str(self.payload)
            case ValueKind.FLOAT:
                if not math.isfinite(self.payload):
                    raise BindError(f"Cannot render non-finite float {self.payload!r}")
                return repr(self.payload)
            case ValueKind.DECIMAL:
                if not self.payload.is_finite():
                    raise BindError(f"Cannot render non-finite decimal {self.payload}")
                return format(self.payload, "f")
            case ValueKind.TEXT:
                if "\x00" in self.payload:
                    raise BindError("Text values cannot contain NUL characters")
                return "'" + self.payload.replace("'", "''") + "'"
            case ValueKind.BITS:
                return f"X'{self.payload.hex().upper()}'"
            case ValueKind.TIMESTAMP:
                return f"TIMESTAMP '{TIMESTAMP_FORMATTERS[6].format(self.payload)}'"
            case ValueKind.BLOB:
                if connection is None:
                    raise BindError("Blob values can only be bound on a connection")
                return self.payload.ensure_handle(connection)
        raise BindError(f"Unknown value kind {self.kind!r}")

    def __str__(self) -> str:
        match self.kind:
            case ValueKind.NULL:
                return "null"
            case ValueKind.BOOLEAN:
                return "true" if self.payload else "false"
            case ValueKind.TEXT:
                return f'"{self.payload}"'
            case ValueKind.BITS:
                return f"X'{self.payload.hex().upper()}'"
            case ValueKind.TIMESTAMP:
                return self.payload.isoformat()
            case _:
                return str(self.payload)


NULL = Value(ValueKind.NULL)


__all__ = [
    "INT64_MIN",
    "INT64_MAX",
    "NULL",
    "REFERENCE_DATE",
    "TIMESTAMP_FORMATTERS",
    "TimestampFormatter",
    "Value",
    "ValueKind",
    "as_utc",
    "timestamp_from_native",
    "timestamp_to_native",
]
