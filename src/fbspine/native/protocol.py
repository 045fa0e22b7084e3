"""Native engine contract.

The native engine is an opaque, synchronous client library.  Every call
blocks the calling thread and none is safe for concurrent use on the same
connection handle; ``fbspine.connection`` serializes them through one worker
thread per connection.

Handles (connection, result set, row, created blob) are opaque objects owned
by the implementation.  Failures are raised as
:class:`~fbspine.errors.NativeError` carrying the engine's message.

Guardrails:
    ❌ DON'T: Call a NativeLibrary method from the event loop thread
    ✅ DO: Route every call through ``Connection._run``

    ❌ DON'T: Add Python-level conveniences to this protocol
    ✅ DO: Keep it a one-to-one image of the native entry points

Tags:
    protocol, native, ffi, fbspine
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

from fbspine.errors import DecodeError

NO_TABLE = "_NA"


class DataType(IntEnum):
    """Native column type tags, in the engine's numbering."""

    PRIMARY_KEY = 0
    BOOLEAN = 1
    INTEGER = 2
    SMALL_INTEGER = 3
    FLOAT = 4
    REAL = 5
    DOUBLE = 6
    NUMERIC = 7
    DECIMAL = 8
    CHARACTER = 9
    VCHARACTER = 10
    BIT = 11
    VBIT = 12
    DATE = 13
    TIME = 14
    TIME_TZ = 15
    TIMESTAMP = 16
    TIMESTAMP_TZ = 17
    YEAR_MONTH = 18
    DAY_TIME = 19
    CLOB = 20
    BLOB = 21
    TINY_INTEGER = 22
    LONG_INTEGER = 23
    CIRCA_DATE = 24
    ANY_TYPE = 25
    UNDECIDED = 26


def datatype_of(code: int) -> DataType:
    """Map a native type code to its tag; unknown codes are a decode error."""
    try:
        return DataType(code)
    except ValueError:
        raise DecodeError(code) from None


@dataclass(frozen=True)
class ColumnInfo:
    """Result-set column description as reported by the engine."""

    table: str | None
    label: str
    datatype: DataType
    nullable: bool = True

    @classmethod
    def from_native(cls, table: str, label: str, datatype: int, nullable: bool) -> ColumnInfo:
        """Build from raw native values; the ``_NA`` table name means no table."""
        return cls(
            table=None if table == NO_TABLE else table,
            label=label,
            datatype=datatype_of(datatype),
            nullable=bool(nullable),
        )


@runtime_checkable
class NativeLibrary(Protocol):
    """
    Synchronous native engine surface consumed by the driver.

    Typed getters come in two families: plain ones read a column of a
    statically typed column, ``get_any_type_*`` ones read the value held by
    an ``ANY TYPE`` column after ``any_type_type`` has reported its dynamic
    type.
    """

    # ── Connections ──────────────────────────────────────────────
    def connect_on_host(
        self,
        database: str,
        host: str,
        database_password: str | None,
        username: str,
        password: str,
        session_name: str,
        system_user: str,
    ) -> Any: ...

    def connect_at_path(
        self,
        database: str,
        path: str,
        database_password: str | None,
        username: str,
        password: str,
        session_name: str,
        system_user: str,
    ) -> Any: ...

    def close_connection(self, connection: Any) -> None: ...

    # ── Statements and result sets ───────────────────────────────
    def execute(self, connection: Any, sql: str, auto_commit: bool) -> Any: ...

    def close_result(self, result: Any) -> None: ...

    def fetch_message(self, result: Any) -> str | None: ...

    def fetch_row(self, result: Any) -> Any | None: ...

    def release_row(self, row: Any) -> None: ...

    def column_count(self, result: Any) -> int: ...

    def column_info(self, result: Any, index: int) -> ColumnInfo: ...

    # ── Typed getters ────────────────────────────────────────────
    def is_null(self, row: Any, index: int) -> bool: ...

    def get_boolean(self, row: Any, index: int) -> bool: ...

    def get_tiny_integer(self, row: Any, index: int) -> int: ...

    def get_short_integer(self, row: Any, index: int) -> int: ...

    def get_integer(self, row: Any, index: int) -> int: ...

    def get_long_integer(self, row: Any, index: int) -> int: ...

    def get_numeric(self, row: Any, index: int) -> float: ...

    def get_real(self, row: Any, index: int) -> float: ...

    def get_decimal(self, row: Any, index: int) -> float: ...

    def get_scale(self, result: Any, row: Any, index: int) -> int: ...

    def get_character(self, row: Any, index: int) -> str: ...

    def get_bits(self, row: Any, index: int) -> bytes: ...

    def get_blob_handle(self, row: Any, index: int) -> tuple[str, int]: ...

    def get_timestamp(self, row: Any, index: int) -> float: ...

    def get_day_time(self, row: Any, index: int) -> float: ...

    # ── ANY TYPE getters ─────────────────────────────────────────
    def any_type_type(self, row: Any, index: int) -> DataType: ...

    def any_type_is_null(self, row: Any, index: int) -> bool: ...

    def get_any_type_boolean(self, row: Any, index: int) -> bool: ...

    def get_any_type_tiny_integer(self, row: Any, index: int) -> int: ...

    def get_any_type_short_integer(self, row: Any, index: int) -> int: ...

    def get_any_type_integer(self, row: Any, index: int) -> int: ...

    def get_any_type_long_integer(self, row: Any, index: int) -> int: ...

    def get_any_type_numeric(self, row: Any, index: int) -> float: ...

    def get_any_type_real(self, row: Any, index: int) -> float: ...

    def get_any_type_decimal(self, row: Any, index: int) -> float: ...

    def get_any_type_scale(self, result: Any, row: Any, index: int) -> int: ...

    def get_any_type_character(self, row: Any, index: int) -> str: ...

    def get_any_type_bits(self, row: Any, index: int) -> bytes: ...

    def get_any_type_blob_handle(self, row: Any, index: int) -> tuple[str, int]: ...

    def get_any_type_timestamp(self, row: Any, index: int) -> float: ...

    # ── Blobs ────────────────────────────────────────────────────
    def get_blob_data(self, connection: Any, handle: str, size: int) -> bytes: ...

    def create_blob_handle(self, connection: Any, data: bytes) -> tuple[str, Any]: ...

    def release_blob_handle(self, blob: Any) -> None: ...


__all__ = [
    "NO_TABLE",
    "DataType",
    "ColumnInfo",
    "NativeLibrary",
]
