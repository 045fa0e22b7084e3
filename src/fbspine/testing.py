"""In-memory native engine for tests.

``FakeNativeLibrary`` implements :class:`~fbspine.native.NativeLibrary`
without the real engine.  Results are scripted per statement text, and every
call that matters to the driver is recorded so tests can assert on it:

    >>> library = FakeNativeLibrary()
    >>> library.respond(
    ...     "SELECT id, name FROM planets",
    ...     columns=[FakeColumn("ID", DataType.INTEGER), FakeColumn("NAME", DataType.VCHARACTER)],
    ...     rows=[[3, "Earth"]],
    ... )
    >>> connection = await Connection.open(FileStorage("t", "/tmp/t", "_system"), library=library)
    >>> library.executed[-1]
    ('SELECT id, name FROM planets;', True)

Cells are raw native values: ``None`` is NULL, blob columns hold a
``(handle, size)`` pair (see :meth:`FakeNativeLibrary.store_blob`), and
``ANY TYPE`` columns hold an :class:`AnyTypeCell`.

``execute_gate`` lets a test hold the worker inside a native execute call;
``execute_started`` is set as soon as a call enters.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any

from fbspine.errors import NativeError
from fbspine.native.protocol import NO_TABLE, ColumnInfo, DataType, datatype_of


@dataclass(frozen=True)
class FakeColumn:
    label: str
    datatype: DataType | int
    table: str | None = None
    nullable: bool = True
    scale: int = 0


@dataclass(frozen=True)
class AnyTypeCell:
    """Cell of an ``ANY TYPE`` column: the dynamic type plus the raw value."""

    datatype: DataType | int
    value: Any


@dataclass
class FakeResponse:
    columns: list[FakeColumn] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)
    message: str | None = None
    error: str | None = None


@dataclass
class FakeHandle:
    database: str
    location: str
    username: str
    session_name: str
    system_user: str
    open: bool = True


@dataclass
class FakeResult:
    response: FakeResponse
    position: int = 0
    closed: bool = False


@dataclass
class FakeRow:
    result: FakeResult
    cells: list[Any]


@dataclass
class FakeBlob:
    handle: str
    data: bytes
    released: bool = False


def _key(sql: str) -> str:
    return sql.strip().rstrip(";").strip()


class FakeNativeLibrary:
    """Scripted, call-recording stand-in for the native support library."""

    def __init__(self) -> None:
        self.responses: dict[str, FakeResponse] = {}
        self.connections: list[FakeHandle] = []
        self.executed: list[tuple[str, bool]] = []
        self.blobs: dict[str, bytes] = {}
        self.connect_error: str | None = None
        self.create_blob_error: str | None = None

        self.blob_creates = 0
        self.blob_releases = 0
        self.blob_fetches = 0
        self.rows_released = 0
        self.results_opened = 0
        self.results_closed = 0

        self.execute_gate: threading.Event | None = None
        self.execute_started = threading.Event()
        self.threads: set[str] = set()

        self._handles = itertools.count(1)

    # ── Scripting ────────────────────────────────────────────────

    def respond(
        self,
        sql: str,
        *,
        columns: list[FakeColumn] | None = None,
        rows: list[list[Any]] | None = None,
        message: str | None = None,
        error: str | None = None,
    ) -> None:
        """Script the result of executing ``sql`` (trailing ``;`` ignored)."""
        self.responses[_key(sql)] = FakeResponse(list(columns or []), list(rows or []), message, error)

    def store_blob(self, data: bytes) -> tuple[str, int]:
        """Place ``data`` in the engine's blob store; returns a cell for a blob column."""
        handle = self._next_handle()
        self.blobs[handle] = data
        return handle, len(data)

    @property
    def statements(self) -> list[str]:
        """Executed statement texts, without the trailing ``;``."""
        return [_key(sql) for sql, _ in self.executed]

    def _next_handle(self) -> str:
        return f"@'{next(self._handles):032X}'"

    def _touch(self) -> None:
        self.threads.add(threading.current_thread().name)

    # ── Connections ──────────────────────────────────────────────

    def _connect(self, database, location, username, session_name, system_user) -> FakeHandle:
        self._touch()
        if self.connect_error is not None:
            raise NativeError(self.connect_error)
        handle = FakeHandle(database, location, username, session_name, system_user)
        self.connections.append(handle)
        return handle

    def connect_on_host(self, database, host, database_password, username, password, session_name, system_user):
        return self._connect(database, host, username, session_name, system_user)

    def connect_at_path(self, database, path, database_password, username, password, session_name, system_user):
        return self._connect(database, path, username, session_name, system_user)

    def close_connection(self, connection: FakeHandle) -> None:
        self._touch()
        connection.open = False

    # ── Statements and result sets ───────────────────────────────

    def execute(self, connection: FakeHandle, sql: str, auto_commit: bool) -> FakeResult:
        self._touch()
        self.execute_started.set()
        if self.execute_gate is not None:
            self.execute_gate.wait()
        if not connection.open:
            raise NativeError("Connection is closed")

        self.executed.append((sql, auto_commit))
        response = self.responses.get(_key(sql), FakeResponse())
        if response.error is not None:
            raise NativeError(response.error)
        self.results_opened += 1
        return FakeResult(response)

    def close_result(self, result: FakeResult) -> None:
        if not result.closed:
            result.closed = True
            self.results_closed += 1

    def fetch_message(self, result: FakeResult) -> str | None:
        return result.response.message

    def fetch_row(self, result: FakeResult) -> FakeRow | None:
        if result.position >= len(result.response.rows):
            return None
        cells = result.response.rows[result.position]
        result.position += 1
        return FakeRow(result, list(cells))

    def release_row(self, row: FakeRow) -> None:
        self.rows_released += 1

    def column_count(self, result: FakeResult) -> int:
        return len(result.response.columns)

    def column_info(self, result: FakeResult, index: int) -> ColumnInfo:
        column = result.response.columns[index]
        return ColumnInfo.from_native(column.table or NO_TABLE, column.label, column.datatype, column.nullable)

    # ── Typed getters ────────────────────────────────────────────

    def _cell(self, row: FakeRow, index: int) -> Any:
        return row.cells[index]

    def is_null(self, row, index):
        return self._cell(row, index) is None

    get_boolean = _cell
    get_tiny_integer = _cell
    get_short_integer = _cell
    get_integer = _cell
    get_long_integer = _cell
    get_numeric = _cell
    get_real = _cell
    get_decimal = _cell
    get_character = _cell
    get_bits = _cell
    get_blob_handle = _cell
    get_timestamp = _cell
    get_day_time = _cell

    def get_scale(self, result: FakeResult, row: FakeRow, index: int) -> int:
        return result.response.columns[index].scale

    # ── ANY TYPE getters ─────────────────────────────────────────

    def _any_cell(self, row: FakeRow, index: int) -> Any:
        return self._cell(row, index).value

    def any_type_type(self, row, index):
        return datatype_of(self._cell(row, index).datatype)

    def any_type_is_null(self, row, index):
        cell = self._cell(row, index)
        return cell is None or cell.value is None

    get_any_type_boolean = _any_cell
    get_any_type_tiny_integer = _any_cell
    get_any_type_short_integer = _any_cell
    get_any_type_integer = _any_cell
    get_any_type_long_integer = _any_cell
    get_any_type_numeric = _any_cell
    get_any_type_real = _any_cell
    get_any_type_decimal = _any_cell
    get_any_type_character = _any_cell
    get_any_type_bits = _any_cell
    get_any_type_blob_handle = _any_cell
    get_any_type_timestamp = _any_cell

    def get_any_type_scale(self, result: FakeResult, row: FakeRow, index: int) -> int:
        return result.response.columns[index].scale

    # ── Blobs ────────────────────────────────────────────────────

    def get_blob_data(self, connection: FakeHandle, handle: str, size: int) -> bytes:
        self._touch()
        self.blob_fetches += 1
        try:
            return self.blobs[handle][:size]
        except KeyError:
            raise NativeError(f"Unknown blob handle {handle}") from None

    def create_blob_handle(self, connection: FakeHandle, data: bytes) -> tuple[str, FakeBlob]:
        self._touch()
        if self.create_blob_error is not None:
            raise NativeError(self.create_blob_error)
        self.blob_creates += 1
        handle = self._next_handle()
        self.blobs[handle] = bytes(data)
        return handle, FakeBlob(handle, bytes(data))

    def release_blob_handle(self, blob: FakeBlob) -> None:
        self._touch()
        blob.released = True
        self.blob_releases += 1


__all__ = [
    "AnyTypeCell",
    "FakeColumn",
    "FakeNativeLibrary",
]
