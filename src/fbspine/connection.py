"""
Connections, the execution bridge and transactions.

Every native call is blocking and the native connection handle is not safe
for concurrent use, so each ``Connection`` owns exactly one worker thread
(a ``ThreadPoolExecutor(max_workers=1)``).  Open, execute, fetch, blob
create/fetch/release and close all run on that worker; the event loop only
submits work and awaits the result.

Manifesto:
    - **One worker per connection:** the worker is the only thread that ever
      touches the native handle, so no lock guards it
    - **FIFO per connection:** units run in enqueue order; two connections
      run fully in parallel
    - **Close wins the race:** a unit that starts after ``close()`` was
      called, or whose handle vanished during execute, fails with
      ``ConnectionClosedError`` instead of touching a released handle
    - **Explicit release:** ``await connection.close()`` (or ``async with``);
      garbage collection of an open connection is reported as a leak

Architecture:
    ::

        event loop                       worker thread (one per connection)
        ──────────                       ─────────────────────────────────
        await conn.query(sql, binds)
          │  Statement(sql)  arity check
          │  auto_commit captured
          └──── run_in_executor ───────►  check not closing
                                          bind (creates blob handles)
                                          native execute(sql + ";", auto_commit)
                                          check handle still live
                                          fetch_row / decode_row ... (FIFO)
                                          close_result (always)
          ◄──────── rows ─────────────┘
        on_row callbacks run here, all awaited before query() returns

    Transaction states::

        AUTO_COMMIT ──transaction()──► IN_TRANSACTION ──body ok──► COMMIT
             ▲                              │                         │
             │                              └──body raised──► ROLLBACK│
             └────────────────────────────────────────────────────────┘

Examples:
    >>> storage = NamedStorage("Universe", "localhost", "_system", "")
    >>> async with await Connection.open(storage) as connection:
    ...     rows = await connection.query("SELECT name FROM planets WHERE id = ?", [3])
    ...     rows[0]["name"]
    Value(kind=<ValueKind.TEXT: 'text'>, payload='Earth')

Guardrails:
    ❌ DON'T: Call ``NativeLibrary`` methods from the event loop
    ✅ DO: Submit them with ``_submit``/``_run``

    ❌ DON'T: Nest ``transaction()`` blocks on one connection
    ✅ DO: Open a second connection for independent work

Tags:
    connection, execution-bridge, transactions, threadpool, asyncio, fbspine

Doc-Types:
    - API Reference
    - Concurrency Guide
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import os
import threading
import warnings
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from fbspine.decode import decode_row
from fbspine.errors import (
    BindingArityError,
    ConnectionClosedError,
    ErrorCategory,
    ExecutionError,
    NativeError,
    OpenError,
    TransactionAlreadyOpenError,
)
from fbspine.logging import get_logger
from fbspine.native.library import load_library
from fbspine.native.protocol import NativeLibrary
from fbspine.rows import Row, StructureColumn
from fbspine.settings import get_settings
from fbspine.statement import Statement

logger = get_logger(__name__)

T = TypeVar("T")

RowHandler = Callable[[Row], Any]


# =============================================================================
# SESSION MODES
# =============================================================================


class IsolationLevel(str, Enum):
    SERIALIZABLE = "SERIALIZABLE"
    REPEATABLE_READ = "REPEATABLE READ"
    READ_COMMITTED = "READ COMMITTED"
    VERSIONED = "VERSIONED"


class LockingMode(str, Enum):
    PESSIMISTIC = "PESSIMISTIC"
    OPTIMISTIC = "OPTIMISTIC"
    DEFERRED = "DEFERRED"


class AccessMode(str, Enum):
    READ_WRITE = "READ WRITE"
    READ_ONLY = "READ ONLY"


@dataclass(frozen=True)
class SessionMode:
    """Transaction settings applied once when a connection opens."""

    isolation: IsolationLevel = IsolationLevel.SERIALIZABLE
    locking: LockingMode = LockingMode.PESSIMISTIC
    access: AccessMode = AccessMode.READ_WRITE

    @property
    def sql(self) -> str:
        return (
            f"SET TRANSACTION ISOLATION LEVEL {self.isolation.value}, "
            f"LOCKING {self.locking.value}, {self.access.value};"
        )


# =============================================================================
# STORAGE
# =============================================================================


@dataclass(frozen=True)
class NamedStorage:
    """Database served by a named server process on ``host``."""

    name: str
    host: str
    username: str
    password: str = field(default="", repr=False)
    database_password: str | None = field(default=None, repr=False)
    mode: SessionMode = field(default_factory=SessionMode)

    def connect(self, library: NativeLibrary, session_name: str, system_user: str) -> Any:
        return library.connect_on_host(
            self.name,
            self.host,
            self.database_password,
            self.username.upper(),
            self.password,
            session_name,
            system_user,
        )

    def __str__(self) -> str:
        return f"{self.name}@{self.host}"


@dataclass(frozen=True)
class FileStorage:
    """File-based database; supports one connection at a time."""

    name: str
    path: str
    username: str
    password: str = field(default="", repr=False)
    database_password: str | None = field(default=None, repr=False)
    mode: SessionMode = field(default_factory=SessionMode)

    def connect(self, library: NativeLibrary, session_name: str, system_user: str) -> Any:
        return library.connect_at_path(
            self.name,
            self.path,
            self.database_password,
            self.username.upper(),
            self.password,
            session_name,
            system_user,
        )

    def __str__(self) -> str:
        return f"{self.name} at {self.path}"


Storage = NamedStorage | FileStorage


# =============================================================================
# CONNECTION
# =============================================================================


class Connection:
    """An open session with one database, served by one worker thread.

    Create with :meth:`open`; release with :meth:`close` or ``async with``.
    """

    def __init__(
        self,
        storage: Storage,
        library: NativeLibrary,
        session_name: str,
        mode: SessionMode,
        worker_name_prefix: str,
    ):
        self.storage = storage
        self.session_name = session_name
        self.mode = mode
        self._library = library
        self._handle: Any = None
        self._auto_commit = True
        self._closing = threading.Event()
        self._close_future: asyncio.Future[None] | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=worker_name_prefix)
        self._log = logger.bind(storage=str(storage), session_name=session_name)

    @classmethod
    async def open(
        cls,
        storage: Storage,
        session_name: str | None = None,
        *,
        mode: SessionMode | None = None,
        library: NativeLibrary | None = None,
    ) -> Connection:
        """Connect on a fresh worker and apply the session mode.

        Args:
            storage: Where the database lives and how to authenticate.
            session_name: Name reported to the server; defaults to
                ``FrontbaseSettings.session_name``.
            mode: Overrides ``storage.mode``.
            library: Native engine; defaults to the ctypes support library.

        Raises:
            OpenError: Connecting or applying the session mode failed.
            ConfigError: The native support library could not be loaded.
        """
        settings = get_settings()
        connection = cls(
            storage,
            library if library is not None else load_library(),
            session_name or settings.session_name,
            mode or storage.mode,
            settings.worker_name_prefix,
        )
        try:
            await connection._submit(connection._connect)
        except BaseException:
            connection._closing.set()
            connection._executor.shutdown(wait=False)
            raise

        connection._log.info("connection.opened", mode=connection.mode.sql)
        return connection

    # ── State ────────────────────────────────────────────────────

    @property
    def is_closed(self) -> bool:
        return self._closing.is_set() or self._handle is None

    @property
    def auto_commit(self) -> bool:
        """Whether statements are committed individually."""
        return self._auto_commit

    # ── Queries ──────────────────────────────────────────────────

    async def query(
        self,
        sql: str,
        binds: Sequence[Any] = (),
        on_row: RowHandler | None = None,
    ) -> list[Row]:
        """Execute ``sql`` and return its rows.

        With ``on_row``, each row is handed to the callback on the event
        loop as it is fetched (sync or async callback) and an empty list is
        returned once every callback has completed.

        Raises:
            BindingArityError: Placeholder and value counts differ.
            ExecutionError: The engine rejected the statement.
            ConnectionClosedError: The connection was closed first.
        """
        statement = self._prepare(sql, binds)
        auto_commit = self._auto_commit

        if on_row is None:
            return await self._submit(self._execute, statement, binds, auto_commit, self._collect_rows)

        loop = asyncio.get_running_loop()
        scheduled: list[concurrent.futures.Future[None]] = []
        guard = threading.Lock()
        abandoned = threading.Event()

        def deliver(row: Row) -> None:
            with guard:
                if not abandoned.is_set():
                    scheduled.append(asyncio.run_coroutine_threadsafe(_call_row_handler(on_row, row), loop))

        def consume(result: Any) -> list[Row]:
            return self._stream_rows(result, deliver, stop=abandoned)

        try:
            await self._submit(self._execute, statement, binds, auto_commit, consume)
        except BaseException:
            # A cancelled caller leaves the worker running; it stops fetching
            # at the next row and nothing further is scheduled.
            with guard:
                abandoned.set()
            for outcome in await _settle(scheduled):
                if isinstance(outcome, BaseException):
                    self._log.warning("row_handler.failed", sql=sql, error=repr(outcome))
            raise
        for outcome in await _settle(scheduled):
            if isinstance(outcome, BaseException):
                raise outcome
        return []

    async def command(self, sql: str, binds: Sequence[Any] = ()) -> str | None:
        """Execute ``sql`` and return the engine's result message, if any."""
        statement = self._prepare(sql, binds)
        return await self._submit(
            self._execute, statement, binds, self._auto_commit, self._library.fetch_message
        )

    async def structure(self, sql: str, binds: Sequence[Any] = ()) -> list[StructureColumn]:
        """Execute ``sql`` and describe the columns of its result set."""
        statement = self._prepare(sql, binds)
        return await self._submit(
            self._execute, statement, binds, self._auto_commit, self._describe
        )

    def _prepare(self, sql: str, binds: Sequence[Any]) -> Statement:
        if self._closing.is_set():
            raise ConnectionClosedError().with_context(sql=sql)
        statement = Statement(sql)
        if len(binds) != statement.placeholder_count:
            raise BindingArityError(statement.placeholder_count, len(binds)).with_context(sql=sql)
        return statement

    # ── Transactions ─────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Connection]:
        """Run the block as one transaction.

        Commits when the block completes, rolls back when it raises.  A
        failing rollback is logged and the block's exception propagates.

        Raises:
            TransactionAlreadyOpenError: A transaction is already open.
        """
        if not self._auto_commit:
            raise TransactionAlreadyOpenError()

        self._auto_commit = False
        try:
            await self.query("VALUES 0")
        except BaseException:
            self._auto_commit = True
            raise
        self._log.debug("transaction.begun")

        try:
            yield self
        except BaseException as exc:
            self._auto_commit = True
            await self._rollback(exc)
            raise

        self._auto_commit = True
        await self.command("COMMIT")
        self._log.debug("transaction.committed")

    async def with_transaction(self, body: Callable[[Connection], Awaitable[T] | T]) -> T:
        """Call ``body(connection)`` inside :meth:`transaction` and return its result."""
        async with self.transaction():
            result = body(self)
            if inspect.isawaitable(result):
                result = await result
            return result

    async def _rollback(self, original: BaseException) -> None:
        try:
            await self.command("ROLLBACK")
        except Exception as e:
            self._log.error(
                "transaction.rollback_failed",
                error=str(e),
                original_error=str(original),
            )
        else:
            self._log.debug("transaction.rolled_back", reason=str(original))

    # ── Lifecycle ────────────────────────────────────────────────

    async def close(self) -> None:
        """Release the native handle and stop the worker.

        Units already queued ahead of the close fail with
        ``ConnectionClosedError``.  Calling ``close`` again is a no-op.
        """
        if self._close_future is None:
            self._closing.set()
            loop = asyncio.get_running_loop()
            self._close_future = loop.run_in_executor(self._executor, self._disconnect)
            self._close_future.add_done_callback(lambda _: self._executor.shutdown(wait=False))
        await asyncio.shield(self._close_future)

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is None:
            return
        warnings.warn(
            f"Connection to {self.storage} was garbage collected without close()",
            ResourceWarning,
            stacklevel=2,
        )
        logger.error("connection.leaked", storage=str(self.storage), session_name=self.session_name)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"Connection({self.storage!r}, session_name={self.session_name!r}, {state})"

    # ── Worker submission ────────────────────────────────────────

    async def _submit(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(*args)`` on the worker while the connection is open."""
        if self._closing.is_set():
            raise ConnectionClosedError()
        return await self._submit(self._guarded, fn, *args)

    def _guarded(self, fn: Callable[..., T], *args: Any) -> T:
        self._ensure_open()
        return fn(*args)

    def _ensure_open(self) -> None:
        if self._closing.is_set() or self._handle is None:
            raise ConnectionClosedError()

    # ── Worker-side units ────────────────────────────────────────
    # Everything below runs on the worker thread only.

    def _connect(self) -> None:
        system_user = os.environ.get("USER", "")
        try:
            self._handle = self.storage.connect(self._library, self.session_name, system_user)
        except NativeError as e:
            self._log.error("connection.open_failed", error=e.message)
            raise OpenError(
                f"Could not open database: {self.storage}",
                native_message=e.message,
                cause=e,
            ).with_context(storage=str(self.storage), session_name=self.session_name) from e

        try:
            result = self._library.execute(self._handle, self.mode.sql, True)
        except NativeError as e:
            self._log.error("connection.session_mode_failed", error=e.message)
            self._library.close_connection(self._handle)
            self._handle = None
            raise OpenError(
                "Could not set transaction isolation level on new connection",
                native_message=e.message,
                cause=e,
            ).with_context(sql=self.mode.sql, storage=str(self.storage)) from e
        self._library.close_result(result)

    def _disconnect(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            self._library.close_connection(handle)
            self._log.info("connection.closed")

    def _execute(
        self,
        statement: Statement,
        binds: Sequence[Any],
        auto_commit: bool,
        consume: Callable[[Any], T],
    ) -> T:
        self._ensure_open()
        sql = statement.bind(binds, self)
        if not sql.rstrip().endswith(";"):
            sql += ";"

        try:
            result = self._library.execute(self._handle, sql, auto_commit)
        except NativeError as e:
            self._log.debug("statement.failed", sql=sql, error=e.message)
            raise ExecutionError(
                "Statement execution failed",
                native_message=e.message,
                cause=e,
            ).with_context(sql=sql) from e

        try:
            self._ensure_open()
            outcome = consume(result)
        except NativeError as e:
            raise ExecutionError(
                "Fetching results failed",
                native_message=e.message,
                cause=e,
            ).with_context(sql=sql) from e
        finally:
            self._library.close_result(result)

        self._log.debug("statement.executed", sql=sql, auto_commit=auto_commit)
        return outcome

    def _stream_rows(
        self,
        result: Any,
        deliver: Callable[[Row], None],
        stop: threading.Event | None = None,
    ) -> list[Row]:
        while stop is None or not stop.is_set():
            native_row = self._library.fetch_row(result)
            if native_row is None:
                break
            try:
                row = decode_row(self._library, result, native_row, self)
            finally:
                self._library.release_row(native_row)
            deliver(row)
        return []

    def _collect_rows(self, result: Any) -> list[Row]:
        rows: list[Row] = []
        self._stream_rows(result, rows.append)
        return rows

    def _describe(self, result: Any) -> list[StructureColumn]:
        columns = []
        for index in range(self._library.column_count(result)):
            info = self._library.column_info(result, index)
            columns.append(StructureColumn(info.label, info.table, info.datatype, info.nullable))
        return columns

    # ── Blob support ─────────────────────────────────────────────

    def _blob_data(self, handle: str, size: int) -> bytes:
        try:
            return self._library.get_blob_data(self._handle, handle, size)
        except NativeError as e:
            raise ExecutionError(
                f"Could not fetch blob {handle}",
                category=ErrorCategory.BLOB,
                native_message=e.message,
                cause=e,
            ) from e

    def _create_blob(self, content: bytes) -> tuple[str, Any]:
        return self._library.create_blob_handle(self._handle, content)

    def _release_blob(self, native_blob: Any) -> None:
        self._library.release_blob_handle(native_blob)
        self._log.debug("blob.released")

    def _release_blob_soon(self, native_blob: Any) -> None:
        """Queue a release from a finalizer; may be called on any thread."""
        if self._closing.is_set():
            logger.warning("blob.leaked", reason="connection closing")
            return
        try:
            self._executor.submit(self._release_in_background, native_blob)
        except RuntimeError:
            logger.warning("blob.leaked", reason="worker stopped")

    def _release_in_background(self, native_blob: Any) -> None:
        if self._handle is None:
            logger.warning("blob.leaked", reason="connection closed")
            return
        try:
            self._release_blob(native_blob)
        except NativeError as e:
            self._log.warning("blob.release_failed", error=e.message)


async def _settle(futures: list[concurrent.futures.Future[None]]) -> list[Any]:
    return await asyncio.gather(*(asyncio.wrap_future(future) for future in futures), return_exceptions=True)


async def _call_row_handler(handler: RowHandler, row: Row) -> None:
    outcome = handler(row)
    if inspect.isawaitable(outcome):
        await outcome


__all__ = [
    "AccessMode",
    "Connection",
    "FileStorage",
    "IsolationLevel",
    "LockingMode",
    "NamedStorage",
    "SessionMode",
    "Storage",
]
