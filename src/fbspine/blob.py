"""Large-object values with lazy fetch and driver-owned handle release.

A ``Blob`` is in one of three states:

==================  =========================  ===============================
State               How it arises              Holds
==================  =========================  ===============================
unrealized          fetched from a BLOB/CLOB   engine handle + declared size
                    column
materialized        ``Blob.from_bytes(data)``  content only
handle + content    bound into a statement,    content + driver-created
                    or unrealized then read    handle (or engine handle)
==================  =========================  ===============================

Native work (create, fetch, release) always runs on the owning connection's
worker.  The blob keeps only a weak reference to that connection: it never
extends the connection's lifetime.

Handles the driver created are released exactly once, by ``await
blob.release()`` or, as a fallback, when the blob is garbage collected.
Handles handed out by the engine for fetched columns are never released by
the driver.
"""

from __future__ import annotations

import threading
import weakref
from typing import TYPE_CHECKING, Any

from fbspine.errors import BlobCreationError, ConnectionClosedError, NativeError
from fbspine.logging import get_logger

if TYPE_CHECKING:
    from fbspine.connection import Connection

logger = get_logger(__name__)


class Blob:
    """Large object referenced by a native handle and/or held in memory."""

    def __init__(
        self,
        *,
        content: bytes | None = None,
        handle: str | None = None,
        size: int | None = None,
        connection: Connection | None = None,
    ):
        self._content = content
        self._handle = handle
        self._size = size
        self._native_blob: Any = None
        self._connection_ref = weakref.ref(connection) if connection is not None else None
        self._lock = threading.Lock()

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> Blob:
        """Client-side blob; gets a handle when first bound to a connection."""
        return cls(content=bytes(data))

    @classmethod
    def from_handle(cls, handle: str, size: int, connection: Connection) -> Blob:
        """Blob for a fetched column; content is read on first access."""
        return cls(handle=handle, size=size, connection=connection)

    # ── State ────────────────────────────────────────────────────

    @property
    def handle(self) -> str | None:
        return self._handle

    @property
    def content(self) -> bytes | None:
        """Cached content, or None while unrealized. Never triggers a fetch."""
        return self._content

    @property
    def size(self) -> int:
        """Declared size, known without loading the content."""
        if self._size is not None:
            return self._size
        return len(self._content) if self._content is not None else 0

    @property
    def owns_handle(self) -> bool:
        """Whether the handle was created by this driver and must be released."""
        return self._native_blob is not None

    def _connection(self) -> Connection | None:
        return self._connection_ref() if self._connection_ref is not None else None

    # ── Content ──────────────────────────────────────────────────

    async def read(self) -> bytes:
        """Return the content, fetching it through the connection once."""
        if self._content is not None:
            return self._content

        connection = self._connection()
        if connection is None:
            raise ConnectionClosedError("Connection owning this blob no longer exists")
        return await connection._run(self._fetch, connection)

    def _fetch(self, connection: Connection) -> bytes:
        with self._lock:
            if self._content is None:
                self._content = connection._blob_data(self._handle, self.size)
                logger.debug("blob.fetched", handle=self._handle, size=self._size)
            return self._content

    # ── Handles ──────────────────────────────────────────────────

    def ensure_handle(self, connection: Connection) -> str:
        """Return the handle string, creating a native handle on first bind.

        Runs on ``connection``'s worker thread.

        Raises:
            BlobCreationError: The engine refused to allocate the handle.
        """
        with self._lock:
            if self._connection_ref is None:
                self._connection_ref = weakref.ref(connection)

            if self._handle is None:
                if self._content is None:
                    raise BlobCreationError("Blob has neither content nor a handle")
                try:
                    self._handle, self._native_blob = connection._create_blob(self._content)
                except NativeError as e:
                    raise BlobCreationError(
                        "Could not create blob handle",
                        native_message=e.message,
                        cause=e,
                    ) from e
                logger.debug("blob.handle_created", handle=self._handle, size=len(self._content))

            return self._handle

    def _take_native_blob(self) -> Any:
        with self._lock:
            native_blob, self._native_blob = self._native_blob, None
            if native_blob is not None:
                self._handle = None
            return native_blob

    async def release(self) -> None:
        """Release a driver-created handle now. No-op otherwise."""
        handle = self._handle
        native_blob = self._take_native_blob()
        if native_blob is None:
            return

        connection = self._connection()
        if connection is None or connection.is_closed:
            logger.warning("blob.release_skipped", handle=handle, reason="connection closed")
            return
        await connection._run(connection._release_blob, native_blob)

    def __del__(self) -> None:
        native_blob = getattr(self, "_native_blob", None)
        if native_blob is None:
            return
        self._native_blob = None

        connection = self._connection()
        if connection is None or connection.is_closed:
            logger.warning("blob.leaked", handle=self._handle)
            return
        connection._release_blob_soon(native_blob)

    # ── Identity ─────────────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Blob):
            return NotImplemented
        if self is other:
            return True
        return self._handle is not None and self._handle == other._handle

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if self._handle is not None:
            return self._handle
        if self._content is not None:
            return f"{len(self._content)} bytes of data"
        return "Unknown blob"

    def __repr__(self) -> str:
        return f"Blob(handle={self._handle!r}, size={self.size}, materialized={self._content is not None})"


__all__ = [
    "Blob",
]
