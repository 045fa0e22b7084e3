"""
Structured error types for the fbspine driver.

Every failure the driver can surface to a caller is a ``FrontbaseError``
subclass.  Errors carry a category for routing, an ``ErrorContext`` with the
SQL text or storage descriptor involved, and the chained native or Python
exception as ``cause``.

Manifesto:
    - **Typed taxonomy:** One class per failure surface (bind, open, execute,
      closed connection, blob creation, reentrant transaction, decode)
    - **Native text preserved:** The engine's own message is kept verbatim,
      it is usually the only actionable diagnostic
    - **No retries here:** native errors surface as-is;
      retry policy belongs to the caller
    - **Translated at the boundary:** ``NativeError`` never escapes
      ``fbspine.connection`` untranslated

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                      FrontbaseError                          │
        │            (category, context, cause, native_message)        │
        ├─────────────────────────────────────────────────────────────┤
        │  BindError            OpenError         ExecutionError       │
        │  (PARSE)              (CONNECTION)      (EXECUTION)          │
        │     │                                        │               │
        │  BindingArityError                      DecodeError          │
        │                                                              │
        │  ConnectionClosedError   BlobCreationError                   │
        │  TransactionAlreadyOpenError             ConfigError         │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ExecutionError("Syntax error at line 1", native_message="...")
    >>> error.category
    <ErrorCategory.EXECUTION: 'EXECUTION'>
    >>> error.with_context(sql="SELEC 1").context.sql
    'SELEC 1'

Guardrails:
    ❌ DON'T: Raise bare ``RuntimeError`` from driver code
    ✅ DO: Pick the FrontbaseError subclass for the failure surface

    ❌ DON'T: Rewrite or truncate the native engine's message
    ✅ DO: Pass it through as ``native_message``

Tags:
    error-handling, exception-hierarchy, error-context, fbspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and log routing.

    Attributes:
        PARSE: Statement parse or bind failure, never reaches the engine
        CONNECTION: Open, session setup or closed-connection failures
        EXECUTION: Native execute or fetch failures
        DECODE: Native column data with no matching value kind
        BLOB: Native blob handle allocation or fetch failures
        TRANSACTION: Transaction bracketing misuse
        CONFIG: Native library missing, invalid settings
        INTERNAL: Bugs, unexpected state
    """

    PARSE = "PARSE"
    CONNECTION = "CONNECTION"
    EXECUTION = "EXECUTION"
    DECODE = "DECODE"
    BLOB = "BLOB"
    TRANSACTION = "TRANSACTION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        sql: Statement text (bound form when available)
        storage: Redacted description of the storage descriptor
        session_name: Session name used when the connection was opened
        metadata: Additional key-value pairs
    """

    sql: str | None = None
    storage: str | None = None
    session_name: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["sql", "storage", "session_name"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FrontbaseError(Exception):
    """
    Base exception for all driver errors.

    Subclasses set ``default_category``.  When the failure originated in the
    native engine, ``native_message`` holds its text exactly as returned and
    is appended to the string form of the error.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        native_message: str | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.native_message = native_message
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FrontbaseError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ExecutionError("Failed").with_context(sql=statement.sql)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.native_message is not None:
            result["native_message"] = self.native_message
        if context := self.context.to_dict():
            result["context"] = context
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __str__(self) -> str:
        if self.native_message and self.native_message not in self.message:
            return f"{self.message} ({self.native_message})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# NATIVE BOUNDARY
# =============================================================================


class NativeError(Exception):
    """Failure reported by the native engine.

    Raised only by ``NativeLibrary`` implementations; the connection
    translates it into one of the ``FrontbaseError`` subclasses below.
    """

    def __init__(self, message: str | None = None):
        self.message = message or "Unknown native error"
        super().__init__(self.message)


# =============================================================================
# PARSE / BIND ERRORS
# =============================================================================


class BindError(FrontbaseError):
    """A value could not be rendered into the statement text."""

    default_category = ErrorCategory.PARSE


class BindingArityError(BindError):
    """Placeholder count does not match the number of bound values."""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Invalid number of parameters: statement has {expected} "
            f"placeholder(s), {received} value(s) bound"
        )


# =============================================================================
# CONNECTION ERRORS
# =============================================================================


class OpenError(FrontbaseError):
    """Connecting or configuring the session mode failed."""

    default_category = ErrorCategory.CONNECTION


class ConnectionClosedError(FrontbaseError):
    """Operation attempted after the native handle was released."""

    default_category = ErrorCategory.CONNECTION

    def __init__(self, message: str = "Connection has been closed", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(FrontbaseError):
    """Native execute or fetch failed; carries the native message verbatim."""

    default_category = ErrorCategory.EXECUTION


class DecodeError(ExecutionError):
    """Native column type has no corresponding value kind."""

    default_category = ErrorCategory.DECODE

    def __init__(self, datatype: Any, column: str | None = None):
        self.datatype = datatype
        self.column = column
        where = f" in column {column}" if column else ""
        super().__init__(f"Unexpected column type {getattr(datatype, 'name', datatype)}{where}")


class BlobCreationError(FrontbaseError):
    """Native blob handle allocation failed while rendering a literal."""

    default_category = ErrorCategory.BLOB


class TransactionAlreadyOpenError(FrontbaseError):
    """A transaction is already in progress on this connection."""

    default_category = ErrorCategory.TRANSACTION

    def __init__(self, message: str = "A transaction is already in progress"):
        super().__init__(message)


class ConfigError(FrontbaseError):
    """
    Configuration error.

    Raised when the native support library cannot be located or loaded.
    """

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FrontbaseError",
    "NativeError",
    "BindError",
    "BindingArityError",
    "OpenError",
    "ConnectionClosedError",
    "ExecutionError",
    "DecodeError",
    "BlobCreationError",
    "TransactionAlreadyOpenError",
    "ConfigError",
]
