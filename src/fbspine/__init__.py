"""
fbspine - asyncio driver for the Frontbase SQL engine.

Wraps the synchronous native client library: statements with ``?``
placeholders are bound as literal SQL, executed on one worker thread per
connection, and their rows decoded into a small closed set of values.

Modules
-------
connection  Connection.open / query / command / structure / transactions
statement   ``?`` placeholder tokenizer and binder
values      Value model and literal SQL rendering
decode      Native column decoding (two-level type dispatch)
blob        Lazily fetched large objects with managed handles
rows        Row and Column
convert     Python <-> Value conversion
errors      FrontbaseError hierarchy
settings    FRONTBASE_* environment settings
logging     structlog configuration
native      Native engine protocol and ctypes binding
testing     In-memory native engine for tests

Example::

    from fbspine import Connection, NamedStorage

    async with await Connection.open(NamedStorage("Universe", "localhost", "_system")) as conn:
        for row in await conn.query("SELECT name FROM planets WHERE id > ?", [2]):
            print(row["name"])
"""

from fbspine.blob import Blob
from fbspine.connection import (
    AccessMode,
    Connection,
    FileStorage,
    IsolationLevel,
    LockingMode,
    NamedStorage,
    SessionMode,
)
from fbspine.convert import Bit96, BlobSize, ValueConvertible, from_value, register_reader, to_value
from fbspine.errors import (
    BindError,
    BindingArityError,
    BlobCreationError,
    ConfigError,
    ConnectionClosedError,
    DecodeError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    FrontbaseError,
    OpenError,
    TransactionAlreadyOpenError,
)
from fbspine.native.protocol import DataType
from fbspine.rows import Column, Row, StructureColumn
from fbspine.settings import FrontbaseSettings, get_settings
from fbspine.statement import Statement
from fbspine.values import NULL, Value, ValueKind

__version__ = "0.1.0"

__all__ = [
    # Connections
    "AccessMode",
    "Connection",
    "FileStorage",
    "IsolationLevel",
    "LockingMode",
    "NamedStorage",
    "SessionMode",
    # Statements and values
    "NULL",
    "Blob",
    "Bit96",
    "BlobSize",
    "Column",
    "DataType",
    "Row",
    "Statement",
    "StructureColumn",
    "Value",
    "ValueConvertible",
    "ValueKind",
    "from_value",
    "register_reader",
    "to_value",
    # Errors
    "BindError",
    "BindingArityError",
    "BlobCreationError",
    "ConfigError",
    "ConnectionClosedError",
    "DecodeError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "FrontbaseError",
    "OpenError",
    "TransactionAlreadyOpenError",
    # Settings
    "FrontbaseSettings",
    "get_settings",
]
