"""ctypes binding to the native Frontbase support library.

The support library is a thin C shim over FBCAccess (``libFrontbaseSupport``)
exposing plain functions with C types only.  This module declares the
signature of every entry point and wraps them as a
:class:`~fbspine.native.protocol.NativeLibrary`.

Install or build the shim, then point the driver at it::

    export FRONTBASE_LIBRARY_PATH=/opt/frontbase/lib

The binding is import-guarded: nothing is loaded at import time, and a
missing library raises :class:`~fbspine.errors.ConfigError` on first use.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any

from fbspine.errors import ConfigError, NativeError
from fbspine.logging import get_logger
from fbspine.settings import get_settings

from .protocol import ColumnInfo, datatype_of

logger = get_logger(__name__)

LIBRARY_NAME = "FrontbaseSupport"

_c_char_pp = ctypes.POINTER(ctypes.c_char_p)


class _FBSColumnInfo(ctypes.Structure):
    _fields_ = [
        ("tableName", ctypes.c_char_p),
        ("labelName", ctypes.c_char_p),
        ("datatype", ctypes.c_int),
        ("isNullable", ctypes.c_bool),
    ]


# name -> (restype, argtypes)
_SIGNATURES: dict[str, tuple[Any, list[Any]]] = {
    "fbsConnectDatabaseOnHost": (
        ctypes.c_void_p,
        [ctypes.c_char_p] * 7 + [_c_char_pp],
    ),
    "fbsConnectDatabaseAtPath": (
        ctypes.c_void_p,
        [ctypes.c_char_p] * 7 + [_c_char_pp],
    ),
    "fbsCloseConnection": (None, [ctypes.c_void_p]),
    "fbsErrorMessage": (ctypes.c_char_p, [ctypes.c_void_p]),
    "fbsExecuteSQL": (
        ctypes.c_void_p,
        [ctypes.c_void_p, ctypes.c_char_p, ctypes.c_bool, _c_char_pp],
    ),
    "fbsCloseResult": (None, [ctypes.c_void_p]),
    "fbsFetchMessage": (ctypes.c_char_p, [ctypes.c_void_p]),
    "fbsFetchRow": (ctypes.c_void_p, [ctypes.c_void_p]),
    "fbsReleaseRow": (None, [ctypes.c_void_p]),
    "fbsGetColumnCount": (ctypes.c_uint, [ctypes.c_void_p]),
    "fbsGetColumnInfoAtIndex": (_FBSColumnInfo, [ctypes.c_void_p, ctypes.c_uint]),
    "fbsIsNull": (ctypes.c_bool, [ctypes.c_void_p, ctypes.c_uint]),
    "fbsAnyTypeIsNull": (ctypes.c_bool, [ctypes.c_void_p, ctypes.c_uint]),
    "fbsGetAnyTypeType": (ctypes.c_int, [ctypes.c_void_p, ctypes.c_uint]),
    "fbsGetBlobData": (ctypes.c_void_p, [ctypes.c_void_p, ctypes.c_char_p]),
    "fbsReleaseBlobData": (None, [ctypes.c_void_p]),
    "fbsCreateBlobHandle": (
        ctypes.c_void_p,
        [ctypes.c_void_p, ctypes.c_uint, ctypes.c_void_p],
    ),
    "fbsGetBlobHandleString": (ctypes.c_char_p, [ctypes.c_void_p]),
    "fbsReleaseBlobHandle": (None, [ctypes.c_void_p]),
}

_ROW_COLUMN = [ctypes.c_void_p, ctypes.c_uint]
_RESULT_ROW_COLUMN = [ctypes.c_void_p, ctypes.c_void_p, ctypes.c_uint]

# Typed getters exist twice: fbsGet<Kind> and fbsGetAnyType<Kind>.
_GETTERS: dict[str, tuple[Any, list[Any]]] = {
    "Boolean": (ctypes.c_bool, _ROW_COLUMN),
    "TinyInteger": (ctypes.c_longlong, _ROW_COLUMN),
    "ShortInteger": (ctypes.c_longlong, _ROW_COLUMN),
    "Integer": (ctypes.c_longlong, _ROW_COLUMN),
    "LongInteger": (ctypes.c_longlong, _ROW_COLUMN),
    "Numeric": (ctypes.c_double, _ROW_COLUMN),
    "Real": (ctypes.c_double, _ROW_COLUMN),
    "Decimal": (ctypes.c_double, _ROW_COLUMN),
    "Scale": (ctypes.c_long, _RESULT_ROW_COLUMN),
    "Character": (ctypes.c_char_p, _ROW_COLUMN),
    "BlobHandle": (ctypes.c_char_p, _ROW_COLUMN + [ctypes.POINTER(ctypes.c_uint)]),
    "Timestamp": (ctypes.c_double, _ROW_COLUMN),
    "BitSize": (ctypes.c_uint, _ROW_COLUMN),
    "BitBytes": (ctypes.c_void_p, _ROW_COLUMN),
}

for _kind, _signature in _GETTERS.items():
    _SIGNATURES[f"fbsGet{_kind}"] = _signature
    _SIGNATURES[f"fbsGetAnyType{_kind}"] = _signature
_SIGNATURES["fbsGetDayTime"] = (ctypes.c_double, _ROW_COLUMN)


def _encode(value: str | None) -> bytes | None:
    return None if value is None else value.encode("utf-8")


def _decode(value: bytes | None) -> str | None:
    return None if value is None else value.decode("utf-8", errors="replace")


def _candidates(configured: Path | None) -> list[str]:
    """Library locations to try, most specific first."""
    suffix = {"darwin": ".dylib", "win32": ".dll"}.get(sys.platform, ".so")
    filename = f"lib{LIBRARY_NAME}{suffix}"
    candidates: list[str] = []
    if configured is not None:
        candidates.append(str(configured / filename if configured.is_dir() else configured))
    found = ctypes.util.find_library(LIBRARY_NAME)
    if found:
        candidates.append(found)
    candidates.extend(
        str(Path(prefix) / filename)
        for prefix in ("/usr/local/lib", "/Library/FrontBase/lib", "/usr/lib")
    )
    return candidates


class CFrontbaseLibrary:
    """NativeLibrary implementation backed by ``ctypes.CDLL``."""

    def __init__(self, cdll: ctypes.CDLL):
        self._lib = cdll
        for name, (restype, argtypes) in _SIGNATURES.items():
            function = getattr(cdll, name)
            function.restype = restype
            function.argtypes = argtypes

    # ── Connections ──────────────────────────────────────────────

    def _connect(self, entry_point: str, *arguments: str | None) -> Any:
        error = ctypes.c_char_p()
        handle = getattr(self._lib, entry_point)(
            *(_encode(argument) for argument in arguments), ctypes.byref(error)
        )
        if not handle:
            raise NativeError(_decode(error.value))
        return handle

    def connect_on_host(self, database, host, database_password, username, password, session_name, system_user):
        return self._connect(
            "fbsConnectDatabaseOnHost",
            database, host, database_password, username, password, session_name, system_user,
        )

    def connect_at_path(self, database, path, database_password, username, password, session_name, system_user):
        return self._connect(
            "fbsConnectDatabaseAtPath",
            database, path, database_password, username, password, session_name, system_user,
        )

    def close_connection(self, connection: Any) -> None:
        self._lib.fbsCloseConnection(connection)

    # ── Statements and result sets ───────────────────────────────

    def execute(self, connection: Any, sql: str, auto_commit: bool) -> Any:
        error = ctypes.c_char_p()
        result = self._lib.fbsExecuteSQL(connection, _encode(sql), auto_commit, ctypes.byref(error))
        if error.value is not None:
            if result:
                self._lib.fbsCloseResult(result)
            raise NativeError(_decode(error.value))
        return result

    def close_result(self, result: Any) -> None:
        if result:
            self._lib.fbsCloseResult(result)

    def fetch_message(self, result: Any) -> str | None:
        return _decode(self._lib.fbsFetchMessage(result))

    def fetch_row(self, result: Any) -> Any | None:
        if not result:
            return None
        return self._lib.fbsFetchRow(result) or None

    def release_row(self, row: Any) -> None:
        self._lib.fbsReleaseRow(row)

    def column_count(self, result: Any) -> int:
        return self._lib.fbsGetColumnCount(result)

    def column_info(self, result: Any, index: int) -> ColumnInfo:
        info = self._lib.fbsGetColumnInfoAtIndex(result, index)
        return ColumnInfo.from_native(
            _decode(info.tableName) or "",
            _decode(info.labelName) or "",
            info.datatype,
            info.isNullable,
        )

    # ── Typed getters ────────────────────────────────────────────

    def is_null(self, row, index):
        return self._lib.fbsIsNull(row, index)

    def get_boolean(self, row, index):
        return self._lib.fbsGetBoolean(row, index)

    def get_tiny_integer(self, row, index):
        return self._lib.fbsGetTinyInteger(row, index)

    def get_short_integer(self, row, index):
        return self._lib.fbsGetShortInteger(row, index)

    def get_integer(self, row, index):
        return self._lib.fbsGetInteger(row, index)

    def get_long_integer(self, row, index):
        return self._lib.fbsGetLongInteger(row, index)

    def get_numeric(self, row, index):
        return self._lib.fbsGetNumeric(row, index)

    def get_real(self, row, index):
        return self._lib.fbsGetReal(row, index)

    def get_decimal(self, row, index):
        return self._lib.fbsGetDecimal(row, index)

    def get_scale(self, result, row, index):
        return self._lib.fbsGetScale(result, row, index)

    def get_character(self, row, index):
        return _decode(self._lib.fbsGetCharacter(row, index)) or ""

    def get_bits(self, row, index):
        return self._bits("", row, index)

    def get_blob_handle(self, row, index):
        return self._blob_handle("", row, index)

    def get_timestamp(self, row, index):
        return self._lib.fbsGetTimestamp(row, index)

    def get_day_time(self, row, index):
        return self._lib.fbsGetDayTime(row, index)

    # ── ANY TYPE getters ─────────────────────────────────────────

    def any_type_type(self, row, index):
        return datatype_of(self._lib.fbsGetAnyTypeType(row, index))

    def any_type_is_null(self, row, index):
        return self._lib.fbsAnyTypeIsNull(row, index)

    def get_any_type_boolean(self, row, index):
        return self._lib.fbsGetAnyTypeBoolean(row, index)

    def get_any_type_tiny_integer(self, row, index):
        return self._lib.fbsGetAnyTypeTinyInteger(row, index)

    def get_any_type_short_integer(self, row, index):
        return self._lib.fbsGetAnyTypeShortInteger(row, index)

    def get_any_type_integer(self, row, index):
        return self._lib.fbsGetAnyTypeInteger(row, index)

    def get_any_type_long_integer(self, row, index):
        return self._lib.fbsGetAnyTypeLongInteger(row, index)

    def get_any_type_numeric(self, row, index):
        return self._lib.fbsGetAnyTypeNumeric(row, index)

    def get_any_type_real(self, row, index):
        return self._lib.fbsGetAnyTypeReal(row, index)

    def get_any_type_decimal(self, row, index):
        return self._lib.fbsGetAnyTypeDecimal(row, index)

    def get_any_type_scale(self, result, row, index):
        return self._lib.fbsGetAnyTypeScale(result, row, index)

    def get_any_type_character(self, row, index):
        return _decode(self._lib.fbsGetAnyTypeCharacter(row, index)) or ""

    def get_any_type_bits(self, row, index):
        return self._bits("AnyType", row, index)

    def get_any_type_blob_handle(self, row, index):
        return self._blob_handle("AnyType", row, index)

    def get_any_type_timestamp(self, row, index):
        return self._lib.fbsGetAnyTypeTimestamp(row, index)

    def _bits(self, family: str, row: Any, index: int) -> bytes:
        size = getattr(self._lib, f"fbsGet{family}BitSize")(row, index)
        pointer = getattr(self._lib, f"fbsGet{family}BitBytes")(row, index)
        return ctypes.string_at(pointer, size) if pointer and size else b""

    def _blob_handle(self, family: str, row: Any, index: int) -> tuple[str, int]:
        size = ctypes.c_uint(0xFFFFFFFF)
        handle = getattr(self._lib, f"fbsGet{family}BlobHandle")(row, index, ctypes.byref(size))
        return _decode(handle) or "", size.value

    # ── Blobs ────────────────────────────────────────────────────

    def get_blob_data(self, connection: Any, handle: str, size: int) -> bytes:
        pointer = self._lib.fbsGetBlobData(connection, _encode(handle))
        if not pointer:
            raise NativeError(_decode(self._lib.fbsErrorMessage(connection)))
        try:
            return ctypes.string_at(pointer, size)
        finally:
            self._lib.fbsReleaseBlobData(pointer)

    def create_blob_handle(self, connection: Any, data: bytes) -> tuple[str, Any]:
        buffer = ctypes.create_string_buffer(data, len(data))
        blob = self._lib.fbsCreateBlobHandle(buffer, len(data), connection)
        if not blob:
            raise NativeError(_decode(self._lib.fbsErrorMessage(connection)))
        return _decode(self._lib.fbsGetBlobHandleString(blob)) or "", blob

    def release_blob_handle(self, blob: Any) -> None:
        self._lib.fbsReleaseBlobHandle(blob)


@lru_cache(maxsize=4)
def load_library(path: Path | None = None) -> CFrontbaseLibrary:
    """Locate, load and cache the native support library.

    Args:
        path: Library file or directory; defaults to
            ``FrontbaseSettings.library_path``.

    Raises:
        ConfigError: No candidate location could be loaded.
    """
    configured = path if path is not None else get_settings().library_path
    failures: list[str] = []
    for candidate in _candidates(configured):
        try:
            cdll = ctypes.CDLL(candidate)
        except OSError as e:
            failures.append(f"{candidate}: {e}")
            continue
        logger.debug("native.library_loaded", path=candidate)
        return CFrontbaseLibrary(cdll)

    raise ConfigError(
        f"Could not load lib{LIBRARY_NAME}. Set FRONTBASE_LIBRARY_PATH to the "
        "directory containing the native support library."
    ).with_context(candidates=failures)


__all__ = [
    "CFrontbaseLibrary",
    "LIBRARY_NAME",
    "load_library",
]
