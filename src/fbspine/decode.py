"""
Native column decoding.

This is the one place where native type tags become :class:`Value` kinds.
Decoding is a two-level table dispatch:

    1. ``COLUMN_DECODERS[column_type]`` for statically typed columns.
    2. ``ANY TYPE`` columns first read the dynamic type tag of the cell,
       then dispatch through ``ANY_TYPE_DECODERS[dynamic_type]``, which uses
       the ``get_any_type_*`` getter family.

Types without a value kind (DATE, TIME, TIME WITH TIME ZONE, TIMESTAMP WITH
TIME ZONE, INTERVAL YEAR TO MONTH, CIRCA DATE) raise :class:`DecodeError`;
they are never mapped to NULL.

Decimals are rebuilt from the native double formatted at the column's scale,
so ``12.50`` decodes to ``Decimal("12.50")`` rather than the nearest binary
fraction.  Only when the scale is unavailable does decoding fall back to
``Decimal(float)``.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from fbspine.blob import Blob
from fbspine.errors import DecodeError
from fbspine.native.protocol import ColumnInfo, DataType, NativeLibrary
from fbspine.rows import Column, Row
from fbspine.values import NULL, Value, timestamp_from_native

if TYPE_CHECKING:
    from fbspine.connection import Connection


@dataclass(frozen=True)
class Cell:
    """One column of one fetched row, plus the getter family to read it."""

    library: NativeLibrary
    result: Any
    row: Any
    index: int
    connection: Connection
    any_type: bool = False

    def get(self, name: str) -> Any:
        prefix = "get_any_type_" if self.any_type else "get_"
        return getattr(self.library, prefix + name)(self.row, self.index)

    def scale(self) -> int:
        getter = self.library.get_any_type_scale if self.any_type else self.library.get_scale
        return getter(self.result, self.row, self.index)

    def is_null(self) -> bool:
        if self.any_type:
            return self.library.any_type_is_null(self.row, self.index)
        return self.library.is_null(self.row, self.index)


Decoder = Callable[[Cell], Value]


def _getter(name: str, wrap: Callable[[Any], Value]) -> Decoder:
    def decode(cell: Cell) -> Value:
        return wrap(cell.get(name))

    return decode


def _decimal(cell: Cell) -> Value:
    number = cell.get("decimal")
    scale = cell.scale()
    if scale >= 0 and math.isfinite(number):
        return Value.decimal(Decimal(f"{number:.{scale}f}"))
    return Value.decimal(Decimal(number))


def _timestamp(cell: Cell) -> Value:
    return Value.timestamp(timestamp_from_native(cell.get("timestamp")))


def _blob(cell: Cell) -> Value:
    handle, size = cell.get("blob_handle")
    return Value.blob(Blob.from_handle(handle, size, cell.connection))


def _any_type(cell: Cell) -> Value:
    dynamic = cell.library.any_type_type(cell.row, cell.index)
    return _dispatch(ANY_TYPE_DECODERS, dynamic, Cell(
        cell.library, cell.result, cell.row, cell.index, cell.connection, any_type=True,
    ))


_integer = _getter("integer", Value.integer)
_numeric = _getter("numeric", Value.float)

ANY_TYPE_DECODERS: dict[DataType, Decoder] = {
    DataType.PRIMARY_KEY: _integer,
    DataType.BOOLEAN: _getter("boolean", Value.boolean),
    DataType.INTEGER: _integer,
    DataType.SMALL_INTEGER: _getter("short_integer", Value.integer),
    DataType.TINY_INTEGER: _getter("tiny_integer", Value.integer),
    DataType.LONG_INTEGER: _getter("long_integer", Value.integer),
    DataType.FLOAT: _numeric,
    DataType.REAL: _getter("real", Value.float),
    DataType.DOUBLE: _numeric,
    DataType.NUMERIC: _numeric,
    DataType.DECIMAL: _decimal,
    DataType.CHARACTER: _getter("character", Value.text),
    DataType.VCHARACTER: _getter("character", Value.text),
    DataType.BIT: _getter("bits", Value.bits),
    DataType.VBIT: _getter("bits", Value.bits),
    DataType.TIMESTAMP: _timestamp,
    DataType.CLOB: _blob,
    DataType.BLOB: _blob,
}

COLUMN_DECODERS: dict[DataType, Decoder] = {
    **ANY_TYPE_DECODERS,
    DataType.DAY_TIME: _getter("day_time", Value.float),
    DataType.ANY_TYPE: _any_type,
}


def _dispatch(table: dict[DataType, Decoder], datatype: DataType, cell: Cell) -> Value:
    if cell.is_null():
        return NULL
    decoder = table.get(datatype)
    if decoder is None:
        raise DecodeError(datatype)
    return decoder(cell)


def decode_column(
    library: NativeLibrary,
    result: Any,
    row: Any,
    index: int,
    info: ColumnInfo,
    connection: Connection,
) -> Value:
    """Decode one native cell according to its column type."""
    try:
        return _dispatch(COLUMN_DECODERS, info.datatype, Cell(library, result, row, index, connection))
    except DecodeError as e:
        if e.column is None:
            raise DecodeError(e.datatype, column=str(Column(info.table, info.label))) from None
        raise


def decode_row(library: NativeLibrary, result: Any, row: Any, connection: Connection) -> Row:
    """Materialize a fetched native row."""
    data: dict[Column, Value] = {}
    for index in range(library.column_count(result)):
        info = library.column_info(result, index)
        data[Column(info.table, info.label)] = decode_column(library, result, row, index, info, connection)
    return Row(data)


__all__ = [
    "ANY_TYPE_DECODERS",
    "COLUMN_DECODERS",
    "Cell",
    "decode_column",
    "decode_row",
]
