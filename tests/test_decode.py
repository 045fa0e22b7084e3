"""Tests for fbspine.decode (native column decoding)."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from fbspine.blob import Blob
from fbspine.decode import ANY_TYPE_DECODERS, COLUMN_DECODERS, decode_row
from fbspine.errors import DecodeError, ExecutionError, FrontbaseError
from fbspine.native import NO_TABLE, ColumnInfo, DataType
from fbspine.rows import Column
from fbspine.testing import AnyTypeCell, FakeColumn, FakeNativeLibrary
from fbspine.values import NULL, Value


class _Owner:
    """Stands in for the connection that owns fetched blobs."""


def decode_rows(library: FakeNativeLibrary, columns, rows, owner=None):
    library.respond("SELECT * FROM t", columns=columns, rows=rows)
    handle = library.connect_at_path("t", "/tmp/t", None, "_SYSTEM", "", "tests", "tester")
    result = library.execute(handle, "SELECT * FROM t;", True)
    owner = owner or _Owner()
    decoded = []
    while (row := library.fetch_row(result)) is not None:
        decoded.append(decode_row(library, result, row, owner))
    return decoded


def decode_one(column: FakeColumn, cell):
    (row,) = decode_rows(FakeNativeLibrary(), [column], [[cell]])
    return row[column.label]


class TestStaticTypes:
    @pytest.mark.parametrize(
        "datatype, cell, expected",
        [
            (DataType.PRIMARY_KEY, 17, Value.integer(17)),
            (DataType.BOOLEAN, True, Value.boolean(True)),
            (DataType.INTEGER, -5, Value.integer(-5)),
            (DataType.SMALL_INTEGER, 32767, Value.integer(32767)),
            (DataType.TINY_INTEGER, -128, Value.integer(-128)),
            (DataType.LONG_INTEGER, 2**62, Value.integer(2**62)),
            (DataType.FLOAT, 1.25, Value.float(1.25)),
            (DataType.REAL, 0.5, Value.float(0.5)),
            (DataType.DOUBLE, 3.75, Value.float(3.75)),
            (DataType.NUMERIC, 9.5, Value.float(9.5)),
            (DataType.CHARACTER, "fixed", Value.text("fixed")),
            (DataType.VCHARACTER, "Ünïcödé ✓", Value.text("Ünïcödé ✓")),
            (DataType.BIT, b"\x01\x02", Value.bits(b"\x01\x02")),
            (DataType.VBIT, b"\xff", Value.bits(b"\xff")),
            (DataType.DAY_TIME, 3600.0, Value.float(3600.0)),
        ],
    )
    def test_decode(self, datatype, cell, expected):
        assert decode_one(FakeColumn("C", datatype), cell) == expected

    def test_timestamp(self):
        value = decode_one(FakeColumn("C", DataType.TIMESTAMP), 86400.25)
        assert value == Value.timestamp(datetime(2001, 1, 2, 0, 0, 0, 250000, tzinfo=UTC))

    def test_null(self):
        assert decode_one(FakeColumn("C", DataType.INTEGER), None) is NULL

    def test_null_of_unsupported_type_is_null(self):
        assert decode_one(FakeColumn("C", DataType.DATE), None) is NULL


class TestDecimals:
    def test_exact_at_declared_scale(self):
        value = decode_one(FakeColumn("C", DataType.DECIMAL, scale=2), 12.5)
        assert value == Value.decimal(Decimal("12.50"))
        assert str(value.payload) == "12.50"

    def test_binary_fraction_is_not_leaked(self):
        value = decode_one(FakeColumn("C", DataType.DECIMAL, scale=1), 0.1)
        assert value.payload == Decimal("0.1")

    def test_fallback_without_scale(self):
        value = decode_one(FakeColumn("C", DataType.DECIMAL, scale=-1), 0.5)
        assert value.payload == Decimal(0.5)


class TestBlobs:
    def test_blob_column_is_unrealized(self):
        owner = _Owner()
        library = FakeNativeLibrary()
        cell = library.store_blob(b"content")
        (row,) = decode_rows(library, [FakeColumn("B", DataType.BLOB)], [[cell]], owner)

        blob = row["B"].payload
        assert isinstance(blob, Blob)
        assert blob.handle == cell[0]
        assert blob.size == 7
        assert blob.content is None
        assert library.blob_fetches == 0


class TestUnsupportedTypes:
    @pytest.mark.parametrize(
        "datatype",
        [
            DataType.DATE,
            DataType.TIME,
            DataType.TIME_TZ,
            DataType.TIMESTAMP_TZ,
            DataType.YEAR_MONTH,
            DataType.CIRCA_DATE,
            DataType.UNDECIDED,
        ],
    )
    def test_decode_error(self, datatype):
        with pytest.raises(DecodeError) as excinfo:
            decode_one(FakeColumn("C", datatype, table="T"), 1.0)
        assert excinfo.value.datatype == datatype
        assert excinfo.value.column == "T.C"

    def test_decode_error_is_execution_error(self):
        with pytest.raises(ExecutionError, match="Unexpected column type DATE"):
            decode_one(FakeColumn("C", DataType.DATE), 1.0)


class TestUnknownTypeCodes:
    def test_column_info_rejects_unknown_code(self):
        with pytest.raises(DecodeError, match="Unexpected column type 99") as excinfo:
            ColumnInfo.from_native("T", "C", 99, True)
        assert isinstance(excinfo.value, FrontbaseError)
        assert excinfo.value.datatype == 99

    def test_column_info_maps_no_table(self):
        info = ColumnInfo.from_native(NO_TABLE, "C", int(DataType.INTEGER), 0)
        assert info == ColumnInfo(None, "C", DataType.INTEGER, False)

    def test_unknown_column_code_while_decoding(self):
        with pytest.raises(DecodeError):
            decode_one(FakeColumn("C", 99, table="T"), 1)

    def test_unknown_any_type_code(self):
        with pytest.raises(DecodeError) as excinfo:
            decode_one(FakeColumn("A", DataType.ANY_TYPE, table="T"), AnyTypeCell(99, 1))
        assert excinfo.value.datatype == 99
        assert excinfo.value.column == "T.A"


class TestAnyType:
    """ANY TYPE columns dispatch a second time on the dynamic type."""

    def test_dispatch_tables(self):
        assert DataType.ANY_TYPE in COLUMN_DECODERS
        assert DataType.ANY_TYPE not in ANY_TYPE_DECODERS
        assert DataType.DAY_TIME not in ANY_TYPE_DECODERS

    @pytest.mark.parametrize(
        "cell, expected",
        [
            (AnyTypeCell(DataType.INTEGER, 5), Value.integer(5)),
            (AnyTypeCell(DataType.BOOLEAN, False), Value.boolean(False)),
            (AnyTypeCell(DataType.VCHARACTER, "any"), Value.text("any")),
            (AnyTypeCell(DataType.DOUBLE, 2.5), Value.float(2.5)),
            (AnyTypeCell(DataType.BIT, b"\x0f"), Value.bits(b"\x0f")),
        ],
    )
    def test_decode(self, cell, expected):
        assert decode_one(FakeColumn("A", DataType.ANY_TYPE), cell) == expected

    def test_decimal_uses_scale(self):
        column = FakeColumn("A", DataType.ANY_TYPE, scale=2)
        assert decode_one(column, AnyTypeCell(DataType.DECIMAL, 1.5)).payload == Decimal("1.50")

    def test_null(self):
        assert decode_one(FakeColumn("A", DataType.ANY_TYPE), AnyTypeCell(DataType.INTEGER, None)) is NULL

    def test_day_time_is_unsupported(self):
        with pytest.raises(DecodeError) as excinfo:
            decode_one(FakeColumn("A", DataType.ANY_TYPE), AnyTypeCell(DataType.DAY_TIME, 1.0))
        assert excinfo.value.datatype == DataType.DAY_TIME


class TestDecodeRow:
    def test_join_keeps_same_named_columns_apart(self):
        (row,) = decode_rows(
            FakeNativeLibrary(),
            [FakeColumn("ID", DataType.INTEGER, table="FOO"), FakeColumn("ID", DataType.INTEGER, table="BAR")],
            [[1, 2]],
        )
        assert len(row) == 2
        assert row[Column("FOO", "ID")] == Value.integer(1)
        assert row[Column("BAR", "ID")] == Value.integer(2)
        assert row.first_value("ID", table="FOO") == Value.integer(1)
        assert row.first_value("ID", table="BAR") == Value.integer(2)

    def test_column_order_follows_native_order(self):
        (row,) = decode_rows(
            FakeNativeLibrary(),
            [FakeColumn("B", DataType.INTEGER), FakeColumn("A", DataType.INTEGER)],
            [[1, 2]],
        )
        assert row.all_columns == ["B", "A"]
