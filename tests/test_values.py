"""Tests for fbspine.values (value model and literal rendering)."""

import math
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fbspine.blob import Blob
from fbspine.errors import BindError
from fbspine.values import (
    INT64_MAX,
    INT64_MIN,
    NULL,
    REFERENCE_DATE,
    TIMESTAMP_FORMATTERS,
    TimestampFormatter,
    Value,
    ValueKind,
    timestamp_from_native,
    timestamp_to_native,
)


class TestConstructors:
    def test_null_singleton(self):
        assert Value.null() is NULL
        assert NULL.is_null

    def test_integer_range(self):
        assert Value.integer(INT64_MAX).payload == INT64_MAX
        assert Value.integer(INT64_MIN).payload == INT64_MIN
        with pytest.raises(ValueError):
            Value.integer(INT64_MAX + 1)

    def test_decimal_from_string(self):
        assert Value.decimal("12.50").payload == Decimal("12.50")

    def test_naive_timestamp_taken_as_utc(self):
        value = Value.timestamp(datetime(2024, 1, 2, 3, 4, 5))
        assert value.payload.tzinfo is UTC

    def test_blob_from_bytes(self):
        value = Value.blob(b"abc")
        assert value.kind is ValueKind.BLOB
        assert value.payload.content == b"abc"


class TestEquality:
    def test_kind_is_part_of_identity(self):
        assert Value.integer(1) != Value.boolean(True)
        assert Value.integer(1) != Value.float(1.0)

    def test_same_kind_and_payload(self):
        assert Value.text("x") == Value.text("x")
        assert Value.bits(b"\x01") == Value.bits(bytearray(b"\x01"))

    def test_blobs_compare_by_handle(self):
        a = Value.blob(Blob(handle="@'01'", size=3))
        b = Value.blob(Blob(handle="@'01'", size=3))
        c = Value.blob(b"abc")
        d = Value.blob(b"abc")
        assert a == b
        assert c != d


class TestLiteralRendering:
    """Value.sql renders unambiguous literals."""

    @pytest.mark.parametrize(
        "value, literal",
        [
            (NULL, "NULL"),
            (Value.boolean(True), "TRUE"),
            (Value.boolean(False), "FALSE"),
            (Value.integer(-42), "-42"),
            (Value.float(1.5), "1.5"),
            (Value.float(1e-7), "1e-07"),
            (Value.decimal("12.50"), "12.50"),
            (Value.decimal("1E+3"), "1000"),
            (Value.text("plain"), "'plain'"),
            (Value.text(""), "''"),
            (Value.text("it's"), "'it''s'"),
            (Value.bits(b"\xde\xad\xbe\xef"), "X'DEADBEEF'"),
        ],
    )
    def test_literal(self, value, literal):
        assert value.sql(None) == literal

    def test_unicode_text(self):
        text = "Ünïcödé ✓ 日本語 é"
        assert Value.text(text).sql(None) == f"'{text}'"

    def test_timestamp(self):
        value = Value.timestamp(datetime(2024, 1, 2, 3, 4, 5, 6, tzinfo=UTC))
        assert value.sql(None) == "TIMESTAMP '2024-01-02 03:04:05.000006'"

    def test_timestamp_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = Value.timestamp(datetime(2024, 1, 1, 12, 0, tzinfo=plus_two))
        assert value.sql(None) == "TIMESTAMP '2024-01-01 10:00:00.000000'"

    @pytest.mark.parametrize("number", [math.inf, -math.inf, math.nan])
    def test_non_finite_float_rejected(self, number):
        with pytest.raises(BindError):
            Value.float(number).sql(None)

    def test_non_finite_decimal_rejected(self):
        with pytest.raises(BindError):
            Value.decimal("NaN").sql(None)

    def test_nul_in_text_rejected(self):
        with pytest.raises(BindError):
            Value.text("a\x00b").sql(None)


class TestTimestampFormatter:
    def test_table_covers_all_precisions(self):
        assert sorted(TIMESTAMP_FORMATTERS) == list(range(7))

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            TIMESTAMP_FORMATTERS[7] = TimestampFormatter(6)

    def test_invalid_precision(self):
        with pytest.raises(ValueError):
            TimestampFormatter(7)

    def test_round_half_up(self):
        instant = datetime(2024, 1, 1, 0, 0, 0, 123500, tzinfo=UTC)
        assert TIMESTAMP_FORMATTERS[3].format(instant) == "2024-01-01 00:00:00.124"

    def test_round_down(self):
        instant = datetime(2024, 1, 1, 0, 0, 0, 123499, tzinfo=UTC)
        assert TIMESTAMP_FORMATTERS[3].format(instant) == "2024-01-01 00:00:00.123"

    def test_rounding_carries_into_seconds(self):
        instant = datetime(2024, 12, 31, 23, 59, 59, 999500, tzinfo=UTC)
        assert TIMESTAMP_FORMATTERS[3].format(instant) == "2025-01-01 00:00:00.000"

    def test_precision_zero(self):
        instant = datetime(2024, 1, 1, 0, 0, 1, 500000, tzinfo=UTC)
        assert TIMESTAMP_FORMATTERS[0].format(instant) == "2024-01-01 00:00:02"


class TestNativeTimestamps:
    def test_reference_date(self):
        assert timestamp_from_native(0.0) == REFERENCE_DATE

    def test_fractional_seconds(self):
        assert timestamp_from_native(86400.5) == datetime(2001, 1, 2, 0, 0, 0, 500000, tzinfo=UTC)

    def test_before_reference_date(self):
        assert timestamp_from_native(-1.0) == datetime(2000, 12, 31, 23, 59, 59, tzinfo=UTC)

    def test_inverse(self):
        instant = datetime(2023, 6, 1, 12, 30, 15, 250000, tzinfo=UTC)
        assert timestamp_from_native(timestamp_to_native(instant)) == instant


class TestDescriptions:
    def test_str(self):
        assert str(NULL) == "null"
        assert str(Value.boolean(True)) == "true"
        assert str(Value.text("x")) == '"x"'
        assert str(Value.bits(b"\x0a")) == "X'0A'"
        assert str(Value.integer(3)) == "3"

    def test_to_python(self):
        assert Value.decimal("1.50").to_python() == "1.50"
        assert Value.integer(3).to_python() == 3
        assert Value.timestamp(REFERENCE_DATE).to_python() == "2001-01-01T00:00:00+00:00"
        assert Value.blob(Blob(handle="@'01'", size=1)).to_python() == "@'01'"
