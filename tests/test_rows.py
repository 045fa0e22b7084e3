"""Tests for fbspine.rows."""

import pytest

from fbspine.native import DataType
from fbspine.rows import Column, Row, StructureColumn
from fbspine.values import NULL, Value


@pytest.fixture
def joined_row() -> Row:
    return Row(
        {
            Column("FOO", "ID"): Value.integer(1),
            Column("BAR", "ID"): Value.integer(2),
            Column(None, "TOTAL"): Value.decimal("9.90"),
            Column("FOO", "NOTE"): NULL,
        }
    )


class TestColumn:
    def test_str(self):
        assert str(Column("FOO", "ID")) == "FOO.ID"
        assert str(Column.of("ID")) == "ID"

    def test_table_is_part_of_identity(self):
        assert Column("FOO", "ID") != Column("BAR", "ID")
        assert Column("FOO", "ID") == Column("FOO", "ID")


class TestRowLookup:
    def test_lookup_by_name_returns_first_match(self, joined_row):
        assert joined_row["ID"] == Value.integer(1)
        assert joined_row.column("ID") == Value.integer(1)

    def test_lookup_by_table(self, joined_row):
        assert joined_row.first_value("ID", table="FOO") == Value.integer(1)
        assert joined_row.first_value("ID", table="BAR") == Value.integer(2)

    def test_column_without_table_matches_any_table(self, joined_row):
        assert joined_row.first_value("TOTAL", table="FOO") == Value.decimal("9.90")

    def test_lookup_by_column(self, joined_row):
        assert joined_row[Column("BAR", "ID")] == Value.integer(2)

    def test_missing(self, joined_row):
        assert joined_row.column("MISSING") is None
        assert joined_row.first_value("ID", table="BAZ") is None
        with pytest.raises(KeyError):
            joined_row["MISSING"]

    def test_contains(self, joined_row):
        assert "ID" in joined_row
        assert Column("FOO", "NOTE") in joined_row
        assert "MISSING" not in joined_row

    def test_null_value_is_present(self, joined_row):
        assert joined_row["NOTE"] is NULL


class TestRowMapping:
    def test_len_and_iteration(self, joined_row):
        assert len(joined_row) == 4
        assert list(joined_row)[0] == Column("FOO", "ID")

    def test_all_columns(self, joined_row):
        assert joined_row.all_columns == ["ID", "ID", "TOTAL", "NOTE"]

    def test_to_dict(self, joined_row):
        assert joined_row.to_dict() == {
            "FOO.ID": 1,
            "BAR.ID": 2,
            "TOTAL": "9.90",
            "FOO.NOTE": None,
        }

    def test_equality(self, joined_row):
        assert joined_row == Row(dict(joined_row.items()))
        assert joined_row != Row({})

    def test_repr(self):
        assert repr(Row({Column.of("A"): Value.text("x")})) == 'Row({A: "x"})'


class TestStructureColumn:
    def test_fields(self):
        column = StructureColumn("ID", "FOO", DataType.INTEGER, False)
        assert column.type is DataType.INTEGER
        assert not column.nullable
