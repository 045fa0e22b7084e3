"""Result rows and columns.

A row maps ``Column(table, name)`` to ``Value``.  Joins may expose the same
column name from several tables; those columns stay distinct because the
table is part of the column identity.

Lookup by name alone (``row["id"]``) returns the first match in iteration
order, which follows the native column order.  When the name is ambiguous,
pass the table: ``row.first_value("id", table="orders")``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from fbspine.native.protocol import DataType
from fbspine.values import Value


@dataclass(frozen=True)
class Column:
    """Result column identity: optional table plus label."""

    table: str | None
    name: str

    @classmethod
    def of(cls, name: str) -> Column:
        return cls(None, name)

    def __str__(self) -> str:
        return f"{self.table}.{self.name}" if self.table is not None else self.name


@dataclass(frozen=True)
class StructureColumn:
    """Column description returned by ``Connection.structure``."""

    name: str
    table: str | None
    type: DataType
    nullable: bool


class Row(Mapping[Column, Value]):
    """Read-only mapping of columns to values for one result row."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[Column, Value]):
        self._data = dict(data)

    def __getitem__(self, key: Column | str) -> Value:
        if isinstance(key, str):
            value = self.column(key)
            if value is None:
                raise KeyError(key)
            return value
        return self._data[key]

    def __iter__(self) -> Iterator[Column]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            return any(column.name == key for column in self._data)
        return key in self._data

    def column(self, name: str) -> Value | None:
        """Value of the first column labelled ``name``, in any table."""
        for column, value in self._data.items():
            if column.name == name:
                return value
        return None

    def first_value(self, name: str, table: str | None = None) -> Value | None:
        """Value of the first column labelled ``name`` belonging to ``table``.

        A column without a table matches any ``table``; ``table=None``
        matches columns of every table.
        """
        for column, value in self._data.items():
            if column.name != name:
                continue
            if column.table is None or table is None or column.table == table:
                return value
        return None

    @property
    def all_columns(self) -> list[str]:
        """Column labels, without table qualification."""
        return [column.name for column in self._data]

    def to_dict(self) -> dict[str, Any]:
        """Plain ``{"table.name": payload}`` mapping for logging and JSON."""
        return {str(column): value.to_python() for column, value in self._data.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        inner = ", ".join(f"{column}: {value}" for column, value in self._data.items())
        return f"Row({{{inner}}})"


__all__ = [
    "Column",
    "Row",
    "StructureColumn",
]
