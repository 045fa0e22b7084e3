"""Native engine boundary.

Modules
-------
protocol    NativeLibrary protocol, DataType tags, ColumnInfo
library     ctypes binding to the C support shim (loaded on first use)

The ctypes module is not imported here so that ``import fbspine`` never
touches the shared library.
"""

from .protocol import NO_TABLE, ColumnInfo, DataType, NativeLibrary, datatype_of

__all__ = [
    "NO_TABLE",
    "ColumnInfo",
    "DataType",
    "NativeLibrary",
    "datatype_of",
]
