"""SQLite scalar values as a tagged variant.

SQLite stores every value in one of five storage classes.  The Python
driver already returns them as distinct types (``None``, ``int``,
``float``, ``str``, ``bytes``); this module makes the tag explicit and
orders values the way SQLite itself does, so merge decisions never depend
on Python's own cross-type comparison rules.

Usage:
    from db_sync.schema.values import StorageClass, compare_values

    storage_class(3)                  # StorageClass.INTEGER
    compare_values(None, 0)           # -1 (NULL sorts first)
    compare_values(1, 1.0)            # 0
    compare_values("2024-01-02", 5)   # 1 (TEXT sorts after numbers)
"""

import re
from enum import Enum

SqlValue = int | float | str | bytes | None


class StorageClass(str, Enum):
    """SQLite storage classes."""

    NULL = "null"
    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"
    BLOB = "blob"


# INTEGER and REAL share a rank: they compare numerically.
_SORT_RANK = {
    StorageClass.NULL: 0,
    StorageClass.INTEGER: 1,
    StorageClass.REAL: 1,
    StorageClass.TEXT: 2,
    StorageClass.BLOB: 3,
}

_INTEGER_LITERAL = re.compile(r"^[+-]?\d+$")
_REAL_LITERAL = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_BLOB_LITERAL = re.compile(r"^[xX]'([0-9a-fA-F]*)'$")


def storage_class(value: SqlValue) -> StorageClass:
    """Return the storage class of a Python value read from SQLite.

    Raises:
        TypeError: If the value is not one of the five SQLite types.
    """
    if value is None:
        return StorageClass.NULL
    if isinstance(value, int):
        return StorageClass.INTEGER
    if isinstance(value, float):
        return StorageClass.REAL
    if isinstance(value, str):
        return StorageClass.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return StorageClass.BLOB
    raise TypeError(f"Unsupported SQLite value type: {type(value).__name__}")


def compare_values(left: SqlValue, right: SqlValue) -> int:
    """Compare two values using SQLite's ordering rules.

    NULL < INTEGER/REAL < TEXT < BLOB.  Numbers compare numerically,
    TEXT uses binary collation and BLOBs compare bytewise.

    Returns:
        -1, 0 or 1.

    Examples:
        >>> compare_values(None, None)
        0
        >>> compare_values(2, 10)
        -1
        >>> compare_values("10", 2)
        1
    """
    left_rank = _SORT_RANK[storage_class(left)]
    right_rank = _SORT_RANK[storage_class(right)]
    if left_rank != right_rank:
        return -1 if left_rank < right_rank else 1
    if left is None:
        return 0
    if isinstance(left, (bytearray, memoryview)):
        left = bytes(left)
    if isinstance(right, (bytearray, memoryview)):
        right = bytes(right)
    if left == right:
        return 0
    return -1 if left < right else 1


def values_equal(left: SqlValue, right: SqlValue) -> bool:
    """True when SQLite would consider both values equal."""
    return compare_values(left, right) == 0


def parse_default_literal(expression: str | None) -> SqlValue:
    """Convert a catalog default expression into a typed value.

    ``PRAGMA table_info`` reports defaults as SQL text.  Literals are
    converted to their storage class; anything else (``CURRENT_TIMESTAMP``,
    ``(datetime('now'))``) is returned unchanged as text.

    Examples:
        >>> parse_default_literal("'draft'")
        'draft'
        >>> parse_default_literal("0")
        0
        >>> parse_default_literal("X'00ff'")
        b'\\x00\\xff'
        >>> parse_default_literal(None) is None
        True
    """
    if expression is None:
        return None

    text = expression.strip()
    upper = text.upper()

    if upper == "NULL":
        return None
    if upper == "TRUE":
        return 1
    if upper == "FALSE":
        return 0
    if _INTEGER_LITERAL.match(text):
        return int(text)
    if _REAL_LITERAL.match(text):
        return float(text)
    if len(text) >= 2 and text[0] == text[-1] == "'":
        inner = text[1:-1]
        # 'a' || 'b' also starts and ends with a quote
        if "'" not in inner.replace("''", ""):
            return inner.replace("''", "'")

    blob = _BLOB_LITERAL.match(text)
    if blob:
        return bytes.fromhex(blob.group(1))

    return text
