"""Tests for SQLite storage classes, value ordering and default literals."""

import pytest

from db_sync.schema.values import (
    StorageClass,
    compare_values,
    parse_default_literal,
    storage_class,
    values_equal,
)


# ============================================================
# Test: storage_class
# ============================================================


class TestStorageClass:
    """Python values map onto the five SQLite storage classes."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, StorageClass.NULL),
            (0, StorageClass.INTEGER),
            (True, StorageClass.INTEGER),
            (1.5, StorageClass.REAL),
            ("text", StorageClass.TEXT),
            (b"\x00", StorageClass.BLOB),
        ],
    )
    def test_storage_class(self, value, expected) -> None:
        assert storage_class(value) is expected

    def test_unsupported_type_raises(self) -> None:
        with pytest.raises(TypeError, match="list"):
            storage_class([1, 2])


# ============================================================
# Test: compare_values
# ============================================================


class TestCompareValues:
    """Values order the way SQLite orders them."""

    def test_null_sorts_before_everything(self) -> None:
        assert compare_values(None, 0) == -1
        assert compare_values(None, "") == -1
        assert compare_values(b"", None) == 1
        assert compare_values(None, None) == 0

    def test_numbers_compare_numerically_across_int_and_real(self) -> None:
        assert compare_values(2, 10) == -1
        assert compare_values(1, 1.0) == 0
        assert compare_values(2.5, 2) == 1

    def test_text_sorts_after_numbers(self) -> None:
        assert compare_values("10", 2) == 1
        assert compare_values(99999, "0") == -1

    def test_blob_sorts_after_text(self) -> None:
        assert compare_values("zzz", b"\x00") == -1

    def test_text_uses_binary_order(self) -> None:
        assert compare_values("B", "a") == -1
        assert compare_values("2024-01-02T00:00:00Z", "2024-01-01T23:59:59Z") == 1

    def test_blobs_compare_bytewise(self) -> None:
        assert compare_values(b"\x01", b"\x02") == -1
        assert compare_values(bytearray(b"ab"), b"ab") == 0

    def test_values_equal(self) -> None:
        assert values_equal(3, 3.0)
        assert not values_equal("3", 3)
        assert values_equal(None, None)


# ============================================================
# Test: parse_default_literal
# ============================================================


class TestParseDefaultLiteral:
    """Catalog default expressions become typed values."""

    @pytest.mark.parametrize(
        "expression, expected",
        [
            (None, None),
            ("NULL", None),
            ("null", None),
            ("TRUE", 1),
            ("FALSE", 0),
            ("0", 0),
            ("-5", -5),
            ("1.5", 1.5),
            ("1e3", 1000.0),
            ("'draft'", "draft"),
            ("'it''s'", "it's"),
            ("''", ""),
            ("X'00ff'", b"\x00\xff"),
        ],
    )
    def test_literals(self, expression, expected) -> None:
        result = parse_default_literal(expression)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize(
        "expression",
        ["CURRENT_TIMESTAMP", "(datetime('now'))", "'a' || 'b'"],
    )
    def test_expressions_returned_as_text(self, expression) -> None:
        assert parse_default_literal(expression) == expression
