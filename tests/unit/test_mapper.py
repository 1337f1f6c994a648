"""
Tests for entity <-> row mapping.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

import pytest

from rowmap.core.exceptions import MappingError
from rowmap.db.engine import RowSet
from rowmap.db.mapper import CREATE, UPDATE, convert_value, decode, encode, non_zero_values, scan

from entities import Name, User, UserLog, Wallet, build_registry

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class Color(Enum):
    RED = "red"


class TestConvertValue:
    """Tests for driver value conversion."""

    def test_passthrough(self):
        assert convert_value(None, int) is None
        assert convert_value("x", None) == "x"
        assert convert_value(3, int) == 3

    def test_text_timestamps(self):
        assert convert_value("2024-05-01 12:00:00+00:00", datetime) == NOW
        assert convert_value("2024-05-01 12:00:00", date) == date(2024, 5, 1)

    def test_datetime_to_date(self):
        assert convert_value(NOW, date) == date(2024, 5, 1)

    def test_bool_from_int(self):
        assert convert_value(1, bool) is True
        assert convert_value("f", bool) is False

    def test_numbers(self):
        assert convert_value("12", int) == 12
        assert convert_value(1.5, Decimal) == Decimal("1.5")

    def test_bytes(self):
        assert convert_value(memoryview(b"ab"), bytes) == b"ab"

    def test_enum(self):
        assert convert_value("red", Color) is Color.RED

    def test_unconvertible(self):
        with pytest.raises(ValueError):
            convert_value("abc", int)
        with pytest.raises(TypeError):
            convert_value("maybe", bool)


class TestDecode:
    """Tests for decoding rows."""

    @pytest.fixture
    def registry(self):
        return build_registry()

    def test_embedded_fields(self, registry):
        rowset = RowSet(
            columns=["id", "password", "first_name", "middle_name", "last_name"],
            rows=[("1", "pw", "Eko", "", "Khannedy")],
        )
        [user] = decode(registry.get(User), rowset)
        assert user.id == "1"
        assert user.name == Name("Eko", "", "Khannedy")
        assert user.created_at is None

    def test_prefix(self, registry):
        rowset = RowSet(columns=["wallet__id", "wallet__balance"], rows=[("w1", 10)])
        [wallet] = decode(registry.get(Wallet), rowset, prefix="wallet__")
        assert wallet == Wallet(id="w1", balance=10)

    def test_conversion_failure(self, registry):
        rowset = RowSet(columns=["id", "balance"], rows=[("w1", "lots")])
        with pytest.raises(MappingError) as exc_info:
            decode(registry.get(Wallet), rowset)
        assert exc_info.value.context["column"] == "balance"

    def test_required_column_missing(self):
        from rowmap.db.descriptor import Registry, column

        @dataclass
        class Strict:
            id: int

        descriptor = Registry().register(Strict, table="strict", fields=[column("id")])
        with pytest.raises(MappingError):
            decode(descriptor, RowSet(columns=["other"], rows=[(1,)]))


class TestScan:
    """Tests for scanning into arbitrary targets."""

    def test_plain_dataclass(self):
        @dataclass
        class Pair:
            id: str = ""
            total: int = 0

        rowset = RowSet(columns=["id", "total", "extra"], rows=[("a", "3")])
        assert scan(rowset, Pair) == [Pair("a", 3)]

    def test_dict(self):
        rowset = RowSet(columns=["a", "b"], rows=[(1, 2)])
        assert scan(rowset, dict) == [{"a": 1, "b": 2}]

    def test_not_a_dataclass(self):
        with pytest.raises(MappingError):
            scan(RowSet(columns=["a"], rows=[(1,)]), int)


class TestEncode:
    """Tests for building column/value pairs."""

    @pytest.fixture
    def registry(self):
        return build_registry()

    def test_create_stamps_times(self, registry):
        user = User(id="1", name=Name(first_name="Eko"))
        pairs = dict(encode(user, registry.get(User), CREATE, NOW))
        assert pairs["created_at"] == NOW
        assert pairs["updated_at"] == NOW
        assert user.created_at == NOW
        assert "information" not in pairs

    def test_create_keeps_given_times(self, registry):
        earlier = datetime(2020, 1, 1, tzinfo=timezone.utc)
        user = User(id="1", created_at=earlier)
        assert dict(encode(user, registry.get(User), CREATE, NOW))["created_at"] == earlier

    def test_create_skips_unset_auto_increment(self, registry):
        pairs = dict(encode(UserLog(action="login"), registry.get(UserLog), CREATE, NOW))
        assert "id" not in pairs
        pairs = dict(encode(UserLog(id=7), registry.get(UserLog), CREATE, NOW))
        assert pairs["id"] == 7

    def test_update_respects_write_modes(self, registry):
        user = User(id="1", password="pw")
        pairs = dict(encode(user, registry.get(User), UPDATE, NOW))
        assert "id" not in pairs
        assert "created_at" not in pairs
        assert pairs["updated_at"] == NOW
        assert pairs["password"] == "pw"

    def test_non_zero_values(self, registry):
        user = User(id="1", name=Name(last_name="K"))
        assert non_zero_values(user, registry.get(User)) == [("id", "1"), ("last_name", "K")]
