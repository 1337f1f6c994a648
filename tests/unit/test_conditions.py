"""
Tests for condition trees and their compilation.
"""

import pytest

from rowmap.core.exceptions import DatabaseQueryError, RowmapValidationError
from rowmap.db.conditions import (
    And,
    Comparison,
    Not,
    Or,
    Raw,
    eq,
    expand_params,
    in_,
    is_identifier,
    is_null,
    ne,
    not_in,
    not_null,
    qualify,
    raw,
    to_condition,
)
from rowmap.db.dialect import Dialect, MySQLDialect

from entities import User, build_registry


@pytest.fixture
def dialect() -> Dialect:
    return Dialect()


class TestQualify:
    """Tests for column references."""

    def test_bare_column_gets_table(self, dialect):
        assert qualify("name", dialect, "users") == '"users"."name"'

    def test_dotted_column_kept(self, dialect):
        assert qualify("wallet.balance", dialect, "users") == '"wallet"."balance"'

    def test_no_table(self, dialect):
        assert qualify("name", dialect) == '"name"'

    def test_rejects_expressions(self, dialect):
        with pytest.raises(DatabaseQueryError):
            qualify("name; DROP TABLE users", dialect, "users")

    def test_is_identifier(self):
        assert is_identifier("users.id")
        assert not is_identifier("COUNT(*)")


class TestExpandParams:
    """Tests for list parameter expansion."""

    def test_plain_params_unchanged(self):
        assert expand_params("a = ? AND b = ?", [1, "x"]) == ("a = ? AND b = ?", [1, "x"])

    def test_list_expands(self):
        sql, params = expand_params("id IN ? AND age > ?", [[1, 2, 3], 18])
        assert sql == "id IN (?, ?, ?) AND age > ?"
        assert params == [1, 2, 3, 18]

    def test_empty_list_matches_nothing(self):
        sql, params = expand_params("id IN ?", [[]])
        assert sql == "id IN (NULL)"
        assert params == []

    def test_placeholders_in_literals_ignored(self):
        sql, params = expand_params("name = '?' AND id = ?", [1])
        assert params == [1]

    def test_count_mismatch_raises(self):
        with pytest.raises(DatabaseQueryError):
            expand_params("a = ? AND b = ?", [1])


class TestComparison:
    """Tests for comparison leaves."""

    def test_equality(self, dialect):
        assert eq("age", 18).compile(dialect, "users") == ('"users"."age" = ?', [18])

    def test_none_becomes_is_null(self, dialect):
        assert eq("deleted_at", None).compile(dialect) == ('"deleted_at" IS NULL', [])
        assert ne("deleted_at", None).compile(dialect) == ('"deleted_at" IS NOT NULL', [])
        assert is_null("a").compile(dialect) == ('"a" IS NULL', [])
        assert not_null("a").compile(dialect) == ('"a" IS NOT NULL', [])

    def test_list_becomes_in(self, dialect):
        assert eq("id", [1, 2]).compile(dialect) == ('"id" IN (?, ?)', [1, 2])
        assert in_("id", (3,)).compile(dialect) == ('"id" IN (?)', [3])

    def test_empty_list_is_constant(self, dialect):
        assert in_("id", []).compile(dialect) == ("1=0", [])
        assert not_in("id", []).compile(dialect) == ("1=1", [])
        assert ne("id", ()).compile(dialect) == ("1=1", [])

    def test_operator_is_normalized(self):
        assert Comparison("name", "like", "a%").op == "LIKE"

    def test_unknown_operator_rejected(self):
        with pytest.raises(RowmapValidationError):
            Comparison("name", "~~", "x")

    def test_list_with_ordering_operator_rejected(self, dialect):
        with pytest.raises(DatabaseQueryError):
            Comparison("age", ">", [1, 2]).compile(dialect)

    def test_mysql_quoting(self):
        assert eq("age", 1).compile(MySQLDialect(), "users") == ("`users`.`age` = ?", [1])


class TestTreeShape:
    """Trees keep the shape they were built in."""

    def test_and_then_or_is_grouped(self, dialect):
        a, b, c = raw("a = ?", 1), raw("b = ?", 2), raw("c = ?", 3)
        sql, params = Or((And((a, b)), c)).compile(dialect)
        assert sql == "(((a = ?) AND (b = ?)) OR (c = ?))"
        assert params == [1, 2, 3]

    def test_or_then_and_is_grouped(self, dialect):
        a, b, c = raw("a = ?", 1), raw("b = ?", 2), raw("c = ?", 3)
        sql, _ = And((Or((a, b)), c)).compile(dialect)
        assert sql == "(((a = ?) OR (b = ?)) AND (c = ?))"

    def test_not_wraps_child(self, dialect):
        sql, params = Not(eq("name", "x")).compile(dialect, "users")
        assert sql == 'NOT ("users"."name" = ?)'
        assert params == ["x"]

    def test_operators(self, dialect):
        node = (eq("a", 1) & eq("b", 2)) | ~eq("c", 3)
        sql, params = node.compile(dialect)
        assert sql == '(("a" = ? AND "b" = ?) OR NOT ("c" = ?))'
        assert params == [1, 2, 3]

    def test_raw_checks_placeholder_count(self):
        with pytest.raises(DatabaseQueryError):
            Raw("a = ? AND b = ?", (1,))


class TestToCondition:
    """Tests for the accepted where() argument forms."""

    @pytest.fixture
    def descriptor(self):
        return build_registry().get(User)

    def test_text(self, descriptor):
        node = to_condition("name = ?", "x", descriptor=descriptor)
        assert node == Raw("name = ?", ("x",))

    def test_mapping_keeps_zero_values(self, descriptor, dialect):
        node = to_condition({"password": "", "id": "1"}, descriptor=descriptor)
        sql, params = node.compile(dialect)
        assert sql == '("password" = ? AND "id" = ?)'
        assert params == ["", "1"]

    def test_entity_uses_non_zero_fields(self, descriptor, dialect):
        node = to_condition(User(password="secret"), descriptor=descriptor)
        assert node.compile(dialect) == ('"password" = ?', ["secret"])

    def test_zero_entity_yields_nothing(self, descriptor):
        assert to_condition(User(), descriptor=descriptor) is None

    def test_primary_key_values(self, descriptor, dialect):
        assert to_condition(5, descriptor=descriptor).compile(dialect) == ('"id" = ?', [5])
        assert to_condition([1, 2], descriptor=descriptor).compile(dialect) == (
            '"id" IN (?, ?)',
            [1, 2],
        )

    def test_params_with_non_text_rejected(self, descriptor):
        with pytest.raises(RowmapValidationError):
            to_condition({"a": 1}, 2, descriptor=descriptor)

    def test_unsupported_argument(self, descriptor):
        with pytest.raises(RowmapValidationError):
            to_condition(3.5, descriptor=descriptor)
