"""
Tests for per-backend SQL rendering.
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from rowmap.core.exceptions import DatabaseQueryError
from rowmap.db.dialect import (
    Dialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    count_placeholders,
    dialect_for,
    split_placeholders,
)


class TestPlaceholders:
    """Tests for placeholder scanning."""

    def test_split(self):
        assert split_placeholders("a = ? AND b = ?") == ["a = ", " AND b = ", ""]

    def test_quoted_question_marks_ignored(self):
        assert count_placeholders("""SELECT '?', "?", `?` WHERE a = ?""") == 1


class TestRender:
    """Tests for paramstyle rewriting."""

    def test_qmark_passthrough(self):
        assert Dialect("qmark").render("a = ?", [1]) == ("a = ?", (1,))

    def test_format(self):
        sql, params = Dialect("format").render("a = ? AND b LIKE '10%'", [1])
        assert sql == "a = %s AND b LIKE '10%%'"
        assert params == (1,)

    def test_pyformat_behaves_like_format(self):
        sql, _ = Dialect("pyformat").render("a = ?", [1])
        assert sql == "a = %s"

    def test_numeric(self):
        sql, _ = Dialect("numeric").render("a = ? AND b = ?", [1, 2])
        assert sql == "a = :1 AND b = :2"

    def test_named(self):
        sql, params = Dialect("named").render("a = ? AND b = ?", [1, 2])
        assert sql == "a = :p1 AND b = :p2"
        assert params == {"p1": 1, "p2": 2}

    def test_mismatch_raises(self):
        with pytest.raises(DatabaseQueryError):
            Dialect("format").render("a = ?", [])

    def test_unknown_paramstyle(self):
        with pytest.raises(DatabaseQueryError):
            Dialect("weird").render("a = ?", [1])


class TestQuoting:
    def test_dotted(self):
        assert Dialect().quote("users.id") == '"users"."id"'

    def test_star(self):
        assert Dialect().quote("users.*") == '"users".*'

    def test_embedded_quote_doubled(self):
        assert Dialect().quote('we"ird') == '"we""ird"'

    def test_mysql_backticks(self):
        assert MySQLDialect().quote("users.id") == "`users`.`id`"


class TestClauses:
    """Tests for upsert, lock, limit and default-values rendering."""

    def test_upsert_do_nothing(self):
        assert Dialect().upsert_clause(["id"], []) == ' ON CONFLICT ("id") DO NOTHING'

    def test_upsert_update(self):
        clause = PostgresDialect().upsert_clause(["id"], ["name"])
        assert clause == ' ON CONFLICT ("id") DO UPDATE SET "name" = excluded."name"'

    def test_mysql_upsert(self):
        assert MySQLDialect().upsert_clause(["id"], ["name"]) == (
            " ON DUPLICATE KEY UPDATE `name` = VALUES(`name`)"
        )
        assert MySQLDialect().upsert_clause(["id"], []) == " ON DUPLICATE KEY UPDATE `id` = `id`"

    def test_lock_options(self):
        assert Dialect().lock_clause("UPDATE") == " FOR UPDATE"
        assert Dialect().lock_clause("SHARE", nowait=True) == " FOR SHARE NOWAIT"
        assert Dialect().lock_clause("UPDATE", skip_locked=True) == " FOR UPDATE SKIP LOCKED"

    def test_sqlite_has_no_locks(self):
        assert SQLiteDialect().lock_clause("UPDATE") == ""

    def test_limit_offset(self):
        assert Dialect().limit_clause(10, 5) == " LIMIT 10 OFFSET 5"
        assert Dialect().limit_clause(None, None) == ""

    def test_offset_without_limit(self):
        assert SQLiteDialect().limit_clause(None, 3) == " LIMIT -1 OFFSET 3"
        assert MySQLDialect().limit_clause(None, 3) == " LIMIT 18446744073709551615 OFFSET 3"
        assert PostgresDialect().limit_clause(None, 3) == " OFFSET 3"

    def test_default_values(self):
        assert Dialect().default_values_clause() == " DEFAULT VALUES"
        assert MySQLDialect().default_values_clause() == " () VALUES ()"


class TestSQLiteValues:
    def test_datetimes_become_text(self):
        moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert SQLiteDialect().adapt_value(moment) == "2024-01-02 03:04:05+00:00"
        assert SQLiteDialect().adapt_value(date(2024, 1, 2)) == "2024-01-02"

    def test_other_values_untouched(self):
        assert SQLiteDialect().adapt_value(3) == 3


class TestDialectFor:
    """Tests for picking a dialect from an SQLAlchemy dialect."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("postgresql", PostgresDialect),
            ("mysql", MySQLDialect),
            ("mariadb", MySQLDialect),
            ("sqlite", SQLiteDialect),
            ("oracle", Dialect),
        ],
    )
    def test_by_name(self, name, expected):
        sa_dialect = SimpleNamespace(name=name, paramstyle="format", insert_returning=True)
        dialect = dialect_for(sa_dialect)
        assert type(dialect) is expected
        assert dialect.paramstyle == "format"

    def test_sqlite_returning_follows_driver(self):
        old = SimpleNamespace(name="sqlite", paramstyle="qmark", insert_returning=False)
        assert dialect_for(old).supports_returning is False
