"""
Integration tests for the fluent query builder.
"""

from dataclasses import dataclass

import pytest

from rowmap.core.exceptions import DatabaseQueryError, RowmapValidationError
from rowmap.db import eq, in_, like, not_in

from entities import Name, User

pytestmark = pytest.mark.integration


@dataclass
class UserName:
    id: str = ""
    first_name: str = ""


def ids(users):
    return [u.id for u in users]


class TestConditions:
    """Tests for where/or_/not_ against real rows."""

    def test_text_condition(self, db, users):
        found = db.model(User).where("first_name = ?", "User 5").find()
        assert ids(found) == ["5"]

    def test_or(self, db, users):
        found = (
            db.model(User)
            .where("first_name = ?", "User 1")
            .or_("first_name = ?", "User 2")
            .order("id")
            .find()
        )
        assert ids(found) == ["1", "2"]

    def test_and_then_or_keeps_grouping(self, db, users):
        query = (
            db.model(User)
            .where("first_name = ?", "User 1")
            .where("password = ?", "wrong")
            .or_("id = ?", "3")
        )
        assert ids(query.find()) == ["3"]

    def test_not(self, db, users):
        found = db.model(User).not_("id = ?", "1").order("id").find()
        assert ids(found) == [str(i) for i in range(2, 10)]

    def test_mapping(self, db, users):
        assert ids(db.model(User).where({"id": "4", "password": "rahasia"}).find()) == ["4"]

    def test_entity_uses_non_zero_fields(self, db, users):
        found = db.model(User).where(User(name=Name(first_name="User 6"))).find()
        assert ids(found) == ["6"]

    def test_condition_nodes(self, db, users):
        query = db.model(User).where(in_("id", ["1", "2", "3"]) & ~eq("id", "2"))
        assert sorted(ids(query.find())) == ["1", "3"]
        assert db.model(User).where(like("first_name", "User 7%")).count() == 1

    def test_empty_lists(self, db, users):
        assert db.model(User).where(in_("id", [])).count() == 0
        assert db.model(User).where(not_in("id", [])).count() == 9

    def test_list_parameter_expands(self, db, users):
        assert db.model(User).where("id IN ?", ["1", "9"]).count() == 2
        assert db.model(User).where("id IN ?", []).count() == 0

    def test_placeholder_mismatch(self, db):
        with pytest.raises(DatabaseQueryError):
            db.model(User).where("id = ? AND password = ?", "1")

    def test_bad_sql_is_query_error(self, db):
        with pytest.raises(DatabaseQueryError):
            db.model(User).where("no_such_column = ?", 1).find()


class TestBuilder:
    """Tests for builder immutability, paging and projections."""

    def test_builder_calls_do_not_mutate(self, db, users):
        base = db.model(User).where("id <> ?", "1")
        limited = base.limit(2)
        assert base.count() == 8
        assert len(limited.find()) == 2
        assert len(base.find()) == 8

    def test_order_limit_offset(self, db, users):
        found = db.model(User).order("id desc").limit(3).offset(2).find()
        assert ids(found) == ["7", "6", "5"]

    def test_offset_without_limit(self, db, users):
        assert ids(db.model(User).order("id").offset(7).find()) == ["8", "9"]

    def test_negative_limit_removes_cap(self, db, users):
        assert len(db.model(User).limit(2).limit(-1).find()) == 9

    def test_select_into(self, db, users):
        found = db.model(User).select("id", "first_name").where("id = ?", "2").into(UserName).find()
        assert found == [UserName("2", "User 2")]

    def test_into_dict(self, db, users):
        found = db.model(User).select("id").where("id = ?", "3").into(dict).find()
        assert found == [{"id": "3"}]

    def test_pluck_count_exists(self, db, users):
        assert db.model(User).order("id").limit(3).pluck("id") == ["1", "2", "3"]
        assert db.model(User).count() == 9
        assert db.model(User).where("id = ?", "1").exists()
        assert not db.model(User).where("id = ?", "x").exists()

    def test_first_respects_conditions(self, db, users):
        assert db.model(User).where("id > ?", "4").first().id == "5"
        assert db.model(User).last("id < ?", "4").id == "3"

    def test_lock_is_ignored_on_sqlite(self, db, users):
        def locked(tx):
            return tx.model(User).where("id = ?", "1").for_update().take()

        assert db.transaction(locked).id == "1"

    def test_lock_options_exclusive(self, db):
        with pytest.raises(RowmapValidationError):
            db.model(User).for_update(nowait=True, skip_locked=True)

    def test_join_rejects_has_many(self, db):
        with pytest.raises(RowmapValidationError):
            db.model(User).join("todos")
