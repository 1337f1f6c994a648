"""
Integration tests for preload, join, related lookups and cascading writes.
"""

import pytest

from rowmap.core.exceptions import DescriptorError

from entities import Todo, User, Wallet, mapped

pytestmark = pytest.mark.integration


@pytest.fixture
def wallets(db, users):
    """Wallets for users 1-3; users 4-9 have none."""
    items = [Wallet(id=f"w{i}", user_id=str(i), balance=i * 100) for i in range(1, 4)]
    db.create(items)
    return items


@pytest.fixture
def todos(db, users):
    items = [
        Todo(user_id="1", title="a"),
        Todo(user_id="1", title="b"),
        Todo(user_id="2", title="c"),
    ]
    db.create(items)
    return items


class TestPreload:
    """Tests for loading relations with extra queries."""

    def test_has_one(self, db, wallets):
        found = db.model(User).preload("wallet").order("id").find()
        assert found[0].wallet.balance == 100
        assert found[2].wallet.id == "w3"
        assert all(u.wallet is None for u in found[3:])

    def test_has_many(self, db, todos):
        found = db.model(User).preload("todos").order("id").find()
        assert [t.title for t in found[0].todos] == ["a", "b"]
        assert [t.title for t in found[1].todos] == ["c"]
        assert found[2].todos == []

    def test_one_query_per_level(self, db, wallets, statements):
        db.model(User).preload("wallet").find()
        selects = [s for s in statements if s.startswith("SELECT")]
        assert len(selects) == 2
        assert " IN (" in selects[1]

    def test_belongs_to(self, db, wallets):
        found = db.model(Wallet).preload("user").order("id").find()
        assert [w.user.id for w in found] == ["1", "2", "3"]

    def test_nested_path(self, db, wallets):
        found = db.model(User).where("id = ?", "2").preload("wallet.user").take()
        assert found.wallet.user.id == "2"
        assert found.wallet.user.name.first_name == "User 2"

    def test_condition_applies_to_relation(self, db, todos):
        found = db.model(User).where("id = ?", "1").preload("todos", "title = ?", "b").take()
        assert [t.title for t in found.todos] == ["b"]

    def test_soft_deleted_children_hidden(self, db, todos):
        db.delete(todos[0])
        found = db.model(User).where("id = ?", "1").preload("todos").take()
        assert [t.title for t in found.todos] == ["b"]
        found = db.model(User).where("id = ?", "1").unscoped().preload("todos").take()
        assert len(found.todos) == 2

    def test_unknown_relation(self, db, users):
        with pytest.raises(DescriptorError):
            db.model(User).preload("nope").find()


class TestJoin:
    """Tests for one-to-one joins."""

    def test_join_matches_preload(self, db, registry, wallets):
        joined = db.model(User).join("wallet").order("users.id").find()
        preloaded = db.model(User).preload("wallet").order("id").find()
        assert len(joined) == len(preloaded) == 9
        for left, right in zip(joined, preloaded):
            assert mapped(left, registry) == mapped(right, registry)
            if right.wallet is None:
                assert left.wallet is None
            else:
                assert mapped(left.wallet, registry) == mapped(right.wallet, registry)

    def test_join_is_single_statement(self, db, wallets, statements):
        db.model(User).join("wallet").find()
        assert len([s for s in statements if s.startswith("SELECT")]) == 1

    def test_condition_on_joined_table(self, db, wallets):
        found = db.model(User).join("wallet").where("wallet.balance > ?", 150).order("users.id").find()
        assert [u.id for u in found] == ["2", "3"]

    def test_belongs_to_join(self, db, wallets):
        found = db.model(Wallet).join("user").where("wallets.id = ?", "w1").take()
        assert found.user.id == "1"
        assert found.user.password == "rahasia"


class TestRelated:
    def test_has_one(self, db, wallets):
        user = db.take(User, "id = ?", "1")
        assert db.related(user, "wallet").id == "w1"
        assert user.wallet is None

    def test_has_many(self, db, todos):
        user = db.take(User, "id = ?", "1")
        assert [t.title for t in db.related(user, "todos")] == ["a", "b"]

    def test_belongs_to(self, db, wallets):
        wallet = db.take(Wallet, "id = ?", "w2")
        assert db.related(wallet, "user").id == "2"

    def test_missing_key(self, db):
        assert db.related(Wallet(id="w9"), "user") is None


class TestCascade:
    """Tests for writing associated entities with their owner."""

    def test_has_one_written_after_owner(self, db):
        user = User(id="1", wallet=Wallet(id="w1", balance=50))
        db.create(user)
        assert user.wallet.user_id == "1"
        assert db.take(Wallet, "id = ?", "w1").user_id == "1"

    def test_has_many_written_after_owner(self, db):
        user = User(id="1", todos=[Todo(title="a"), Todo(title="b")])
        db.create(user)
        assert all(t.id > 0 for t in user.todos)
        assert db.model(Todo).where({"user_id": "1"}).count() == 2

    def test_belongs_to_written_first(self, db):
        wallet = Wallet(id="w1", user=User(id="7", password="p"))
        db.create(wallet)
        assert wallet.user_id == "7"
        assert db.take(User, "id = ?", "7").password == "p"

    def test_existing_parent_left_alone(self, db, eko):
        db.create(Wallet(id="w1", user=User(id="1", password="changed")))
        assert db.take(User, "id = ?", "1").password == "rahasia"
        assert db.take(Wallet, "id = ?", "w1").user_id == "1"

    def test_existing_child_moves_to_new_owner(self, db, eko):
        db.create(Wallet(id="w1", user_id="1", balance=10))
        db.create(User(id="2", wallet=Wallet(id="w1", balance=10)))
        assert db.take(Wallet, "id = ?", "w1").user_id == "2"

    def test_omit_associations(self, db):
        db.create(User(id="1", wallet=Wallet(id="w1")), omit_associations=True)
        assert db.model(Wallet).count() == 0

    def test_save_cascades(self, db, eko):
        user = db.take(User, "id = ?", "1")
        user.wallet = Wallet(id="w1", balance=5)
        db.save(user)
        assert db.related(user, "wallet").balance == 5
