"""
Shared pytest fixtures for rowmap tests.

- registry: descriptors for the test entities
- db: a Database on a fresh SQLite file with the test schema
- statements: records every SQL statement sent to the driver
"""

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import event

from rowmap.db import Database, Registry

from entities import SCHEMA, Name, User, build_registry


@pytest.fixture
def registry() -> Registry:
    return build_registry()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'rowmap.db'}"


@pytest.fixture
def db(db_url: str, registry: Registry) -> Iterator[Database]:
    """
    Database with the test schema created.

    Yields:
        Open Database; closed after the test
    """
    database = Database.open(db_url, registry)
    for ddl in SCHEMA:
        database.exec(ddl)
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def statements(db: Database) -> list[str]:
    """SQL text of every statement executed from now on."""
    seen: list[str] = []

    def record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(db.connection.engine, "before_cursor_execute", record)
    yield seen
    event.remove(db.connection.engine, "before_cursor_execute", record)


@pytest.fixture
def eko(db: Database) -> User:
    """A stored user with id '1'."""
    user = User(
        id="1",
        password="rahasia",
        name=Name(first_name="Eko", middle_name="Kurniawan", last_name="Khannedy"),
    )
    db.create(user)
    return user


@pytest.fixture
def users(db: Database) -> list[User]:
    """Users 1..9, password 'rahasia', first names 'User <n>'."""
    people = [
        User(id=str(i), password="rahasia", name=Name(first_name=f"User {i}"))
        for i in range(1, 10)
    ]
    db.create_batch(people, 100)
    return people
