"""
Entities used across the test-suite: users with an embedded name and a
wallet, todos on the conventional Model base, and an auto-increment log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from rowmap.db import (
    Model,
    Registry,
    WriteMode,
    belongs_to,
    column,
    embedded,
    has_many,
    has_one,
    ignored,
    model_columns,
)

SCHEMA = [
    "CREATE TABLE sample (id TEXT PRIMARY KEY, name TEXT NOT NULL)",
    """
    CREATE TABLE users (
        id TEXT PRIMARY KEY,
        password TEXT NOT NULL DEFAULT '',
        first_name TEXT,
        middle_name TEXT,
        last_name TEXT,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE wallets (
        id TEXT PRIMARY KEY,
        user_id TEXT REFERENCES users (id),
        balance INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE todos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        title TEXT,
        description TEXT,
        created_at TIMESTAMP,
        updated_at TIMESTAMP,
        deleted_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE user_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        action TEXT,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
]


@dataclass
class Name:
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""


@dataclass
class User:
    id: str = ""
    password: str = ""
    name: Name = field(default_factory=Name)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    information: str = ""
    wallet: Wallet | None = None
    todos: list[Todo] = field(default_factory=list)


@dataclass
class Wallet:
    id: str = ""
    user_id: str = ""
    balance: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user: User | None = None


@dataclass
class Todo(Model):
    user_id: str = ""
    title: str = ""
    description: str = ""


@dataclass
class UserLog:
    id: int = 0
    user_id: str = ""
    action: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Sample:
    id: str = ""
    name: str = ""


def build_registry() -> Registry:
    registry = Registry()
    registry.register(
        User,
        table="users",
        fields=[
            column("id", primary_key=True, write=WriteMode.CREATE),
            column("password"),
            embedded(
                "name",
                Name,
                [column("first_name"), column("middle_name"), column("last_name")],
            ),
            column("created_at", auto_create_time=True, write=WriteMode.CREATE),
            column("updated_at", auto_create_time=True, auto_update_time=True),
            ignored("information"),
        ],
        relations=[
            has_one("wallet", Wallet, foreign_key="user_id", references="id"),
            has_many("todos", Todo, foreign_key="user_id"),
        ],
    )
    registry.register(
        Wallet,
        table="wallets",
        fields=[
            column("id", primary_key=True),
            column("user_id"),
            column("balance"),
            column("created_at", auto_create_time=True),
            column("updated_at", auto_create_time=True, auto_update_time=True),
        ],
        relations=[belongs_to("user", User, foreign_key="user_id", references="id")],
    )
    registry.register(
        Todo,
        table="todos",
        fields=[*model_columns(), column("user_id"), column("title"), column("description")],
    )
    registry.register(
        UserLog,
        table="user_logs",
        fields=[
            column("id", primary_key=True, auto_increment=True),
            column("user_id"),
            column("action"),
            column("created_at", auto_create_time=True),
            column("updated_at", auto_create_time=True, auto_update_time=True),
        ],
    )
    registry.register(
        Sample,
        table="sample",
        fields=[column("id", primary_key=True), column("name")],
    )
    return registry


def mapped(entity, registry: Registry) -> dict:
    """Every mapped column value of an entity, for equality checks."""
    descriptor = registry.of(entity)
    return {f.column: f.get(entity) for f in descriptor.fields}
