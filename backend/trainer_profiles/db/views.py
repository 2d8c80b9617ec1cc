"""The slug-keyed read view over trainer rows."""

from __future__ import annotations

import re
from typing import Union

from sqlalchemy import JSON, Boolean, Connection, DateTime, Engine, String, Text, column, inspect, select, table, text
from sqlalchemy.sql.expression import TableClause

from .models import TRAINER_ROLE, TrainerProfileModel

_VIEW_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

VIEW_COLUMNS = (
    ("id", String),
    ("user_id", String),
    ("name", String),
    ("email", String),
    ("phone", String),
    ("slug", String),
    ("role", String),
    ("status", String),
    ("is_active", Boolean),
    ("is_verified", Boolean),
    ("bio", Text),
    ("specialties", JSON),
    ("avatar_url", Text),
    ("profile_data", JSON),
    ("created_at", DateTime(timezone=True)),
    ("updated_at", DateTime(timezone=True)),
    ("last_login_at", DateTime(timezone=True)),
)


def _checked_name(name: str) -> str:
    if not _VIEW_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid view name '{name}'.")
    return name


def trainer_slug_view(name: str = "trainers_with_slugs") -> TableClause:
    return table(_checked_name(name), *[column(col_name, col_type) for col_name, col_type in VIEW_COLUMNS])


def _view_select(bind: Union[Engine, Connection]) -> str:
    model = TrainerProfileModel.__table__
    stmt = (
        select(*[model.c[col_name] for col_name, _ in VIEW_COLUMNS])
        .where(model.c.role == TRAINER_ROLE)
        .where(model.c.slug.is_not(None))
    )
    return str(stmt.compile(dialect=bind.dialect, compile_kwargs={"literal_binds": True}))


def create_trainer_slug_view(connection: Connection, name: str = "trainers_with_slugs") -> None:
    view_name = _checked_name(name)
    body = _view_select(connection)
    if connection.dialect.name == "sqlite":
        ddl = f"CREATE VIEW IF NOT EXISTS {view_name} AS {body}"
    else:
        ddl = f"CREATE OR REPLACE VIEW {view_name} AS {body}"
    connection.execute(text(ddl))


def drop_trainer_slug_view(connection: Connection, name: str = "trainers_with_slugs") -> None:
    connection.execute(text(f"DROP VIEW IF EXISTS {_checked_name(name)}"))


def trainer_slug_view_exists(connection: Connection, name: str = "trainers_with_slugs") -> bool:
    return _checked_name(name) in inspect(connection).get_view_names()


__all__ = [
    "VIEW_COLUMNS",
    "create_trainer_slug_view",
    "drop_trainer_slug_view",
    "trainer_slug_view",
    "trainer_slug_view_exists",
]
