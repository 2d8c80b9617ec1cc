from __future__ import annotations

import pytest
from conftest import make_record
from sqlalchemy.pool import StaticPool

from trainer_profiles.config import Settings
from trainer_profiles.db.session import engine_options, session_scope
from trainer_profiles.repositories.trainer_profiles import trainer_profiles


def test_engine_options_for_server_databases_use_pool_settings() -> None:
    settings = Settings(
        TRAINER_DATABASE_URL="postgresql+psycopg://trainer@db/trainers",
        TRAINER_DATABASE_POOL_SIZE=3,
        TRAINER_DATABASE_MAX_OVERFLOW=1,
    )
    options = engine_options(settings)
    assert options["pool_size"] == 3
    assert options["max_overflow"] == 1
    assert "connect_args" not in options


def test_engine_options_share_in_memory_sqlite() -> None:
    options = engine_options(Settings(TRAINER_DATABASE_URL="sqlite://"))
    assert options["poolclass"] is StaticPool
    assert options["connect_args"] == {"check_same_thread": False}

    file_options = engine_options(Settings(TRAINER_DATABASE_URL="sqlite:///trainers.db"))
    assert "poolclass" not in file_options


def test_missing_database_url_is_a_configuration_error() -> None:
    with pytest.raises(RuntimeError, match="TRAINER_DATABASE_URL"):
        engine_options(Settings(TRAINER_DATABASE_URL=None))


def test_session_scope_rolls_back_on_error(database) -> None:
    with pytest.raises(RuntimeError):
        with session_scope() as session:
            trainer_profiles.upsert(session, make_record())
            raise RuntimeError("abort")

    with session_scope(commit=False) as session:
        assert trainer_profiles.get_by_id(session, make_record().id) is None
