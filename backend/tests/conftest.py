from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

import pytest

from trainer_profiles.config import get_settings
from trainer_profiles.db.base import Base
from trainer_profiles.db.session import dispose_engine, get_engine
from trainer_profiles.db.views import create_trainer_slug_view
from trainer_profiles.errors import SaveConflict
from trainer_profiles.profiles import COLUMN_BACKED_FIELDS, DOCUMENT_KEYS, TrainerRecord
from trainer_profiles.telemetry import ResolutionTelemetry, clear_listeners

ANA_ID = "9b2f6a3e-1c4d-4e5f-8a7b-0c1d2e3f4a5b"
BRUNO_ID = "3f29b1a2-55cd-4e11-9b3a-1122334455ab"
BRUNO_USER_ID = "0d6c8b3a-7e21-4a9f-b1c2-5e6f7a8b9c0d"


def make_record(**overrides: Any) -> TrainerRecord:
    values: dict[str, Any] = {
        "id": ANA_ID,
        "user_id": "5a1d0c9e-2b3f-4c6d-8e7f-9a0b1c2d3e4f",
        "name": "Ana Souza",
        "email": "ana@example.com",
        "slug": "ana-souza-e0f255ab",
        "role": "trainer",
        "status": "active",
        "is_active": True,
        "is_verified": True,
        "created_at": datetime(2024, 3, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 3, 2, tzinfo=timezone.utc),
        "profile_data": {
            "bio": "Mobility and strength coach.",
            "phone": "+55 11 99999-0000",
            "experienceYears": "3-5",
            "cities": ["São Paulo", "Campinas"],
            "modalities": ["presencial", "online"],
        },
    }
    values.update(overrides)
    return TrainerRecord(**values)


class FakeTrainerStore:
    """In-memory ``TrainerStore`` that records every call it receives."""

    def __init__(self, records: tuple[TrainerRecord, ...] = (), *, view_available: bool = True) -> None:
        self.records: dict[str, TrainerRecord] = {record.id: record for record in records}
        self.view_available = view_available
        self.calls: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.save_gate: Optional[asyncio.Event] = None

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _enter(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    def _trainers(self) -> list[TrainerRecord]:
        return [record for record in self.records.values() if record.role == "trainer"]

    async def find_by_slug(self, slug: str) -> Optional[TrainerRecord]:
        self._enter("find_by_slug", slug)
        if not self.view_available:
            return None
        return next((record for record in self._trainers() if record.slug == slug), None)

    async def find_by_id(self, unique_id: str) -> Optional[TrainerRecord]:
        self._enter("find_by_id", unique_id)
        key = unique_id.lower()
        for record in self._trainers():
            if record.id.lower() == key:
                return record
        for record in self._trainers():
            if record.user_id and record.user_id.lower() == key:
                return record
        return None

    async def find_slug_candidates(self, base_slug: str, *, limit: int = 10) -> list[TrainerRecord]:
        self._enter("find_slug_candidates", base_slug)
        matches = []
        for record in self._trainers():
            slug = (record.slug or "").lower()
            if slug == base_slug or (slug.startswith(f"{base_slug}-") and len(slug) == len(base_slug) + 9):
                matches.append(record)
        return sorted(matches, key=lambda record: record.slug or "")[:limit]

    async def save_patch(self, trainer_id: str, patch: Mapping[str, Any]) -> TrainerRecord:
        self._enter("save_patch", dict(patch))
        if self.save_gate is not None:
            await self.save_gate.wait()
        record = self.records.get(trainer_id)
        if record is None:
            raise SaveConflict(f"Trainer '{trainer_id}' no longer exists.")
        updated = self._apply(record, patch)
        self.records[trainer_id] = updated
        return updated

    async def create_profile(
        self,
        user_id: str,
        name: str,
        email: Optional[str],
        patch: Mapping[str, Any],
    ) -> TrainerRecord:
        self._enter("create_profile", dict(patch))
        record = TrainerRecord(
            id="c0ffee00-1111-4222-8333-444455556666",
            user_id=user_id,
            name=name,
            email=email,
            slug="new-trainer",
            role="trainer",
            status="active",
            is_active=True,
            created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            profile_data={},
        )
        record = self._apply(record, patch)
        self.records[record.id] = record
        return record

    def _apply(self, record: TrainerRecord, patch: Mapping[str, Any]) -> TrainerRecord:
        document = dict(record.profile_data or {})
        columns: dict[str, Any] = {}
        for name, value in patch.items():
            if name in COLUMN_BACKED_FIELDS:
                columns[COLUMN_BACKED_FIELDS[name]] = value
            document[DOCUMENT_KEYS[name]] = value
        return record.model_copy(
            update={**columns, "profile_data": document, "updated_at": datetime.now(timezone.utc)}
        )


@pytest.fixture
def ana_record() -> TrainerRecord:
    return make_record()


@pytest.fixture
def bruno_record() -> TrainerRecord:
    return make_record(
        id=BRUNO_ID,
        user_id=BRUNO_USER_ID,
        name="Bruno Lima",
        email="bruno@example.com",
        slug="bruno-lima",
        bio="Column biography",
        profile_data={"bio": "Stale document biography", "cities": ["Recife"]},
    )


@pytest.fixture
def fake_store(ana_record: TrainerRecord, bruno_record: TrainerRecord) -> FakeTrainerStore:
    return FakeTrainerStore((ana_record, bruno_record))


@pytest.fixture
def telemetry() -> ResolutionTelemetry:
    return ResolutionTelemetry(emit=False)


@pytest.fixture(autouse=True)
def _reset_listeners() -> Iterator[None]:
    yield
    clear_listeners()


def _setup_db(tmp_path: Path, *, with_view: bool = True) -> None:
    db_path = tmp_path / "trainers.db"
    os.environ["TRAINER_DATABASE_URL"] = f"sqlite:///{db_path}"
    get_settings.cache_clear()
    dispose_engine()
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    if with_view:
        with engine.begin() as connection:
            create_trainer_slug_view(connection, get_settings().slug_view_name)


@pytest.fixture
def database(tmp_path: Path) -> Iterator[Path]:
    previous = os.environ.get("TRAINER_DATABASE_URL")
    _setup_db(tmp_path)
    try:
        yield tmp_path
    finally:
        dispose_engine()
        if previous is None:
            os.environ.pop("TRAINER_DATABASE_URL", None)
        else:
            os.environ["TRAINER_DATABASE_URL"] = previous
        get_settings.cache_clear()
