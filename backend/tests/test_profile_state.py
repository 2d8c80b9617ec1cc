"""Tests for the hybrid profile edit session lifecycle."""

from __future__ import annotations

import asyncio

import pytest
from conftest import ANA_ID, BRUNO_ID, FakeTrainerStore

from trainer_profiles.errors import BackingStoreUnavailable, SaveConflict, USER_MESSAGES, ErrorKind
from trainer_profiles.profile_state import HybridProfileManager
from trainer_profiles.resolver import IdentifierResolver
from trainer_profiles.telemetry import ResolutionTelemetry, TelemetryEvent, register_listener


def _manager(store: FakeTrainerStore, telemetry: ResolutionTelemetry) -> HybridProfileManager:
    return HybridProfileManager(IdentifierResolver(store, telemetry), store)


@pytest.mark.asyncio()
async def test_load_builds_a_clean_session(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)

    assert await manager.load("ana-souza-e0f255ab")

    assert manager.profile_data is not None
    assert manager.profile_data["id"] == ANA_ID
    assert manager.profile_data["bio"] == "Mobility and strength coach."
    assert not manager.is_dirty
    assert not manager.saving
    assert not manager.loading
    assert not manager.is_new_profile
    assert manager.error is None
    assert 0 < manager.completion_percentage < 100


@pytest.mark.asyncio()
async def test_failed_load_clears_session_with_message(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")

    assert not await manager.load("unknown-trainer-xyz")

    assert manager.profile_data is None
    assert manager.error == USER_MESSAGES[ErrorKind.NOT_FOUND]
    assert manager.completion_percentage == 0


@pytest.mark.asyncio()
async def test_update_marks_dirty_and_recomputes_completion(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    before = manager.completion_percentage

    manager.update_profile_data({"responseTime": "1-hora", "studentsCount": "moderado"})

    assert manager.is_dirty
    assert manager.profile_data["response_time"] == "1-hora"
    assert manager.completion_percentage > before


@pytest.mark.asyncio()
async def test_update_rejects_unknown_and_read_only_fields(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")

    with pytest.raises(ValueError):
        manager.update_profile_data({"favourite_colour": "blue"})
    with pytest.raises(ValueError):
        manager.update_profile_data({"slug": "someone-else"})
    with pytest.raises(ValueError):
        manager.update_profile_data({"cities": "not-a-list"})
    assert not manager.is_dirty


@pytest.mark.asyncio()
async def test_update_then_reset_restores_previous_state(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    original = manager.profile_data
    original_score = manager.completion_percentage

    manager.update_profile_data({"bio": "", "cities": []})
    assert manager.reset()

    assert manager.profile_data == original
    assert manager.completion_percentage == original_score
    assert not manager.is_dirty
    assert not manager.reset()


@pytest.mark.asyncio()
async def test_successful_save_clears_dirty_and_next_save_is_noop(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    manager.update_profile_data({"bio": "new bio", "specialties": ["mobility", "mobility", "strength"]})

    assert await manager.save_profile()

    assert not manager.is_dirty
    assert manager.error is None
    assert fake_store.calls[-1] == ("save_patch", {"bio": "new bio", "specialties": ["mobility", "strength"]})
    stored = fake_store.records[ANA_ID]
    assert stored.bio == "new bio"
    assert stored.profile_data["bio"] == "new bio"

    assert not await manager.save_profile()
    assert fake_store.operations().count("save_patch") == 1

    # The saved state is now the reset baseline.
    manager.update_profile_data({"bio": "draft"})
    manager.reset()
    assert manager.profile_data["bio"] == "new bio"


@pytest.mark.asyncio()
async def test_failed_save_keeps_edits(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    fake_store.failures["save_patch"] = BackingStoreUnavailable("timeout")
    events: list[TelemetryEvent] = []
    register_listener(events.append)

    manager.update_profile_data({"bio": "new bio"})
    assert not await manager.save_profile()

    assert manager.is_dirty
    assert manager.profile_data["bio"] == "new bio"
    assert manager.error == USER_MESSAGES[ErrorKind.BACKING_STORE_UNAVAILABLE]
    assert not manager.saving
    assert [event.name for event in events] == ["trainer_profile_save_failed"]


@pytest.mark.asyncio()
async def test_save_conflict_is_reported_distinctly(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    fake_store.failures["save_patch"] = SaveConflict("name is null")

    manager.update_profile_data({"instagram": "@ana"})
    assert not await manager.save_profile()

    assert manager.error == USER_MESSAGES[ErrorKind.SAVE_CONFLICT]
    assert manager.is_dirty


@pytest.mark.asyncio()
async def test_second_save_during_flight_is_noop_and_late_edits_survive(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    fake_store.save_gate = asyncio.Event()

    manager.update_profile_data({"bio": "first", "instagram": "@ana"})
    in_flight = asyncio.create_task(manager.save_profile())
    await asyncio.sleep(0)
    assert manager.saving

    assert not await manager.save_profile()
    manager.update_profile_data({"bio": "second"})

    fake_store.save_gate.set()
    assert await in_flight

    assert fake_store.operations().count("save_patch") == 1
    assert manager.is_dirty
    assert manager.session is not None
    assert set(manager.session.pending) == {"bio"}
    assert manager.profile_data["bio"] == "second"
    assert manager.session.baseline.bio == "first"


@pytest.mark.asyncio()
async def test_stale_load_is_dropped(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    gate = asyncio.Event()
    original = fake_store.find_by_slug

    async def slow_find_by_slug(slug: str):
        if slug == "ana-souza-e0f255ab":
            await gate.wait()
        return await original(slug)

    fake_store.find_by_slug = slow_find_by_slug  # type: ignore[method-assign]

    slow = asyncio.create_task(manager.load("ana-souza-e0f255ab"))
    await asyncio.sleep(0)
    assert manager.loading
    assert await manager.load(BRUNO_ID)
    gate.set()

    assert not await slow
    assert manager.profile_data is not None
    assert manager.profile_data["id"] == BRUNO_ID
    assert not manager.loading


@pytest.mark.asyncio()
async def test_save_for_replaced_session_leaves_new_session_alone(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    gate = asyncio.Event()
    fake_store.save_gate = gate

    manager.update_profile_data({"bio": "edited"})
    in_flight = asyncio.create_task(manager.save_profile())
    await asyncio.sleep(0)

    fake_store.save_gate = None
    await manager.load(BRUNO_ID)
    manager.update_profile_data({"instagram": "@bruno"})
    replacement = manager.session

    gate.set()
    assert await in_flight

    assert manager.session is replacement
    assert manager.profile_data["id"] == BRUNO_ID
    assert manager.session.pending == {"instagram": "@bruno"}
    assert manager.error is None
    assert fake_store.records[ANA_ID].bio == "edited"


@pytest.mark.asyncio()
async def test_refresh_discards_unsaved_edits(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    await manager.load("ana-souza-e0f255ab")
    manager.update_profile_data({"bio": "unsaved"})

    assert await manager.refresh()

    assert not manager.is_dirty
    assert manager.profile_data["bio"] == "Mobility and strength coach."


@pytest.mark.asyncio()
async def test_new_profile_is_created_on_first_save(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    manager.start_new("user-42", "Nova Trainer", "nova@example.com")

    assert manager.is_new_profile
    assert not manager.is_dirty
    assert await manager.refresh() is False

    manager.update_profile_data({"bio": "Fresh coach", "cities": ["Natal"]})
    assert await manager.save_profile()

    assert not manager.is_new_profile
    assert not manager.is_dirty
    assert fake_store.operations()[-1] == "create_profile"
    assert manager.profile_data["id"] == "c0ffee00-1111-4222-8333-444455556666"
    assert manager.profile_data["slug"] == "new-trainer"

    assert await manager.refresh()
    assert manager.profile_data["bio"] == "Fresh coach"


def test_update_without_session_raises(fake_store, telemetry) -> None:
    manager = _manager(fake_store, telemetry)
    with pytest.raises(RuntimeError):
        manager.update_profile_data({"bio": "x"})
