"""Telemetry listener that persists profile audit events."""

from __future__ import annotations

import asyncio
import logging
from typing import Set

from .db.session import session_scope
from .repositories.trainer_profiles import trainer_profiles
from .telemetry import TelemetryEvent, register_listener, unregister_listener

logger = logging.getLogger(__name__)

MONITORED_EVENTS: Set[str] = {
    "trainer_resolution_ambiguous",
    "trainer_profile_saved",
    "trainer_profile_save_failed",
}

_pending: Set[asyncio.Future] = set()


def _write(event: TelemetryEvent) -> None:
    trainer_id = event.payload.get("trainer_id")
    if not isinstance(trainer_id, str) or not trainer_id.strip():
        trainer_id = None
    try:
        with session_scope() as session:
            trainer_profiles.record_audit_event(session, trainer_id, event.name, dict(event.payload))
    except Exception:  # noqa: BLE001
        logger.exception("Failed to persist audit event %s for trainer_id=%s", event.name, trainer_id)


def persist_event(event: TelemetryEvent) -> None:
    """Store a monitored event. Inside a running loop the write goes to the default executor."""
    if event.name not in MONITORED_EVENTS:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        _write(event)
        return
    future = loop.run_in_executor(None, _write, event)
    _pending.add(future)
    future.add_done_callback(_pending.discard)


async def drain() -> None:
    """Wait for audit writes handed to the executor from the current loop."""
    loop = asyncio.get_running_loop()
    pending = [future for future in _pending if future.get_loop() is loop]
    if pending:
        await asyncio.gather(*pending)


def install() -> None:
    register_listener(persist_event)


def uninstall() -> None:
    unregister_listener(persist_event)


__all__ = ["MONITORED_EVENTS", "drain", "install", "persist_event", "uninstall"]
