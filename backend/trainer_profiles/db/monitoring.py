"""Connection pool instrumentation and the database health probe."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict

from sqlalchemy import event, text
from sqlalchemy.engine import Engine

from ..telemetry import emit_event


def _interval_from_env() -> float:
    return float(os.getenv("TRAINER_DB_TELEMETRY_INTERVAL", "30"))


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    invalidations: int = 0
    last_emit: float = 0.0

    def as_dict(self) -> Dict[str, int]:
        return {
            "connects": self.connects,
            "checkouts": self.checkouts,
            "checkins": self.checkins,
            "invalidations": self.invalidations,
        }


class PoolMonitor:
    """Counts pool events for one engine and emits throttled ``db_pool_status`` events."""

    def __init__(self, engine: Engine, interval: float) -> None:
        self.engine = engine
        self.interval = interval
        self.counters = PoolCounters()

    def attach(self) -> None:
        event.listen(self.engine, "connect", self._on_connect)
        event.listen(self.engine, "checkout", self._on_checkout)
        event.listen(self.engine, "checkin", self._on_checkin)
        event.listen(self.engine, "invalidate", self._on_invalidate)

    def _on_connect(self, dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        self.counters.connects += 1
        self._maybe_emit("db_pool_connect")

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy) -> None:  # type: ignore[no-untyped-def]
        self.counters.checkouts += 1
        self._maybe_emit("db_pool_checkout")

    def _on_checkin(self, dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        self.counters.checkins += 1
        self._maybe_emit("db_pool_checkin")

    def _on_invalidate(self, dbapi_connection, connection_record, exception) -> None:  # type: ignore[no-untyped-def]
        self.counters.invalidations += 1
        self._maybe_emit("db_pool_invalidate")

    def _maybe_emit(self, trigger: str) -> None:
        now = time.time()
        if self.interval > 0 and (now - self.counters.last_emit) < self.interval:
            return
        self.counters.last_emit = now
        emit_event("db_pool_status", trigger=trigger, status=pool_status(self.engine), **self.counters.as_dict())

    def snapshot(self) -> Dict[str, object]:
        return {"status": pool_status(self.engine), **self.counters.as_dict()}


_MONITORS: Dict[int, PoolMonitor] = {}


def instrument_engine(engine: Engine) -> PoolMonitor:
    """Attach pool listeners once per engine."""
    key = id(engine)
    monitor = _MONITORS.get(key)
    if monitor is None or monitor.engine is not engine:
        monitor = PoolMonitor(engine, _interval_from_env())
        monitor.attach()
        _MONITORS[key] = monitor
    return monitor


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    monitor = _MONITORS.get(id(engine))
    if monitor is None or monitor.engine is not engine:
        return {"status": pool_status(engine), **PoolCounters().as_dict()}
    return monitor.snapshot()


def probe_database(engine: Engine) -> Dict[str, object]:
    """Run a trivial query and report latency. SQLAlchemy errors propagate to the caller."""
    started = time.perf_counter()
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    latency_ms = round((time.perf_counter() - started) * 1000.0, 3)
    return {
        "dialect": engine.dialect.name,
        "latency_ms": latency_ms,
        "pool": get_pool_snapshot(engine),
    }


def pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # noqa: BLE001
        return f"unavailable: {exc}"


__all__ = [
    "PoolCounters",
    "PoolMonitor",
    "get_pool_snapshot",
    "instrument_engine",
    "pool_status",
    "probe_database",
]
