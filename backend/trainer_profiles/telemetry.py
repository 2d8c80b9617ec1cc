"""Structured telemetry events and the trainer resolution metrics collector."""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Deque, Dict, List, Literal, Optional

logger = logging.getLogger("trainer_profiles.telemetry")

Outcome = Literal["hit", "miss", "error"]
OUTCOMES: tuple[Outcome, ...] = ("hit", "miss", "error")


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


_listeners: List[Callable[[TelemetryEvent], None]] = []
_lock = RLock()


def register_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    """Register an in-process listener (used by the audit pipeline and tests)."""
    with _lock:
        if listener not in _listeners:
            _listeners.append(listener)


def unregister_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    with _lock:
        if listener in _listeners:
            _listeners.remove(listener)


def clear_listeners() -> None:
    """Remove all registered listeners. Mainly used to reset test state."""
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Emit a structured telemetry event and fan it out to listeners."""
    payload = _sanitize(fields)
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    structured = {"event": name, **payload}
    logger.info("TELEMETRY %s", json.dumps(structured, default=_json_default))


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            sanitized[key] = value.isoformat()
        elif isinstance(value, Enum):
            sanitized[key] = value.value
        else:
            sanitized[key] = value
    return sanitized


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class ResolutionAttempt:
    """One strategy tried for one identifier. Lives only as long as the process."""

    strategy: str
    outcome: Outcome
    shape: Optional[str] = None
    latency_ms: float = 0.0
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ResolutionTelemetry:
    """Append-only counters of resolution attempts keyed by strategy and outcome.

    The collector is a pure observer: nothing in the resolver reads it back, so
    strategy order can never drift with historical success. Increments happen
    under a lock so concurrent ``record`` calls never lose updates.
    """

    def __init__(self, *, history_size: int = 200, emit: bool = True) -> None:
        self._lock = RLock()
        self._counts: Dict[str, Dict[str, int]] = {}
        self._total = 0
        self._successes = 0
        self._history: Deque[ResolutionAttempt] = deque(maxlen=max(history_size, 0))
        self._emit = emit

    def record(
        self,
        strategy: str,
        outcome: Outcome,
        *,
        shape: Optional[str] = None,
        latency_ms: float = 0.0,
    ) -> ResolutionAttempt:
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown resolution outcome '{outcome}'.")
        attempt = ResolutionAttempt(
            strategy=strategy,
            outcome=outcome,
            shape=shape,
            latency_ms=round(latency_ms, 3),
        )
        with self._lock:
            bucket = self._counts.setdefault(strategy, {name: 0 for name in OUTCOMES})
            bucket[outcome] += 1
            self._total += 1
            if outcome == "hit":
                self._successes += 1
            if self._history.maxlen:
                self._history.append(attempt)
        if self._emit:
            emit_event(
                "trainer_resolution_attempt",
                strategy=strategy,
                outcome=outcome,
                shape=shape,
                latency_ms=attempt.latency_ms,
            )
        return attempt

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            total = self._total
            successes = self._successes
            per_strategy = {name: dict(bucket) for name, bucket in self._counts.items()}
        return {
            "total_resolves": total,
            "successes": successes,
            "success_rate": successes / total if total else 0.0,
            "per_strategy_counts": per_strategy,
        }

    def recent_attempts(self, limit: Optional[int] = None) -> List[ResolutionAttempt]:
        with self._lock:
            attempts = list(self._history)
        if limit is not None:
            attempts = attempts[-limit:] if limit > 0 else []
        return attempts

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._total = 0
            self._successes = 0
            self._history.clear()


__all__ = [
    "OUTCOMES",
    "Outcome",
    "ResolutionAttempt",
    "ResolutionTelemetry",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
