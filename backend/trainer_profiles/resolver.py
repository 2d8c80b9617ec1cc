"""Resolve public trainer identifiers to one canonical record."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import ErrorKind, TrainerStoreError, user_message
from .identifiers import (
    Identifier,
    IdentifierShape,
    canonical_redirect,
    has_disambiguation_suffix,
    normalize_slug,
    parse_identifier,
    strip_disambiguation_suffix,
)
from .profiles import TrainerRecord
from .store import TrainerStore
from .telemetry import Outcome, ResolutionAttempt, ResolutionTelemetry, emit_event

logger = logging.getLogger(__name__)


class StrategyName(str, Enum):
    EXACT_SLUG = "exact_slug"
    UNIQUE_ID = "unique_id"
    LEGACY_SLUG = "legacy_slug"


SLUG_STRATEGY_ORDER: Tuple[StrategyName, ...] = (
    StrategyName.EXACT_SLUG,
    StrategyName.UNIQUE_ID,
    StrategyName.LEGACY_SLUG,
)
UNIQUE_ID_STRATEGY_ORDER: Tuple[StrategyName, ...] = (StrategyName.UNIQUE_ID,)


@dataclass(frozen=True)
class ResolutionResult:
    """Terminal outcome of one ``resolve`` call. Carries a record or an error, never both."""

    success: bool
    identifier: Identifier
    record: Optional[TrainerRecord] = None
    method: Optional[StrategyName] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    candidates: Tuple[TrainerRecord, ...] = ()
    attempts: Tuple[ResolutionAttempt, ...] = ()
    redirect_slug: Optional[str] = None

    def __post_init__(self) -> None:
        if self.success and (self.record is None or self.error is not None):
            raise ValueError("A successful resolution must carry a record and no error.")
        if not self.success and (self.error is None or self.record is not None):
            raise ValueError("A failed resolution must carry an error and no record.")

    @classmethod
    def hit(
        cls,
        identifier: Identifier,
        record: TrainerRecord,
        method: StrategyName,
        attempts: Sequence[ResolutionAttempt],
    ) -> "ResolutionResult":
        return cls(
            success=True,
            identifier=identifier,
            record=record,
            method=method,
            attempts=tuple(attempts),
            redirect_slug=canonical_redirect(identifier, record.slug),
        )

    @classmethod
    def failure(
        cls,
        identifier: Identifier,
        error: ErrorKind,
        attempts: Sequence[ResolutionAttempt] = (),
        candidates: Sequence[TrainerRecord] = (),
    ) -> "ResolutionResult":
        return cls(
            success=False,
            identifier=identifier,
            error=error,
            message=user_message(error),
            candidates=tuple(candidates),
            attempts=tuple(attempts),
        )


def _distinct(records: Sequence[TrainerRecord]) -> List[TrainerRecord]:
    seen: set[str] = set()
    unique: List[TrainerRecord] = []
    for record in records:
        key = record.id.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def legacy_slug_matches(candidate_slug: Optional[str], normalized: str) -> bool:
    """True when a stored slug is ``normalized`` modulo case, accents or a disambiguation suffix."""
    if not candidate_slug:
        return False
    stored = normalize_slug(candidate_slug)
    if not stored:
        return False
    return stored == normalized or strip_disambiguation_suffix(stored) == normalized


def _exact_matches(records: Sequence[TrainerRecord], normalized: str) -> List[TrainerRecord]:
    return _distinct([record for record in records if normalize_slug(record.slug or "") == normalized])


class IdentifierResolver:
    """Tries the resolution strategies in fixed order and stops at the first hit.

    The resolver is stateless between calls. Every attempt is reported to the
    injected ``telemetry`` collector before ``resolve`` returns, and nothing
    it reads from the collector can change which strategy runs next.
    """

    def __init__(
        self,
        store: TrainerStore,
        telemetry: ResolutionTelemetry,
        *,
        legacy_candidate_limit: int = 10,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._store = store
        self._telemetry = telemetry
        self._legacy_candidate_limit = legacy_candidate_limit
        self._clock = clock

    async def resolve(self, raw: object) -> ResolutionResult:
        identifier = parse_identifier(raw)
        if not identifier.is_valid:
            logger.info("Rejected trainer identifier with invalid format: %r", identifier.raw)
            return ResolutionResult.failure(identifier, ErrorKind.INVALID_FORMAT)

        order = UNIQUE_ID_STRATEGY_ORDER if identifier.is_unique_id else SLUG_STRATEGY_ORDER
        attempts: List[ResolutionAttempt] = []

        for strategy in order:
            started = self._clock()
            try:
                matches = await self._run(strategy, identifier)
            except TrainerStoreError as exc:
                attempts.append(self._report(strategy, "error", identifier, started))
                logger.warning(
                    "Trainer store failed during %s lookup for %r: %s",
                    strategy.value,
                    identifier.value,
                    exc,
                )
                return ResolutionResult.failure(identifier, exc.kind, attempts)

            if not matches:
                attempts.append(self._report(strategy, "miss", identifier, started))
                continue

            if len(matches) > 1:
                attempts.append(self._report(strategy, "error", identifier, started))
                logger.warning(
                    "Identifier %r matches %d trainers via %s; refusing to pick one",
                    identifier.value,
                    len(matches),
                    strategy.value,
                )
                emit_event(
                    "trainer_resolution_ambiguous",
                    identifier=identifier.value,
                    strategy=strategy,
                    candidate_ids=[record.id for record in matches],
                    candidate_slugs=[record.slug for record in matches],
                )
                return ResolutionResult.failure(
                    identifier, ErrorKind.AMBIGUOUS_MATCH, attempts, candidates=matches
                )

            attempts.append(self._report(strategy, "hit", identifier, started))
            return ResolutionResult.hit(identifier, matches[0], strategy, attempts)

        return ResolutionResult.failure(identifier, ErrorKind.NOT_FOUND, attempts)

    async def _run(self, strategy: StrategyName, identifier: Identifier) -> List[TrainerRecord]:
        if strategy is StrategyName.EXACT_SLUG:
            if identifier.shape is not IdentifierShape.SLUG:
                return []
            record = await self._store.find_by_slug(identifier.value)
            return [record] if record is not None else []

        if strategy is StrategyName.UNIQUE_ID:
            # Gate: never issue a store call for an identifier that is not UUID-shaped.
            if not identifier.is_unique_id:
                return []
            record = await self._store.find_by_id(identifier.normalized)
            return [record] if record is not None else []

        normalized = identifier.normalized
        limit = self._legacy_candidate_limit
        if has_disambiguation_suffix(normalized):
            # A suffixed identifier names one trainer; siblings sharing the base are not candidates.
            exact = _exact_matches(await self._store.find_slug_candidates(normalized, limit=limit), normalized)
            if exact:
                return exact

        base = strip_disambiguation_suffix(normalized)
        candidates = await self._store.find_slug_candidates(base, limit=limit)
        exact = _exact_matches(candidates, normalized)
        if exact:
            return exact
        return _distinct([record for record in candidates if legacy_slug_matches(record.slug, base)])

    def _report(
        self,
        strategy: StrategyName,
        outcome: Outcome,
        identifier: Identifier,
        started: float,
    ) -> ResolutionAttempt:
        latency_ms = (self._clock() - started) * 1000.0
        return self._telemetry.record(
            strategy.value,
            outcome,
            shape=identifier.shape.value,
            latency_ms=latency_ms,
        )


__all__ = [
    "IdentifierResolver",
    "ResolutionResult",
    "SLUG_STRATEGY_ORDER",
    "StrategyName",
    "UNIQUE_ID_STRATEGY_ORDER",
    "legacy_slug_matches",
]
