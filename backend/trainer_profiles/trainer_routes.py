"""Read-only trainer resolution and diagnostics endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from .completion import TRAINER_COMPLETION_RUBRIC, completion_score
from .config import Settings, get_settings
from .errors import ErrorKind
from .profile_merge import merge
from .profiles import TrainerRecord, UnifiedTrainerProfile
from .resolver import IdentifierResolver, ResolutionResult
from .store import SqlTrainerStore, TrainerStore
from .telemetry import ResolutionTelemetry

router = APIRouter(prefix="/api", tags=["trainers"])
logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_FORMAT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.AMBIGUOUS_MATCH: status.HTTP_409_CONFLICT,
    ErrorKind.BACKING_STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.SAVE_CONFLICT: status.HTTP_409_CONFLICT,
}


@lru_cache
def get_resolution_telemetry() -> ResolutionTelemetry:
    """Process-wide collector shared by every request."""
    return ResolutionTelemetry(history_size=get_settings().telemetry_history)


def get_trainer_store(settings: Settings = Depends(get_settings)) -> TrainerStore:
    return SqlTrainerStore(view_name=settings.slug_view_name)


def get_resolver(
    store: TrainerStore = Depends(get_trainer_store),
    telemetry: ResolutionTelemetry = Depends(get_resolution_telemetry),
    settings: Settings = Depends(get_settings),
) -> IdentifierResolver:
    return IdentifierResolver(store, telemetry, legacy_candidate_limit=settings.legacy_candidate_limit)


class TrainerCandidatePayload(BaseModel):
    id: str
    slug: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_record(cls, record: TrainerRecord) -> "TrainerCandidatePayload":
        return cls(id=record.id, slug=record.slug, name=record.name)


class TrainerProfileResponse(BaseModel):
    profile: UnifiedTrainerProfile
    resolved_by: str
    redirect_slug: Optional[str] = None
    completion_percentage: int = Field(ge=0, le=100)


class ResolutionMetricsResponse(BaseModel):
    total_resolves: int
    successes: int
    success_rate: float
    per_strategy_counts: Dict[str, Dict[str, int]] = Field(default_factory=dict)


class ResolutionAttemptPayload(BaseModel):
    strategy: str
    outcome: str
    shape: Optional[str] = None
    latency_ms: float
    recorded_at: str


def _raise_for(result: ResolutionResult) -> None:
    assert result.error is not None
    detail: Dict[str, Any] = {"error": result.error.value, "message": result.message}
    if result.error is ErrorKind.AMBIGUOUS_MATCH:
        detail["candidates"] = [
            TrainerCandidatePayload.from_record(record).model_dump() for record in result.candidates
        ]
    raise HTTPException(status_code=ERROR_STATUS[result.error], detail=detail)


@router.get("/trainers/{identifier}", response_model=TrainerProfileResponse)
async def get_trainer(
    identifier: str,
    resolver: IdentifierResolver = Depends(get_resolver),
) -> TrainerProfileResponse:
    result = await resolver.resolve(identifier)
    if not result.success or result.record is None or result.method is None:
        _raise_for(result)
    profile = merge(result.record)
    return TrainerProfileResponse(
        profile=profile,
        resolved_by=result.method.value,
        redirect_slug=result.redirect_slug,
        completion_percentage=completion_score(profile, TRAINER_COMPLETION_RUBRIC),
    )


@router.get("/diagnostics/resolution-metrics", response_model=ResolutionMetricsResponse)
def resolution_metrics(
    telemetry: ResolutionTelemetry = Depends(get_resolution_telemetry),
) -> ResolutionMetricsResponse:
    return ResolutionMetricsResponse(**telemetry.get_metrics())


@router.get("/diagnostics/resolution-attempts", response_model=List[ResolutionAttemptPayload])
def resolution_attempts(
    limit: int = Query(default=50, ge=1, le=500),
    telemetry: ResolutionTelemetry = Depends(get_resolution_telemetry),
    settings: Settings = Depends(get_settings),
) -> List[ResolutionAttemptPayload]:
    if not settings.debug_endpoints:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return [
        ResolutionAttemptPayload(
            strategy=attempt.strategy,
            outcome=attempt.outcome,
            shape=attempt.shape,
            latency_ms=attempt.latency_ms,
            recorded_at=attempt.recorded_at.isoformat(),
        )
        for attempt in telemetry.recent_attempts(limit)
    ]


__all__ = [
    "get_resolution_telemetry",
    "get_resolver",
    "get_trainer_store",
    "router",
]
