"""Weighted profile completion scoring."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Tuple

from pydantic import BaseModel

REQUIRED_WEIGHT = 2
OPTIONAL_WEIGHT = 1


@dataclass(frozen=True)
class CompletionRubric:
    """Partition of profile fields into required (weight 2) and optional (weight 1)."""

    name: str
    required: Tuple[str, ...]
    optional: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        overlap = set(self.required) & set(self.optional)
        if overlap:
            raise ValueError(f"Fields listed as both required and optional: {sorted(overlap)}")

    @property
    def total_weight(self) -> int:
        return REQUIRED_WEIGHT * len(self.required) + OPTIONAL_WEIGHT * len(self.optional)


TRAINER_COMPLETION_RUBRIC = CompletionRubric(
    name="trainer",
    required=(
        "bio",
        "phone",
        "experience_years",
        "response_time",
        "students_count",
        "modalities",
        "cities",
    ),
    optional=(
        "instagram",
        "credential",
        "specialties",
        "universities",
        "courses",
        "gallery_images",
        "profile_photo",
    ),
)

CLIENT_COMPLETION_RUBRIC = CompletionRubric(
    name="client",
    required=("name", "email", "phone", "city", "fitness_level"),
    optional=("goals", "activity_level", "sport_interests", "profile_photo"),
)


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) > 0
    return True


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def completion_score(profile: Mapping[str, Any] | BaseModel, rubric: CompletionRubric = TRAINER_COMPLETION_RUBRIC) -> int:
    """Return an integer percentage in ``[0, 100]``; fields missing from ``profile`` count as absent."""
    if isinstance(profile, BaseModel):
        profile = profile.model_dump()
    total = rubric.total_weight
    if total == 0:
        return 0
    present = sum(REQUIRED_WEIGHT for field in rubric.required if is_present(profile.get(field)))
    present += sum(OPTIONAL_WEIGHT for field in rubric.optional if is_present(profile.get(field)))
    return max(0, min(100, _round_half_up(100 * present / total)))


__all__ = [
    "CLIENT_COMPLETION_RUBRIC",
    "CompletionRubric",
    "OPTIONAL_WEIGHT",
    "REQUIRED_WEIGHT",
    "TRAINER_COMPLETION_RUBRIC",
    "completion_score",
    "is_present",
]
