"""Merge a canonical trainer record with its profile document."""

from __future__ import annotations

from typing import Any, Dict

from .profiles import (
    COLUMN_BACKED_FIELDS,
    ProfileDocument,
    TrainerRecord,
    UnifiedTrainerProfile,
    coerce_string_list,
)


def _column_value(record: TrainerRecord, column: str) -> Any:
    """Return the column value when it is explicitly present, else None."""
    value = getattr(record, column)
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if column == "specialties":
        return coerce_string_list(value)
    return value


def merge(record: TrainerRecord) -> UnifiedTrainerProfile:
    """Flatten ``record`` and its document into one profile.

    Column values win over document values, document values win over the
    field default. Array columns replace the document array wholesale. The
    function is pure and never raises for a malformed document.
    """
    document = ProfileDocument.coerce(record.profile_data)
    values: Dict[str, Any] = {
        name: getattr(document, name) for name in ProfileDocument.model_fields
    }

    for field_name, column in COLUMN_BACKED_FIELDS.items():
        column_value = _column_value(record, column)
        if column_value is not None:
            values[field_name] = column_value

    values.update(
        id=record.id,
        user_id=record.user_id or "",
        slug=record.slug or "",
        role=record.role or "trainer",
        status=record.status or "",
        is_active=bool(record.is_active),
        is_verified=bool(record.is_verified),
        created_at=record.created_at,
        updated_at=record.updated_at,
        last_login_at=record.last_login_at,
    )
    return UnifiedTrainerProfile.model_validate(values)


__all__ = ["merge"]
