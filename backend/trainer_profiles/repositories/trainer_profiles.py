"""Database-backed trainer profile repository."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.orm import Session

from ..db.models import TRAINER_ROLE, ProfileAuditEventModel, TrainerProfileModel
from ..db.views import trainer_slug_view, trainer_slug_view_exists
from ..errors import SaveConflict
from ..identifiers import is_valid_slug, normalize_slug, strip_disambiguation_suffix
from ..profiles import (
    COLUMN_BACKED_FIELDS,
    DOCUMENT_KEYS,
    EDITABLE_FIELDS,
    TrainerRecord,
)

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 9  # "-" plus eight hex digits
MAX_SLUG_ATTEMPTS = 5


def _to_record(model: TrainerProfileModel) -> TrainerRecord:
    return TrainerRecord.model_validate(model, from_attributes=True)


class TrainerProfileRepository:
    """Synchronous persistence helper over ``user_profiles`` and the slug view."""

    def get_by_slug(self, session: Session, slug: str, *, view_name: str = "trainers_with_slugs") -> TrainerRecord | None:
        connection = session.connection()
        if not trainer_slug_view_exists(connection, view_name):
            logger.debug("Slug view %s is missing; treating lookup of %r as a miss", view_name, slug)
            return None
        view = trainer_slug_view(view_name)
        stmt = select(view).where(view.c.slug == slug).limit(1)
        row = session.execute(stmt).mappings().first()
        if row is None:
            return None
        return TrainerRecord.model_validate(dict(row))

    def get_by_id(self, session: Session, unique_id: str) -> TrainerRecord | None:
        normalized = unique_id.strip().lower()
        base = select(TrainerProfileModel).where(TrainerProfileModel.role == TRAINER_ROLE)
        model = session.execute(
            base.where(func.lower(TrainerProfileModel.id) == normalized)
        ).scalar_one_or_none()
        if model is None:
            model = session.execute(
                base.where(func.lower(TrainerProfileModel.user_id) == normalized).limit(1)
            ).scalar_one_or_none()
        if model is None:
            return None
        return _to_record(model)

    def find_slug_candidates(self, session: Session, base_slug: str, *, limit: int = 10) -> List[TrainerRecord]:
        """Trainers whose slug is ``base_slug`` or ``base_slug`` plus a disambiguation suffix."""
        slug_column = func.lower(TrainerProfileModel.slug)
        stmt = (
            select(TrainerProfileModel)
            .where(TrainerProfileModel.role == TRAINER_ROLE)
            .where(TrainerProfileModel.slug.is_not(None))
            .where(
                or_(
                    slug_column == base_slug,
                    and_(
                        slug_column.like(f"{base_slug}-%"),
                        func.length(TrainerProfileModel.slug) == len(base_slug) + SUFFIX_LENGTH,
                    ),
                )
            )
            .order_by(TrainerProfileModel.slug.asc())
            .limit(limit)
        )
        models = session.execute(stmt).scalars().all()
        return [
            _to_record(model)
            for model in models
            if model.slug and base_slug in {model.slug.lower(), strip_disambiguation_suffix(model.slug.lower())}
        ]

    def apply_patch(self, session: Session, trainer_id: str, patch: Mapping[str, Any]) -> TrainerRecord:
        """Write ``patch`` to the columns it maps to and mirror every field into the document."""
        unknown = sorted(set(patch) - EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be written: {', '.join(unknown)}")

        model = session.get(TrainerProfileModel, trainer_id)
        if model is None:
            raise SaveConflict(f"Trainer '{trainer_id}' no longer exists.")
        if model.role != TRAINER_ROLE:
            raise SaveConflict(f"Profile '{trainer_id}' is no longer a trainer.")
        if model.profile_data is not None and not isinstance(model.profile_data, Mapping):
            raise SaveConflict(f"Profile document for '{trainer_id}' is not an object.")
        if model.name is None and not _non_blank(patch.get("name")):
            raise SaveConflict(f"Trainer '{trainer_id}' has no name on record.")

        self._write(model, patch)
        session.flush()
        return _to_record(model)

    def create(
        self,
        session: Session,
        *,
        user_id: str,
        name: str,
        email: Optional[str] = None,
        patch: Optional[Mapping[str, Any]] = None,
    ) -> TrainerRecord:
        model = TrainerProfileModel(
            user_id=user_id,
            name=name,
            email=email,
            role=TRAINER_ROLE,
            slug=self._allocate_slug(session, name),
            profile_data={},
        )
        session.add(model)
        if patch:
            unknown = sorted(set(patch) - EDITABLE_FIELDS)
            if unknown:
                raise ValueError(f"Fields cannot be written: {', '.join(unknown)}")
            self._write(model, patch)
        session.flush()
        logger.info("Created trainer profile id=%s slug=%s", model.id, model.slug)
        return _to_record(model)

    def upsert(self, session: Session, record: TrainerRecord) -> TrainerRecord:
        """Store ``record`` as-is. Used for seeding and imports.

        Slugs are stored in canonical ASCII form only, so candidate lookups can
        compare on ``lower(slug)`` without folding accents in SQL.
        """
        if record.slug is not None and not is_valid_slug(record.slug):
            raise ValueError(f"Slug '{record.slug}' is not in canonical form; expected '{normalize_slug(record.slug)}'.")
        model = session.get(TrainerProfileModel, record.id)
        if model is None:
            model = TrainerProfileModel(id=record.id)
            session.add(model)
        values = record.model_dump(exclude={"id"})
        for key in ("created_at", "updated_at"):
            if values.get(key) is None:
                values.pop(key)
        for key, value in values.items():
            setattr(model, key, value)
        session.flush()
        return _to_record(model)

    def delete(self, session: Session, trainer_id: str) -> bool:
        result = session.execute(delete(TrainerProfileModel).where(TrainerProfileModel.id == trainer_id))
        return bool(result.rowcount)

    def record_audit_event(
        self,
        session: Session,
        trainer_id: Optional[str],
        event_type: str,
        payload: Dict[str, Any],
        *,
        actor: str = "system",
    ) -> None:
        if trainer_id is not None and session.get(TrainerProfileModel, trainer_id) is None:
            trainer_id = None
        session.add(
            ProfileAuditEventModel(
                trainer_id=trainer_id,
                event_type=event_type,
                payload=payload,
                actor=actor,
            )
        )

    def recent_audit_events(
        self,
        session: Session,
        *,
        event_type: Optional[str] = None,
        limit: int = 20,
    ) -> List[ProfileAuditEventModel]:
        stmt = select(ProfileAuditEventModel).order_by(ProfileAuditEventModel.created_at.desc()).limit(limit)
        if event_type is not None:
            stmt = stmt.where(ProfileAuditEventModel.event_type == event_type)
        return list(session.execute(stmt).scalars().all())

    def _write(self, model: TrainerProfileModel, patch: Mapping[str, Any]) -> None:
        document = dict(model.profile_data or {})
        for field_name, value in patch.items():
            column = COLUMN_BACKED_FIELDS.get(field_name)
            if column is not None:
                setattr(model, column, list(value) if isinstance(value, list) else value)
            document[DOCUMENT_KEYS[field_name]] = value
        # Reassign so the JSON column is flagged dirty.
        model.profile_data = document
        model.updated_at = datetime.now(timezone.utc)

    def _allocate_slug(self, session: Session, name: str) -> str:
        base = normalize_slug(name)
        if not is_valid_slug(base):
            base = "trainer"
        candidate = base
        for _ in range(MAX_SLUG_ATTEMPTS):
            taken = session.execute(
                select(TrainerProfileModel.id).where(TrainerProfileModel.slug == candidate)
            ).first()
            if taken is None:
                return candidate
            candidate = f"{base}-{uuid.uuid4().hex[:8]}"
        raise SaveConflict(f"Could not allocate a unique slug for '{name}'.")


def _non_blank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


trainer_profiles = TrainerProfileRepository()

__all__ = ["TrainerProfileRepository", "trainer_profiles"]
