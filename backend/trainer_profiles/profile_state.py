"""Edit-session state for one trainer profile: load, patch, save, reset."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .completion import TRAINER_COMPLETION_RUBRIC, CompletionRubric, completion_score
from .errors import ErrorKind, TrainerStoreError, user_message
from .profile_merge import merge
from .profiles import READ_ONLY_FIELDS, TrainerRecord, UnifiedTrainerProfile, field_name_for
from .resolver import IdentifierResolver, ResolutionResult
from .store import TrainerStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)


@dataclass
class EditSession:
    """One loaded profile plus the edits made to it since the last successful save."""

    profile: UnifiedTrainerProfile
    baseline: UnifiedTrainerProfile
    sequence: int
    identifier: Optional[str] = None
    is_new: bool = False
    saving: bool = False
    completion: int = 0
    pending: Dict[str, Any] = field(default_factory=dict)
    # Edit counter value of the latest change to each pending field.
    pending_versions: Dict[str, int] = field(default_factory=dict)
    edit_counter: int = 0

    @property
    def is_dirty(self) -> bool:
        return bool(self.pending)


class HybridProfileManager:
    """Owns a single :class:`EditSession` and exposes it to presentation code.

    Loads are tagged with increasing sequence numbers; a load that finishes
    after a newer one was issued is dropped. Saves are guarded by the
    session's ``saving`` flag, so a second call during a save is a no-op.
    Errors are reported through :attr:`error` rather than raised.
    """

    def __init__(
        self,
        resolver: IdentifierResolver,
        store: TrainerStore,
        *,
        rubric: CompletionRubric = TRAINER_COMPLETION_RUBRIC,
    ) -> None:
        self._resolver = resolver
        self._store = store
        self._rubric = rubric
        self._session: Optional[EditSession] = None
        self._sequence = 0
        self._loading = False
        self._error: Optional[str] = None
        self._last_resolution: Optional[ResolutionResult] = None
        self._identifier: Optional[str] = None

    @property
    def session(self) -> Optional[EditSession]:
        return self._session

    @property
    def profile_data(self) -> Optional[Dict[str, Any]]:
        if self._session is None:
            return None
        return self._session.profile.model_dump()

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def saving(self) -> bool:
        return self._session is not None and self._session.saving

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_dirty(self) -> bool:
        return self._session is not None and self._session.is_dirty

    @property
    def is_new_profile(self) -> bool:
        return self._session is not None and self._session.is_new

    @property
    def completion_percentage(self) -> int:
        return self._session.completion if self._session is not None else 0

    @property
    def last_resolution(self) -> Optional[ResolutionResult]:
        return self._last_resolution

    async def load(self, identifier: str) -> bool:
        """Resolve and merge ``identifier`` into a fresh session.

        Returns ``False`` when the load failed or was superseded by a newer one.
        """
        self._sequence += 1
        sequence = self._sequence
        self._loading = True
        self._identifier = identifier
        try:
            result = await self._resolver.resolve(identifier)
        finally:
            if sequence == self._sequence:
                self._loading = False

        if sequence != self._sequence:
            logger.debug("Dropping stale load #%d for %r", sequence, identifier)
            return False

        self._last_resolution = result
        if not result.success or result.record is None:
            self._session = None
            self._error = result.message
            logger.info("Trainer profile load failed for %r: %s", identifier, result.error)
            return False

        self._session = self._new_session(result.record, sequence, identifier)
        self._error = None
        return True

    def start_new(self, user_id: str, name: str, email: Optional[str] = None) -> UnifiedTrainerProfile:
        """Open a draft for a trainer who has never saved a profile."""
        self._sequence += 1
        self._loading = False
        self._identifier = None
        self._last_resolution = None
        draft = UnifiedTrainerProfile(id="", user_id=user_id, name=name, email=email or "")
        self._session = EditSession(
            profile=draft,
            baseline=draft.model_copy(deep=True),
            sequence=self._sequence,
            is_new=True,
            completion=completion_score(draft, self._rubric),
        )
        self._error = None
        return draft

    def update_profile_data(self, patch: Mapping[str, Any]) -> UnifiedTrainerProfile:
        session = self._require_session()
        fields: Dict[str, Any] = {}
        for key, value in patch.items():
            name = field_name_for(key)
            if name is None:
                raise ValueError(f"Unknown profile field '{key}'.")
            if name in READ_ONLY_FIELDS:
                raise ValueError(f"Profile field '{key}' is read-only.")
            fields[name] = value
        if not fields:
            return session.profile

        merged = {**session.profile.model_dump(), **fields}
        updated = UnifiedTrainerProfile.model_validate(merged)

        session.edit_counter += 1
        for name in fields:
            session.pending[name] = getattr(updated, name)
            session.pending_versions[name] = session.edit_counter
        session.profile = updated
        session.completion = completion_score(updated, self._rubric)
        return updated

    async def save_profile(self) -> bool:
        """Persist pending edits. Returns ``True`` only when a save reached the store successfully."""
        session = self._session
        if session is None or not session.is_dirty or session.saving:
            return False

        session.saving = True
        self._error = None
        sent_fields = set(session.pending)
        sent_versions = dict(session.pending_versions)
        payload = session.profile.model_dump(mode="json", include=sent_fields)
        trainer_id = session.profile.id

        try:
            if session.is_new:
                record = await self._store.create_profile(
                    session.profile.user_id,
                    session.profile.name,
                    session.profile.email or None,
                    payload,
                )
            else:
                record = await self._store.save_patch(trainer_id, payload)
        except TrainerStoreError as exc:
            self._save_failed(session, trainer_id, sent_fields, exc.kind)
            logger.warning("Saving trainer profile %s failed: %s", trainer_id or "<new>", exc)
            return False
        finally:
            session.saving = False

        if session is not self._session:
            logger.info("Save for trainer %s finished after its session was replaced", record.id)
            return True

        self._absorb(session, record, payload, sent_versions)
        emit_event(
            "trainer_profile_saved",
            trainer_id=record.id,
            fields=sorted(sent_fields),
            created=trainer_id == "",
        )
        return True

    def reset(self) -> bool:
        session = self._session
        if session is None or not session.is_dirty or session.saving:
            return False
        session.profile = session.baseline.model_copy(deep=True)
        session.pending.clear()
        session.pending_versions.clear()
        session.completion = completion_score(session.profile, self._rubric)
        self._error = None
        return True

    async def refresh(self) -> bool:
        """Reload the current identifier, discarding unsaved edits."""
        if self._identifier is None:
            return False
        return await self.load(self._identifier)

    def _new_session(self, record: TrainerRecord, sequence: int, identifier: str) -> EditSession:
        profile = merge(record)
        return EditSession(
            profile=profile,
            baseline=profile.model_copy(deep=True),
            sequence=sequence,
            identifier=identifier,
            completion=completion_score(profile, self._rubric),
        )

    def _absorb(
        self,
        session: EditSession,
        record: TrainerRecord,
        payload: Mapping[str, Any],
        sent_versions: Mapping[str, int],
    ) -> None:
        stored = {name: getattr(record, name) for name in READ_ONLY_FIELDS if hasattr(record, name)}
        stored = {name: value for name, value in stored.items() if value is not None}

        baseline = session.baseline.model_dump()
        baseline.update(payload)
        baseline.update(stored)
        session.baseline = UnifiedTrainerProfile.model_validate(baseline)
        session.profile = session.profile.model_copy(update=stored)

        for name, version in sent_versions.items():
            if session.pending_versions.get(name) == version:
                session.pending.pop(name, None)
                session.pending_versions.pop(name, None)

        if session.is_new:
            session.is_new = False
            session.identifier = record.slug or record.id
            self._identifier = session.identifier

    def _save_failed(self, session: EditSession, trainer_id: str, fields: set[str], kind: ErrorKind) -> None:
        if session is self._session:
            self._error = user_message(kind)
        emit_event(
            "trainer_profile_save_failed",
            trainer_id=trainer_id or None,
            error=kind,
            fields=sorted(fields),
        )

    def _require_session(self) -> EditSession:
        if self._session is None:
            raise RuntimeError("No trainer profile is loaded.")
        return self._session


__all__ = ["EditSession", "HybridProfileManager"]
