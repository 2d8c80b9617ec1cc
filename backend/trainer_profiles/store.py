"""Backing store port and its SQLAlchemy adapter."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .db.session import session_scope
from .errors import BackingStoreUnavailable
from .profiles import TrainerRecord
from .repositories.trainer_profiles import TrainerProfileRepository, trainer_profiles

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TrainerStore(Protocol):
    """Async access to canonical trainer records."""

    async def find_by_slug(self, slug: str) -> Optional[TrainerRecord]:
        """Exact lookup in the slug-joined read view. A missing view is a miss."""

    async def find_by_id(self, unique_id: str) -> Optional[TrainerRecord]:
        """Lookup by record id, falling back to the owning user id."""

    async def find_slug_candidates(self, base_slug: str, *, limit: int = 10) -> Sequence[TrainerRecord]:
        """Records whose slug is ``base_slug`` with or without a disambiguation suffix."""

    async def save_patch(self, trainer_id: str, patch: Mapping[str, Any]) -> TrainerRecord:
        """Apply ``patch`` atomically; raises ``SaveConflict`` or ``BackingStoreUnavailable``."""

    async def create_profile(
        self,
        user_id: str,
        name: str,
        email: Optional[str],
        patch: Mapping[str, Any],
    ) -> TrainerRecord:
        """Create the canonical record for a trainer saving a profile for the first time."""


class SqlTrainerStore:
    """``TrainerStore`` over the SQLAlchemy session helpers.

    Each call opens its own session in the threadpool so the event loop never
    blocks on the database. SQLAlchemy failures surface as
    ``BackingStoreUnavailable``.
    """

    def __init__(
        self,
        *,
        view_name: str = "trainers_with_slugs",
        repository: TrainerProfileRepository = trainer_profiles,
        session_factory: Callable[..., Any] = session_scope,
    ) -> None:
        self._view_name = view_name
        self._repository = repository
        self._session_scope = session_factory

    async def find_by_slug(self, slug: str) -> Optional[TrainerRecord]:
        return await self._run(
            "find_by_slug",
            lambda session: self._repository.get_by_slug(session, slug, view_name=self._view_name),
            commit=False,
        )

    async def find_by_id(self, unique_id: str) -> Optional[TrainerRecord]:
        return await self._run(
            "find_by_id",
            lambda session: self._repository.get_by_id(session, unique_id),
            commit=False,
        )

    async def find_slug_candidates(self, base_slug: str, *, limit: int = 10) -> Sequence[TrainerRecord]:
        return await self._run(
            "find_slug_candidates",
            lambda session: self._repository.find_slug_candidates(session, base_slug, limit=limit),
            commit=False,
        )

    async def save_patch(self, trainer_id: str, patch: Mapping[str, Any]) -> TrainerRecord:
        return await self._run(
            "save_patch",
            lambda session: self._repository.apply_patch(session, trainer_id, patch),
        )

    async def create_profile(
        self,
        user_id: str,
        name: str,
        email: Optional[str],
        patch: Mapping[str, Any],
    ) -> TrainerRecord:
        return await self._run(
            "create_profile",
            lambda session: self._repository.create(
                session, user_id=user_id, name=name, email=email, patch=patch
            ),
        )

    async def _run(self, operation: str, work: Callable[[Session], T], *, commit: bool = True) -> T:
        def call() -> T:
            with self._session_scope(commit=commit) as session:
                return work(session)

        try:
            return await run_in_threadpool(call)
        except SQLAlchemyError as exc:
            logger.exception("Trainer store operation %s failed", operation)
            raise BackingStoreUnavailable(f"{operation} failed: {exc.__class__.__name__}") from exc


__all__ = ["SqlTrainerStore", "TrainerStore"]
