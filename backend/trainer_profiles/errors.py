"""Error taxonomy shared by the resolver, the store adapters and the edit session."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_FORMAT = "InvalidFormat"
    NOT_FOUND = "NotFound"
    AMBIGUOUS_MATCH = "AmbiguousMatch"
    BACKING_STORE_UNAVAILABLE = "BackingStoreUnavailable"
    SAVE_CONFLICT = "SaveConflict"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_FORMAT: "This trainer link is not valid.",
    ErrorKind.NOT_FOUND: "Trainer not found.",
    ErrorKind.AMBIGUOUS_MATCH: "More than one trainer matches this link; the profile cannot be shown until the data is fixed.",
    ErrorKind.BACKING_STORE_UNAVAILABLE: "The trainer directory is temporarily unavailable. Please try again.",
    ErrorKind.SAVE_CONFLICT: "The profile changed on the server and could not be saved.",
}


class TrainerStoreError(RuntimeError):
    """Base class for failures raised by backing store adapters."""

    kind: ErrorKind = ErrorKind.BACKING_STORE_UNAVAILABLE


class BackingStoreUnavailable(TrainerStoreError):
    """Transport or connection failure; callers may retry."""

    kind = ErrorKind.BACKING_STORE_UNAVAILABLE


class SaveConflict(TrainerStoreError):
    """The stored record no longer has the shape a patch was written against."""

    kind = ErrorKind.SAVE_CONFLICT


def user_message(kind: ErrorKind) -> str:
    return USER_MESSAGES[kind]


__all__ = [
    "BackingStoreUnavailable",
    "ErrorKind",
    "SaveConflict",
    "TrainerStoreError",
    "USER_MESSAGES",
    "user_message",
]
