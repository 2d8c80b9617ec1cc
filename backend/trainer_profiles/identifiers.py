"""Classification and normalisation of public trainer identifiers."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

MAX_IDENTIFIER_LENGTH = 128

UNIQUE_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
DISAMBIGUATION_SUFFIX = re.compile(r"-[0-9a-f]{8}$")
_LOOSE_PATTERN = re.compile(r"^[\w\s.\-]+$", re.UNICODE)
_PLACEHOLDER_VALUES = {"undefined", "null"}


class IdentifierShape(str, Enum):
    UNIQUE_ID = "unique_id"
    SLUG = "slug"
    LOOSE_SLUG = "loose_slug"
    INVALID = "invalid"


@dataclass(frozen=True)
class Identifier:
    """An identifier as received, plus the forms the resolver looks it up by."""

    raw: str
    value: str
    shape: IdentifierShape
    normalized: str = ""

    @property
    def is_valid(self) -> bool:
        return self.shape is not IdentifierShape.INVALID

    @property
    def is_unique_id(self) -> bool:
        return self.shape is IdentifierShape.UNIQUE_ID


def is_unique_id(value: str) -> bool:
    return bool(UNIQUE_ID_PATTERN.match(value or ""))


def is_valid_slug(value: str) -> bool:
    return bool(value) and bool(SLUG_PATTERN.match(value))


def normalize_slug(value: str) -> str:
    """Fold a display string into slug form: ``"Ána  Souza"`` -> ``"ana-souza"``."""
    if not value or not isinstance(value, str):
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(char for char in decomposed if not unicodedata.combining(char))
    lowered = ascii_only.strip().lower()
    lowered = re.sub(r"[_.]+", "-", lowered)
    lowered = re.sub(r"[^a-z0-9\s-]", "", lowered)
    lowered = re.sub(r"\s+", "-", lowered)
    lowered = re.sub(r"-+", "-", lowered)
    return lowered.strip("-")


def strip_disambiguation_suffix(slug: str) -> str:
    """Drop a trailing 8-hex token (``ana-souza-e0f255ab`` -> ``ana-souza``)."""
    stripped = DISAMBIGUATION_SUFFIX.sub("", slug)
    return stripped if stripped else slug


def has_disambiguation_suffix(slug: str) -> bool:
    return bool(DISAMBIGUATION_SUFFIX.search(slug)) and strip_disambiguation_suffix(slug) != slug


def _is_placeholder(value: str) -> bool:
    # Links built from an unset client-side value carry "undefined" somewhere in the path.
    lowered = value.lower()
    return lowered in _PLACEHOLDER_VALUES or "undefined" in lowered


def parse_identifier(raw: Any) -> Identifier:
    """Classify ``raw`` without touching any store."""
    if not isinstance(raw, str):
        return Identifier(raw="" if raw is None else str(raw), value="", shape=IdentifierShape.INVALID)

    value = raw.strip()
    invalid = Identifier(raw=raw, value=value, shape=IdentifierShape.INVALID)
    if not value or len(value) > MAX_IDENTIFIER_LENGTH or _is_placeholder(value):
        return invalid

    if is_unique_id(value):
        return Identifier(raw=raw, value=value, shape=IdentifierShape.UNIQUE_ID, normalized=value.lower())

    if is_valid_slug(value):
        return Identifier(raw=raw, value=value, shape=IdentifierShape.SLUG, normalized=value)

    if not _LOOSE_PATTERN.match(value):
        return invalid
    normalized = normalize_slug(value)
    if not is_valid_slug(normalized):
        return invalid
    return Identifier(raw=raw, value=value, shape=IdentifierShape.LOOSE_SLUG, normalized=normalized)


def canonical_redirect(identifier: Identifier, slug: Optional[str]) -> Optional[str]:
    """Return the slug callers should redirect to, or None when already canonical."""
    if not slug:
        return None
    if identifier.value == slug:
        return None
    return slug


__all__ = [
    "DISAMBIGUATION_SUFFIX",
    "Identifier",
    "IdentifierShape",
    "MAX_IDENTIFIER_LENGTH",
    "canonical_redirect",
    "has_disambiguation_suffix",
    "is_unique_id",
    "is_valid_slug",
    "normalize_slug",
    "parse_identifier",
    "strip_disambiguation_suffix",
]
