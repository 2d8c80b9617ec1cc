"""Trainer record, profile document and unified profile models."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrainerRecord(BaseModel):
    """Canonical, column-backed trainer row as returned by the backing store."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    slug: Optional[str] = None
    role: str = "trainer"
    status: Optional[str] = None
    is_active: bool = False
    is_verified: bool = False
    bio: Optional[str] = None
    specialties: Optional[List[str]] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    profile_data: Optional[Any] = None


class EducationEntry(BaseModel):
    name: str = ""
    detail: str = ""
    year: str = ""


def _unique_strings(values: List[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


class ProfileDocument(BaseModel):
    """Explicit schema for the loosely-structured ``profile_data`` bag.

    Documents are stored with camelCase keys. Build instances through
    :meth:`coerce`, which never raises: a value of the wrong type falls back
    to the field default so one broken attribute cannot hide the others.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    email: str = ""
    phone: str = ""
    bio: str = ""
    instagram: str = ""
    experience_years: str = Field(default="", alias="experienceYears")
    response_time: str = Field(default="", alias="responseTime")
    students_count: str = Field(default="", alias="studentsCount")
    credential: str = ""
    specialties: List[str] = Field(default_factory=list)
    modalities: List[str] = Field(default_factory=list)
    cities: List[str] = Field(default_factory=list)
    city: str = ""
    address: str = ""
    cep: str = ""
    number: str = ""
    complement: str = ""
    universities: List[EducationEntry] = Field(default_factory=list)
    courses: List[EducationEntry] = Field(default_factory=list)
    gallery_images: List[str] = Field(default_factory=list, alias="galleryImages")
    stories: List[str] = Field(default_factory=list)
    profile_photo: str = Field(default="", alias="profilePhoto")

    @classmethod
    def coerce(cls, raw: Any) -> "ProfileDocument":
        if not isinstance(raw, Mapping):
            return cls()
        values: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            key = field.alias or name
            if key in raw:
                value = raw[key]
            elif name in raw:
                value = raw[name]
            else:
                continue
            values[name] = _DOCUMENT_COERCERS[name](value)
        return cls.model_validate(values)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return ""


def coerce_string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return _unique_strings(items)


def coerce_media_list(value: Any) -> List[str]:
    """Gallery and story entries may be bare URLs or objects carrying ``url``."""
    if not isinstance(value, (list, tuple)):
        return []
    urls: List[str] = []
    for item in value:
        if isinstance(item, Mapping):
            item = item.get("url")
        if isinstance(item, str) and item.strip():
            urls.append(item.strip())
    return _unique_strings(urls)


def coerce_education(value: Any) -> List[EducationEntry]:
    if not isinstance(value, (list, tuple)):
        return []
    entries: List[EducationEntry] = []
    for item in value:
        if isinstance(item, str):
            entries.append(EducationEntry(name=item))
        elif isinstance(item, Mapping):
            entries.append(
                EducationEntry(
                    name=coerce_text(item.get("name")),
                    detail=coerce_text(item.get("detail", item.get("institution"))),
                    year=coerce_text(item.get("year")),
                )
            )
    return entries


_DOCUMENT_COERCERS: Dict[str, Callable[[Any], Any]] = {
    name: coerce_text for name in ProfileDocument.model_fields
}
_DOCUMENT_COERCERS.update(
    {
        "specialties": coerce_string_list,
        "modalities": coerce_string_list,
        "cities": coerce_string_list,
        "gallery_images": coerce_media_list,
        "stories": coerce_media_list,
        "universities": coerce_education,
        "courses": coerce_education,
    }
)


class UnifiedTrainerProfile(BaseModel):
    """Single merged view of a trainer. Every field always carries a value."""

    id: str
    user_id: str = ""
    slug: str = ""
    role: str = "trainer"
    status: str = ""
    is_active: bool = False
    is_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    name: str = ""
    email: str = ""
    phone: str = ""
    bio: str = ""
    specialties: List[str] = Field(default_factory=list)
    profile_photo: str = ""
    instagram: str = ""
    experience_years: str = ""
    response_time: str = ""
    students_count: str = ""
    credential: str = ""
    modalities: List[str] = Field(default_factory=list)
    cities: List[str] = Field(default_factory=list)
    city: str = ""
    address: str = ""
    cep: str = ""
    number: str = ""
    complement: str = ""
    universities: List[EducationEntry] = Field(default_factory=list)
    courses: List[EducationEntry] = Field(default_factory=list)
    gallery_images: List[str] = Field(default_factory=list)
    stories: List[str] = Field(default_factory=list)

    @field_validator("specialties", "modalities", "cities", "gallery_images", "stories")
    @classmethod
    def _dedupe(cls, values: List[str]) -> List[str]:
        return _unique_strings(values)


# Logical fields backed by a strictly-typed column, mapped to that column.
COLUMN_BACKED_FIELDS: Dict[str, str] = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "bio": "bio",
    "specialties": "specialties",
    "profile_photo": "avatar_url",
}

READ_ONLY_FIELDS: FrozenSet[str] = frozenset(
    {
        "id",
        "user_id",
        "slug",
        "role",
        "status",
        "is_active",
        "is_verified",
        "created_at",
        "updated_at",
        "last_login_at",
    }
)

EDITABLE_FIELDS: FrozenSet[str] = frozenset(
    name for name in UnifiedTrainerProfile.model_fields if name not in READ_ONLY_FIELDS
)

# camelCase document key for every editable field.
DOCUMENT_KEYS: Dict[str, str] = {
    name: (field.alias or name) for name, field in ProfileDocument.model_fields.items()
}


def field_name_for(key: str) -> Optional[str]:
    """Map a snake_case or camelCase key onto a unified profile field name."""
    if key in UnifiedTrainerProfile.model_fields:
        return key
    for name, document_key in DOCUMENT_KEYS.items():
        if document_key == key:
            return name
    return None


__all__ = [
    "COLUMN_BACKED_FIELDS",
    "DOCUMENT_KEYS",
    "EDITABLE_FIELDS",
    "EducationEntry",
    "ProfileDocument",
    "READ_ONLY_FIELDS",
    "TrainerRecord",
    "UnifiedTrainerProfile",
    "coerce_education",
    "coerce_media_list",
    "coerce_string_list",
    "coerce_text",
    "field_name_for",
]
