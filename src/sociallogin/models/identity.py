"""Canonical user identity model.

Every provider payload, whatever its shape, is normalized into a
`CanonicalIdentity`.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

    @classmethod
    def normalize(cls, value: Any) -> Sex:
        """Coerce any value to a Sex member; unrecognized values become OTHER."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.OTHER
        return cls.OTHER


class CanonicalIdentity(BaseModel):
    """Provider-agnostic user identity.

    Assignments are validated, so setting `sex` always coerces to a `Sex`
    member and setting a number on a string field stores its string form.
    Provider-specific extension values live in `extra`.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        coerce_numbers_to_str=True,
    )

    id: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    middlename: str | None = None
    fullname: str | None = None

    email: str | None = None
    email_verified: bool = False

    username: str | None = None
    nickname: str | None = None

    birthday: date | None = None
    sex: Sex | None = None

    city: str | None = None
    country: str | None = None
    locale: str | None = None

    picture_url: str | None = None
    photo_orig_200: str | None = None
    photo_orig_400: str | None = None
    photo_max: str | None = None

    mobile_phone: str | None = None
    has_mobile: bool | None = None
    trusted: bool | None = None

    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("sex", mode="before")
    @classmethod
    def normalize_sex(cls, v: Any) -> Sex | None:
        if v is None:
            return None
        return Sex.normalize(v)

    @field_validator("birthday", mode="before")
    @classmethod
    def strip_time(cls, v: Any) -> Any:
        # datetime is a date subclass; keep only the calendar date
        if isinstance(v, datetime):
            return v.date()
        return v

    def display_name(self) -> str | None:
        """Best available human readable name."""
        if self.fullname:
            return self.fullname
        parts = [p for p in (self.firstname, self.lastname) if p]
        if parts:
            return " ".join(parts)
        return self.username or self.nickname


class City(BaseModel):
    """City entry from a provider's geo directory (VK `database.getCities`)."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: int
    title: str
    region: str | None = None
