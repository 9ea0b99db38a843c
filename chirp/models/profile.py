"""
Profile Model.

One row of the ``user_profiles`` table.  Field names follow the table's
snake_case columns so rows round-trip without key mapping.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Profile(BaseModel):
    """Public profile of a user; exactly one per ``UserIdentity.id``."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    display_name: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("username")
    @classmethod
    def _lowercase_username(cls, value: str) -> str:
        return value.strip().lower()


class ProfileMetadata(BaseModel):
    """Identity metadata captured at sign-up and used to seed a new profile.

    Unknown keys in the provider's ``user_metadata`` are ignored, and
    blank strings count as absent.
    """

    model_config = ConfigDict(extra="ignore")

    username: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("username", "display_name", "bio", "avatar_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value
