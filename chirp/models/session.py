"""
Identity and Session Models.

Immutable snapshots of what the auth provider returned.  The core only
reads these; the provider owns their lifecycle.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue


class UserIdentity(BaseModel):
    """Authenticated user as issued by the auth provider."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    email: Optional[str] = None
    metadata: dict[str, JsonValue] = Field(default_factory=dict)


class Session(BaseModel):
    """An active provider session for :attr:`user`."""

    model_config = ConfigDict(frozen=True)

    user: UserIdentity
    access_token: str = Field(repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    expires_at: Optional[datetime] = None

    def is_expired(self, leeway_seconds: int = 30) -> bool:
        """``True`` when the access token is within *leeway_seconds* of expiry."""
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at - timedelta(seconds=leeway_seconds)


class ExchangeResponse(BaseModel):
    """Result of one successful sign-in or sign-up call.

    Sign-up against a project with email confirmation enabled yields a
    ``user`` without a ``session``.
    """

    model_config = ConfigDict(frozen=True)

    user: Optional[UserIdentity] = None
    session: Optional[Session] = None
