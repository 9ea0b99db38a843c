"""
Idempotent Profile Provisioning Service.

Guarantees that every signed-in user has exactly one ``user_profiles``
row before any feature that reads profiles runs.  Called on every
sign-in and session restore, not only after sign-up.

Provisioning strategy:
    - Existing profile: returned unchanged (no update-on-read).
    - Missing profile: built from sign-up metadata when present, else from
      defaults (``user`` + first 8 chars of the id, email local part).
    - Concurrent insert for the same user (two devices signing in at
      once): the uniqueness conflict is benign; re-fetch and return the
      row that won.
    - Any failure is logged and ``None`` is returned.  A missing profile
      must never keep a user out of the authenticated UI.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional

from pydantic import JsonValue, ValidationError

from chirp.errors import ProfileConflictError, ProfileProvisionError
from chirp.logger import StructuredLogger
from chirp.models.profile import Profile, ProfileMetadata
from chirp.repositories.profile_repository import ProfileStore
from chirp.services.base_service import BaseService
from chirp.utils.audit import log_audit_event
from chirp.utils.clock import Clock, SystemClock

DEFAULT_DISPLAY_NAME: str = "User"
USERNAME_PREFIX: str = "user"
USERNAME_ID_CHARS: int = 8


def default_username(user_id: str) -> str:
    """``user`` + the first 8 characters of *user_id*, lowercased."""
    return f"{USERNAME_PREFIX}{user_id[:USERNAME_ID_CHARS]}".lower()


def display_name_from_email(email: Optional[str]) -> str:
    """Local part of *email*, or ``"User"`` when there is none."""
    if email:
        local_part = email.strip().split("@", 1)[0].strip()
        if local_part:
            return local_part
    return DEFAULT_DISPLAY_NAME


class ProfileProvisioningService(BaseService):
    """Create-if-absent writer for user profiles.

    This service is the only writer of the create path; it never updates
    or deletes a profile.

    Parameters
    ----------
    store:
        Profile table adapter.
    logger:
        Structured JSON logger.
    clock:
        Time source for ``created_at`` / ``updated_at``.
    """

    def __init__(
        self,
        store: ProfileStore,
        logger: StructuredLogger,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(logger)
        self._store: ProfileStore = store
        self._clock: Clock = clock or SystemClock()

    def ensure_profile(
        self,
        user_id: str,
        email_hint: Optional[str] = None,
        metadata: Optional[Mapping[str, JsonValue]] = None,
    ) -> Optional[Profile]:
        """Return the profile for *user_id*, creating it if absent.

        Args:
            user_id: Provider id of the user.
            email_hint: The user's email, used for the default display name.
            metadata: The provider's ``user_metadata``; sign-up fields
                (``username``, ``display_name``, ``bio``, ``avatar_url``)
                seed the new profile when present.

        Returns:
            The existing or newly created profile, or ``None`` when
            provisioning failed (already logged).
        """
        try:
            return self._ensure(user_id, email_hint, metadata)
        except ProfileProvisionError as exc:
            self._logger.error(
                "Profile provisioning failed for %s: %s",
                user_id,
                exc.message,
                extra={"event": "PROFILE_PROVISION_FAILED", "user_id": user_id},
            )
            return None
        except Exception as exc:
            self._logger.error(
                "Profile provisioning: unexpected error for %s: %s",
                user_id,
                exc,
                exc_info=True,
                extra={"event": "PROFILE_PROVISION_FAILED", "user_id": user_id},
            )
            return None

    def build_profile(
        self,
        user_id: str,
        email_hint: Optional[str] = None,
        metadata: Optional[Mapping[str, JsonValue]] = None,
    ) -> Profile:
        """Synthesise the profile that would be inserted for *user_id*."""
        seed = self._parse_metadata(user_id, metadata)
        now: datetime = self._clock.now()
        return Profile(
            id=user_id,
            username=seed.username or default_username(user_id),
            display_name=seed.display_name or display_name_from_email(email_hint),
            bio=seed.bio,
            avatar_url=seed.avatar_url,
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Private implementation
    # ------------------------------------------------------------------

    def _ensure(
        self,
        user_id: str,
        email_hint: Optional[str],
        metadata: Optional[Mapping[str, JsonValue]],
    ) -> Profile:
        if not user_id:
            raise ProfileProvisionError("Cannot provision a profile without a user id")

        try:
            existing: Optional[Profile] = self._store.get_profile(user_id)
        except Exception as exc:
            raise ProfileProvisionError(
                f"Profile lookup failed: {exc}", original_error=exc,
            ) from exc

        if existing is not None:
            return existing

        return self._create(self.build_profile(user_id, email_hint, metadata))

    def _create(self, profile: Profile) -> Profile:
        self._logger.info(
            "Creating profile %s for user %s.", profile.username, profile.id,
        )

        try:
            created: Profile = self._store.insert_profile(profile)
        except ProfileConflictError as exc:
            return self._recover_from_conflict(profile, exc)
        except Exception as exc:
            raise ProfileProvisionError(
                f"Profile insert failed: {exc}", original_error=exc,
            ) from exc

        log_audit_event(
            logger=self._logger,
            action="PROFILE_CREATE",
            entity_type="Profile",
            entity_id=created.id,
            user_id=created.id,
            details={"username": created.username, "display_name": created.display_name},
        )
        return created

    def _recover_from_conflict(
        self,
        profile: Profile,
        conflict: ProfileConflictError,
    ) -> Profile:
        """Another writer got there first; return its row."""
        self._logger.warning(
            "Profile insert for %s hit a conflict; re-fetching. (%s)",
            profile.id,
            conflict.message,
        )

        try:
            winner: Optional[Profile] = self._store.get_profile(profile.id)
        except Exception as exc:
            raise ProfileProvisionError(
                f"Re-fetch after conflict failed: {exc}", original_error=exc,
            ) from exc

        if winner is None:
            # The conflict was on another column (e.g. a username taken by
            # a different user), not a concurrent insert of this profile.
            raise ProfileProvisionError(
                f"Insert for {profile.id} conflicted but no profile exists "
                f"(username {profile.username!r} may be taken)",
                original_error=conflict,
            )

        self._logger.info("Profile for %s found after conflict.", profile.id)
        return winner

    def _parse_metadata(
        self,
        user_id: str,
        metadata: Optional[Mapping[str, JsonValue]],
    ) -> ProfileMetadata:
        if not metadata:
            return ProfileMetadata()
        try:
            return ProfileMetadata.model_validate(dict(metadata))
        except ValidationError as exc:
            self._logger.warning(
                "Ignoring malformed sign-up metadata for %s: %s", user_id, exc,
            )
            return ProfileMetadata()
