"""
Profile Repository.

Data access for ``user_profiles`` rows via Supabase.  This is the only
module that knows the table's name and shape; the provisioner talks to
it through the ``ProfileStore`` protocol.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from chirp.backend import BackendManager
from chirp.errors import ProfileConflictError
from chirp.logger import StructuredLogger
from chirp.models.profile import Profile
from chirp.repositories.base_repository import BaseRepository


@runtime_checkable
class ProfileStore(Protocol):
    """Capabilities the provisioner consumes from the profile table."""

    def get_profile(self, user_id: str) -> Optional[Profile]: ...  # noqa: E704

    def insert_profile(self, profile: Profile) -> Profile: ...  # noqa: E704

    def probe(self) -> bool: ...  # noqa: E704


class ProfileRepository(BaseRepository):
    """Data access layer for Profile entities.

    No update or delete methods: profile editing belongs to the UI
    features built on top of this core, and profiles are never removed
    by it.
    """

    TABLE = "user_profiles"

    def __init__(
        self,
        backend: BackendManager,
        logger: StructuredLogger,
        table: Optional[str] = None,
    ) -> None:
        super().__init__(backend, logger)
        if table:
            self.TABLE = table

    def get_profile(self, user_id: str) -> Optional[Profile]:
        """Fetch a profile by primary key, or ``None`` when absent."""
        response = (
            self.supabase.table(self.TABLE)
            .select("*")
            .eq("id", user_id)
            .maybe_single()
            .execute()
        )
        # Some postgrest versions return None instead of an empty response.
        if response is None or not response.data:
            return None
        return Profile(**response.data)

    def insert_profile(self, profile: Profile) -> Profile:
        """Insert *profile* and return the stored row.

        Raises:
            ProfileConflictError: A row with the same id or username exists.
        """
        payload = profile.model_dump(mode="json")
        try:
            response = self.supabase.table(self.TABLE).insert(payload).execute()
        except Exception as exc:
            if self.is_unique_violation(exc):
                raise ProfileConflictError(
                    f"Profile for user {profile.id} already exists",
                    original_error=exc,
                ) from exc
            raise

        rows = response.data or []
        if not rows:
            # Insert without representation: what we sent is what is stored.
            return profile
        return Profile(**rows[0])

    def probe(self) -> bool:
        """Run the cheapest possible query; raises when the backend is unreachable."""
        self.supabase.table(self.TABLE).select("id").limit(1).execute()
        return True
