"""
Repository Layer Package.

Data-access abstractions over Supabase tables.  Services never touch
``backend.supabase.table(...)`` directly.

Usage:
    from chirp.repositories.profile_repository import ProfileRepository
"""

from chirp.repositories.base_repository import BaseRepository
from chirp.repositories.profile_repository import ProfileRepository, ProfileStore

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "ProfileStore",
]
