"""
Base Repository.

Provides shared infrastructure for all repositories:
- BackendManager reference (Supabase)
- Logger reference
- Postgres error helpers shared by the write paths
"""

from __future__ import annotations

from supabase import Client as SupabaseClient

from chirp.backend import BackendManager
from chirp.logger import StructuredLogger

# Postgres SQLSTATE for unique_violation (covers primary-key conflicts).
UNIQUE_VIOLATION: str = "23505"


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, backend: BackendManager, logger: StructuredLogger) -> None:
        self._backend = backend
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client; raises ``RuntimeError`` when unconfigured."""
        return self._backend.supabase

    @staticmethod
    def is_unique_violation(exc: BaseException) -> bool:
        """``True`` when *exc* is PostgREST reporting a uniqueness conflict."""
        if getattr(exc, "code", None) == UNIQUE_VIOLATION:
            return True
        text = str(exc).lower()
        return UNIQUE_VIOLATION in text or "duplicate key" in text
