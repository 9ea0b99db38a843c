"""
Backend Client Manager.

Owns the single Supabase client the auth provider and the profile
repository share.  Only manages the connection; it contains no auth or
query logic.

Usage (dependency injection at startup)::

    from chirp.backend import BackendManager
    from chirp.logger import StructuredLogger

    backend = BackendManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="backend"),
    )
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from supabase import Client as SupabaseClient, create_client

from chirp.logger import StructuredLogger


class BackendManager:
    """Holds the Supabase client, or nothing when unconfigured.

    When ``supabase_url`` or ``supabase_key`` is empty no client is
    created.  The ``supabase`` property then raises ``RuntimeError``,
    which the adapters surface as ``NetworkUnavailableError`` so the
    bootstrap fails closed to ``UNAUTHENTICATED``.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (e.g. ``https://xyz.supabase.co``).
    supabase_key:
        The Supabase anonymous key.
    logger:
        A ``StructuredLogger`` instance.
    client:
        Pre-built client, bypassing ``create_client`` (used by tests).
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        logger: StructuredLogger,
        client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._url: str = supabase_url

        self._supabase: Optional[SupabaseClient] = client
        if self._supabase is not None:
            return

        if supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Backend disabled.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. Backend disabled.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured; backend disabled."
            )

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the client was not initialised.
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "Set SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        return self._supabase

    @property
    def is_configured(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None

    @property
    def host(self) -> Optional[str]:
        """Hostname of the configured backend, if any."""
        if not self._url:
            return None
        return urlparse(self._url).hostname
