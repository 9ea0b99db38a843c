"""
Auth Provider Adapter.

Defines the ``AuthProvider`` contract the core depends on and its
Supabase implementation.  The adapter only translates between
``supabase.Client.auth`` and the core's immutable ``Session`` /
``UserIdentity`` models; error classification, timeouts and retries
live in the services.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, runtime_checkable

from chirp.backend import BackendManager
from chirp.logger import StructuredLogger
from chirp.models.auth_models import SignUpMetadata
from chirp.models.session import ExchangeResponse, Session, UserIdentity

AuthStateCallback = Callable[[str, Optional[Session]], None]


class Subscription:
    """Handle returned by every subscribe-style call.

    ``unsubscribe()`` is idempotent: the release callback runs at most
    once no matter how many times, or from how many threads, it is called.
    """

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Optional[Callable[[], None]] = release
        self._lock: threading.Lock = threading.Lock()

    @property
    def active(self) -> bool:
        with self._lock:
            return self._release is not None

    def unsubscribe(self) -> None:
        with self._lock:
            release, self._release = self._release, None
        if release is not None:
            release()


@runtime_checkable
class AuthProvider(Protocol):
    """Capabilities the core consumes from the external auth service."""

    def sign_in(self, email: str, password: str) -> ExchangeResponse: ...  # noqa: E704

    def sign_up(  # noqa: E704
        self, email: str, password: str, metadata: Optional[SignUpMetadata] = None,
    ) -> ExchangeResponse: ...

    def get_session(self) -> Optional[Session]: ...  # noqa: E704

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription: ...  # noqa: E704

    def sign_out(self) -> None: ...  # noqa: E704


# ---------------------------------------------------------------------------
# Supabase implementation
# ---------------------------------------------------------------------------

def to_identity(user: object) -> Optional[UserIdentity]:
    """Convert a supabase ``User`` into a ``UserIdentity`` (``None`` passes through)."""
    if user is None:
        return None
    return UserIdentity(
        id=str(getattr(user, "id")),
        email=getattr(user, "email", None) or None,
        metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def to_session(session: object) -> Optional[Session]:
    """Convert a supabase ``Session`` into a core ``Session``.

    A provider session without a user is meaningless to the core and is
    treated as no session at all.
    """
    if session is None:
        return None
    identity = to_identity(getattr(session, "user", None))
    if identity is None:
        return None

    expires_at: Optional[datetime] = None
    raw_expiry = getattr(session, "expires_at", None)
    if raw_expiry is not None:
        expires_at = datetime.fromtimestamp(int(raw_expiry), tz=timezone.utc)

    return Session(
        user=identity,
        access_token=getattr(session, "access_token"),
        refresh_token=getattr(session, "refresh_token", None),
        expires_at=expires_at,
    )


class SupabaseAuthProvider:
    """``AuthProvider`` backed by ``supabase.Client.auth``.

    Parameters
    ----------
    backend:
        Backend manager holding the shared Supabase client.
    logger:
        Structured JSON logger.
    """

    def __init__(self, backend: BackendManager, logger: StructuredLogger) -> None:
        self._backend: BackendManager = backend
        self._logger: StructuredLogger = logger

    def sign_in(self, email: str, password: str) -> ExchangeResponse:
        response = self._backend.supabase.auth.sign_in_with_password({
            "email": email,
            "password": password,
        })
        return ExchangeResponse(
            user=to_identity(response.user),
            session=to_session(response.session),
        )

    def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[SignUpMetadata] = None,
    ) -> ExchangeResponse:
        response = self._backend.supabase.auth.sign_up({
            "email": email,
            "password": password,
            "options": {
                "data": metadata.model_dump() if metadata is not None else {},
            },
        })
        return ExchangeResponse(
            user=to_identity(response.user),
            session=to_session(response.session),
        )

    def get_session(self) -> Optional[Session]:
        return to_session(self._backend.supabase.auth.get_session())

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription:
        def _relay(event: object, session: object) -> None:
            try:
                converted = to_session(session)
            except Exception as exc:
                self._logger.error(
                    "Dropping auth event %s: unreadable session (%s).", event, exc,
                )
                return
            callback(str(getattr(event, "value", event)), converted)

        provider_subscription = self._backend.supabase.auth.on_auth_state_change(_relay)
        return Subscription(provider_subscription.unsubscribe)

    def sign_out(self) -> None:
        self._backend.supabase.auth.sign_out()
