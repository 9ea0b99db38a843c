"""
Authentication & Session State.

Provides an injectable ``SessionManager`` that holds the resolved auth
state, the current provider session and the user's profile for the
lifetime of one UI session.  The bootstrap orchestrator is its only
writer; UI code and guards read from it.

Usage::

    from chirp.auth import SessionManager

    session = SessionManager()
    orchestrator = SessionBootstrapOrchestrator(..., session=session)
    orchestrator.start()
    if session.is_authenticated:
        user = session.get_current_user()
"""

from __future__ import annotations

import threading
from typing import Optional

from chirp.models.enums import AuthState
from chirp.models.profile import Profile
from chirp.models.session import Session, UserIdentity


class SessionManager:
    """Injectable holder for the current auth state.

    Each instance maintains its own state, eliminating the need for
    module-level globals.  Pass a single ``SessionManager`` through the
    composition root so every component shares it.
    """

    def __init__(self) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._state: AuthState = AuthState.LOADING
        self._session: Optional[Session] = None
        self._profile: Optional[Profile] = None

    def set_authenticated(self, session: Session, profile: Optional[Profile]) -> None:
        """Record *session* (and its profile, when provisioned) as current."""
        with self._lock:
            self._state = AuthState.AUTHENTICATED
            self._session = session
            self._profile = profile

    def set_unauthenticated(self) -> None:
        """Drop the session and profile; the state leaves ``LOADING`` for good."""
        with self._lock:
            self._state = AuthState.UNAUTHENTICATED
            self._session = None
            self._profile = None

    @property
    def state(self) -> AuthState:
        with self._lock:
            return self._state

    @property
    def session(self) -> Optional[Session]:
        with self._lock:
            return self._session

    @property
    def profile(self) -> Optional[Profile]:
        """The user's profile, or ``None`` when provisioning failed."""
        with self._lock:
            return self._profile

    def get_current_user(self) -> UserIdentity:
        """Return the authenticated user.

        Raises:
            RuntimeError: If no user is currently authenticated.
        """
        with self._lock:
            if self._session is None:
                raise RuntimeError(
                    "No user is currently authenticated. Sign-in required."
                )
            return self._session.user

    @property
    def access_token(self) -> Optional[str]:
        """Return the current access token, or ``None`` if not signed in."""
        with self._lock:
            return self._session.access_token if self._session else None

    @property
    def is_token_expired(self) -> bool:
        """``True`` when the access token has expired or was never set."""
        with self._lock:
            if self._session is None:
                return True
            return self._session.is_expired()

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a user is currently signed in."""
        with self._lock:
            return self._state == AuthState.AUTHENTICATED
