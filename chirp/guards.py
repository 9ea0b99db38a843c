"""
Authentication Guard Decorator.

Provides a factory that produces a decorator for gating feature code
(feed, posting, profile editing) behind a resolved, authenticated
session.

Usage::

    from chirp.auth import SessionManager
    from chirp.guards import require_session

    session = SessionManager()
    signed_in = require_session(session)

    @signed_in
    def load_home_feed() -> list[str]:
        ...
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from chirp.auth import SessionManager
from chirp.errors import AuthenticationError
from chirp.models.enums import AuthState

P = ParamSpec("P")
R = TypeVar("R")


def require_session(session: SessionManager) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that enforces an authenticated *session*.

    The state is read on every call, so a sign-out observed by the
    orchestrator locks guarded functions immediately.  While the state is
    still ``LOADING`` the call is refused as well.

    Args:
        session: The ``SessionManager`` the orchestrator publishes into.

    Returns:
        A decorator suitable for wrapping feature-layer callables.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            state = session.state
            if state != AuthState.AUTHENTICATED:
                raise AuthenticationError(
                    "Authentication required. "
                    f"Current session state is {state}; please sign in."
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator
