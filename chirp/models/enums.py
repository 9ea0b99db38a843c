"""
Shared Enumerations for Chirp Models.

StrEnum values compare equal to their string equivalents, so they
serialise cleanly into log ``extra`` fields and config values.
"""

from __future__ import annotations
from enum import StrEnum


class AuthState(StrEnum):
    """Client-side authentication state.

    ``LOADING`` is only ever the initial state; once left it is never
    re-entered for the lifetime of the orchestrator.
    """

    LOADING = "LOADING"
    AUTHENTICATED = "AUTHENTICATED"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class ExchangeKind(StrEnum):
    """Which credential exchange endpoint an attempt targets."""

    SIGN_IN = "SIGN_IN"
    SIGN_UP = "SIGN_UP"


class BackoffStrategy(StrEnum):
    """Delay growth between timed-out exchange attempts."""

    CONSTANT = "constant"
    EXPONENTIAL = "exponential"
