"""
Error Taxonomy.

Every failure the auth core can produce is one of the classes below.
Only :class:`OperationTimeoutError` is ever retried by the credential
exchange; every other :class:`ExchangeError` is terminal.
"""

from __future__ import annotations

from typing import Optional


class ChirpError(Exception):
    """Base class for all auth-core errors."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None) -> None:
        self.message: str = message
        self.original_error: Optional[BaseException] = original_error
        super().__init__(self.message)


class OperationTimeoutError(ChirpError):
    """A timed call did not settle before its deadline.

    Deliberately not a subclass of the built-in ``TimeoutError`` so callers
    can tell a deadline raised by :func:`chirp.utils.timeout.run_with_timeout`
    apart from anything the wrapped operation raises itself.
    """

    def __init__(self, operation: str, timeout_ms: int) -> None:
        self.operation: str = operation
        self.timeout_ms: int = timeout_ms
        super().__init__(f"{operation} timed out after {timeout_ms} ms")


# ---------------------------------------------------------------------------
# Terminal credential-exchange errors
# ---------------------------------------------------------------------------

class ExchangeError(ChirpError):
    """Terminal failure of a sign-in or sign-up exchange."""


class InvalidCredentialsError(ExchangeError):
    """The email/password pair was rejected."""


class EmailNotConfirmedError(ExchangeError):
    """The account exists but its email address is not confirmed yet."""


class AlreadyRegisteredError(ExchangeError):
    """Sign-up with an email that already has an account."""


class WeakPasswordError(ExchangeError):
    """The password does not satisfy the backend's strength policy."""


class NetworkUnavailableError(ExchangeError):
    """No network path to the auth backend."""


class ProviderError(ExchangeError):
    """Any provider failure with no dedicated class; keeps the provider's message."""


# ---------------------------------------------------------------------------
# Profile store / provisioning
# ---------------------------------------------------------------------------

class ProfileConflictError(ChirpError):
    """Insert rejected by a uniqueness or primary-key constraint."""


class ProfileProvisionError(ChirpError):
    """Profile provisioning failed; absorbed by the provisioner."""


# ---------------------------------------------------------------------------
# Session guard
# ---------------------------------------------------------------------------

class AuthenticationError(RuntimeError):
    """Raised when a guarded function is called without an active session."""
