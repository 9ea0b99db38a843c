"""
Data Models Package.

Re-exports all Pydantic models:
    from chirp.models import Session, UserIdentity, Profile, AuthResult
    from chirp.models import AuthState, ExchangeKind
"""

from chirp.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    Credentials,
    ExchangeAttempt,
    RetryPolicy,
    SignUpMetadata,
    ValidationResult,
)
from chirp.models.enums import AuthState, BackoffStrategy, ExchangeKind
from chirp.models.profile import Profile, ProfileMetadata
from chirp.models.session import ExchangeResponse, Session, UserIdentity

__all__ = [
    "AuthErrorCode",
    "AuthResult",
    "AuthState",
    "BackoffStrategy",
    "Credentials",
    "ExchangeAttempt",
    "ExchangeKind",
    "ExchangeResponse",
    "Profile",
    "ProfileMetadata",
    "RetryPolicy",
    "Session",
    "SignUpMetadata",
    "UserIdentity",
    "ValidationResult",
]
