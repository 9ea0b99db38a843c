"""
Authentication Pipeline Models.

Pydantic models and enumerations for the auth request/response
contracts between ``AuthService`` and the UI layer, plus the transient
records the credential exchange keeps while it retries.

Every UI-facing auth operation returns an ``AuthResult`` rather than
raising, so the UI never inspects raw exceptions.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from chirp.models.enums import BackoffStrategy, ExchangeKind


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Exhaustive enumeration of authentication error categories."""

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    EMAIL_ALREADY_REGISTERED = "email_already_registered"
    WEAK_PASSWORD = "weak_password"
    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    VALIDATION_ERROR = "validation_error"
    PROVIDER_ERROR = "provider_error"


ERROR_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Incorrect email or password.",
    AuthErrorCode.EMAIL_NOT_CONFIRMED: (
        "Your email address is not confirmed yet. "
        "Check your inbox and confirm your account."
    ),
    AuthErrorCode.EMAIL_ALREADY_REGISTERED: "This email address is already registered.",
    AuthErrorCode.WEAK_PASSWORD: "The password is not strong enough.",
    AuthErrorCode.NETWORK_UNAVAILABLE: (
        "No network connection. Check your internet connection and try again."
    ),
}

TIMEOUT_MESSAGES: dict[ExchangeKind, str] = {
    ExchangeKind.SIGN_IN: (
        "Signing in took too long. "
        "Check your network connection and try again."
    ),
    ExchangeKind.SIGN_UP: (
        "Creating the account took too long. "
        "Check your network connection and try again."
    ),
}


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None
    error_code: AuthErrorCode = AuthErrorCode.VALIDATION_ERROR


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for sign-in and sign-up.

    Attributes
    ----------
    success:
        ``True`` when the exchange completed without error.
    error_code:
        Structured error category (``None`` on success).
    error_message:
        User-facing description of the failure (``None`` on success,
        or an informational note such as the confirmation reminder).
    user_id:
        Provider id of the signed-in / registered user.
    email:
        The trimmed email the exchange was performed with.
    attempts:
        Number of provider calls made (``0`` when rejected locally).
    requires_email_confirmation:
        ``True`` after a sign-up that produced no session yet.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    attempts: int = 0
    requires_email_confirmation: bool = False


# ---------------------------------------------------------------------------
# Exchange inputs
# ---------------------------------------------------------------------------

class Credentials(BaseModel):
    """Email/password pair held only for the duration of one exchange."""

    model_config = ConfigDict(frozen=True)

    email: str = Field(min_length=1)
    password: SecretStr

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _password_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("password must not be empty")
        return value


class SignUpMetadata(BaseModel):
    """``user_metadata`` sent with a sign-up request."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    display_name: str = Field(min_length=1)

    @field_validator("username", mode="before")
    @classmethod
    def _normalise_username(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("display_name", mode="before")
    @classmethod
    def _strip_display_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Retry bookkeeping
# ---------------------------------------------------------------------------

class ExchangeAttempt(BaseModel):
    """One iteration of the exchange retry loop; discarded afterwards."""

    operation: ExchangeKind
    attempt_number: int = Field(ge=1)
    deadline: datetime


class RetryPolicy(BaseModel):
    """Backoff between timed-out exchange attempts.

    Only timeouts are retried; the policy decides how long to wait
    before the next attempt, never whether an error is retryable.
    """

    model_config = ConfigDict(frozen=True)

    backoff_ms: int = Field(default=1_000, ge=0)
    strategy: BackoffStrategy = BackoffStrategy.CONSTANT
    max_backoff_ms: int = Field(default=8_000, ge=0)

    def delay_seconds(self, attempt_number: int) -> float:
        """Seconds to wait after failed attempt *attempt_number* (1-based)."""
        if self.strategy == BackoffStrategy.EXPONENTIAL:
            delay_ms = min(self.backoff_ms * 2 ** (attempt_number - 1), self.max_backoff_ms)
        else:
            delay_ms = self.backoff_ms
        return delay_ms / 1000.0
