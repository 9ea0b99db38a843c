"""
Authentication Service.

UI-facing facade over the credential exchange: sign-in, sign-up,
sign-out and the backend connection check.

Sits between the UI layer and the exchange / provider so that login and
signup screens stay thin form handlers.  Every method returns a typed
``AuthResult`` (or a plain ``bool`` / ``None``); the UI never inspects
raw exceptions.

Order of checks for sign-in and sign-up:
    1. Local field validation (no network).
    2. Connectivity pre-check (no retry consumed when offline).
    3. Credential exchange with timeout and bounded retries.
"""

from __future__ import annotations

import re
from typing import Optional

from chirp.auth_provider import AuthProvider
from chirp.config import AppConfig
from chirp.errors import (
    AlreadyRegisteredError,
    ChirpError,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    NetworkUnavailableError,
    OperationTimeoutError,
    ProviderError,
    WeakPasswordError,
)
from chirp.logger import StructuredLogger
from chirp.models.auth_models import (
    ERROR_MESSAGES,
    TIMEOUT_MESSAGES,
    AuthErrorCode,
    AuthResult,
    Credentials,
    ExchangeAttempt,
    SignUpMetadata,
    ValidationResult,
)
from chirp.models.enums import ExchangeKind
from chirp.services.base_service import BaseService
from chirp.services.connectivity import ConnectivityService
from chirp.services.credential_exchange import CredentialExchangeService


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

_ERROR_CODES: dict[type[ChirpError], AuthErrorCode] = {
    InvalidCredentialsError: AuthErrorCode.INVALID_CREDENTIALS,
    EmailNotConfirmedError: AuthErrorCode.EMAIL_NOT_CONFIRMED,
    AlreadyRegisteredError: AuthErrorCode.EMAIL_ALREADY_REGISTERED,
    WeakPasswordError: AuthErrorCode.WEAK_PASSWORD,
    NetworkUnavailableError: AuthErrorCode.NETWORK_UNAVAILABLE,
    OperationTimeoutError: AuthErrorCode.TIMEOUT,
    ProviderError: AuthErrorCode.PROVIDER_ERROR,
}

_CONFIRM_EMAIL_MESSAGE: str = (
    "Account created. Check your email to confirm your account."
)


class AuthService(BaseService):
    """Sign-in / sign-up / sign-out entry points for the UI.

    Parameters
    ----------
    exchange:
        Retrying credential exchange.
    provider:
        Auth provider adapter, used directly only for sign-out.
    config:
        Timeouts, retry count and password policy.
    logger:
        Structured JSON logger.
    connectivity:
        Optional network/backend checks.  When omitted, the connectivity
        pre-check is skipped.
    """

    def __init__(
        self,
        exchange: CredentialExchangeService,
        provider: AuthProvider,
        config: AppConfig,
        logger: StructuredLogger,
        connectivity: Optional[ConnectivityService] = None,
    ) -> None:
        super().__init__(logger)
        self._exchange: CredentialExchangeService = exchange
        self._provider: AuthProvider = provider
        self._config: AppConfig = config
        self._connectivity: Optional[ConnectivityService] = connectivity

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Require a non-empty, plausibly well-formed email address."""
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Please enter your email address.",
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address.",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_password(password: str, min_length: int) -> ValidationResult:
        """Enforce the sign-up password policy: at least *min_length* characters.

        A too-short password is reported as ``WEAK_PASSWORD`` so the UI
        shows the same feedback as a backend strength rejection.
        """
        if not password:
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a password.",
            )
        if len(password) < min_length:
            return ValidationResult(
                is_valid=False,
                error_message=f"Password must be at least {min_length} characters.",
                error_code=AuthErrorCode.WEAK_PASSWORD,
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_required(value: str, field_label: str) -> ValidationResult:
        """Reject empty or whitespace-only form fields."""
        if not value or not value.strip():
            return ValidationResult(
                is_valid=False,
                error_message=f"{field_label} is required.",
            )
        return ValidationResult(is_valid=True)

    # ==================================================================
    # Sign-in
    # ==================================================================

    def sign_in(self, email: str, password: str) -> AuthResult:
        """Exchange email and password for a session.

        On success the provider emits an auth-state-change notification;
        the bootstrap orchestrator provisions the profile and publishes
        the authenticated state from it.
        """
        email = (email or "").strip()
        if not email or not password:
            return self._invalid(
                ValidationResult(
                    is_valid=False,
                    error_message="Please enter your email and password.",
                )
            )

        offline = self._offline_result()
        if offline is not None:
            return offline

        credentials = Credentials(email=email, password=password)
        attempts: list[ExchangeAttempt] = []
        try:
            response = self._exchange.exchange(
                ExchangeKind.SIGN_IN,
                credentials,
                timeout_ms=self._config.SIGN_IN_TIMEOUT_MS,
                max_retries=self._config.EXCHANGE_MAX_RETRIES,
                attempt_log=attempts,
            )
        except ChirpError as exc:
            return self._failure(ExchangeKind.SIGN_IN, exc, email, len(attempts))

        user_id = response.user.id if response.user is not None else None
        self._logger.info(
            "User signed in: %s",
            email,
            extra={"event": "SIGN_IN", "email": email, "user_id": user_id or ""},
        )
        return AuthResult(
            success=True,
            user_id=user_id,
            email=email,
            attempts=len(attempts),
        )

    # ==================================================================
    # Sign-up
    # ==================================================================

    def sign_up(
        self,
        email: str,
        password: str,
        confirm_password: str,
        username: str,
        display_name: str,
    ) -> AuthResult:
        """Register a new account.

        ``username`` (lowercased) and ``display_name`` travel as sign-up
        metadata and seed the user's profile on first session.
        """
        checks = (
            self.validate_required(email, "Email"),
            self.validate_required(password, "Password"),
            self.validate_required(username, "Username"),
            self.validate_required(display_name, "Display name"),
        )
        for check in checks:
            if not check.is_valid:
                return self._invalid(check)

        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return self._invalid(email_check)

        if password != confirm_password:
            return self._invalid(
                ValidationResult(
                    is_valid=False,
                    error_message="Passwords do not match.",
                )
            )

        pw_check = self.validate_password(password, self._config.MIN_PASSWORD_LENGTH)
        if not pw_check.is_valid:
            return self._invalid(pw_check)

        offline = self._offline_result()
        if offline is not None:
            return offline

        email = email.strip()
        credentials = Credentials(email=email, password=password)
        metadata = SignUpMetadata(username=username, display_name=display_name)
        attempts: list[ExchangeAttempt] = []
        try:
            response = self._exchange.exchange(
                ExchangeKind.SIGN_UP,
                credentials,
                metadata,
                timeout_ms=self._config.SIGN_UP_TIMEOUT_MS,
                max_retries=self._config.EXCHANGE_MAX_RETRIES,
                attempt_log=attempts,
            )
        except ChirpError as exc:
            return self._failure(ExchangeKind.SIGN_UP, exc, email, len(attempts))

        needs_confirmation = response.session is None
        user_id = response.user.id if response.user is not None else None
        self._logger.info(
            "User registered: %s (%s).",
            metadata.username,
            email,
            extra={
                "event": "SIGN_UP",
                "email": email,
                "user_id": user_id or "",
                "requires_email_confirmation": needs_confirmation,
            },
        )
        return AuthResult(
            success=True,
            user_id=user_id,
            email=email,
            attempts=len(attempts),
            requires_email_confirmation=needs_confirmation,
            error_message=_CONFIRM_EMAIL_MESSAGE if needs_confirmation else None,
        )

    # ==================================================================
    # Sign-out
    # ==================================================================

    def sign_out(self) -> None:
        """Ask the provider to invalidate the current session.

        The resulting auth-state-change notification moves the
        orchestrator to ``UNAUTHENTICATED``; nothing is cleared here.
        Failures are logged, never raised.
        """
        try:
            self._provider.sign_out()
        except Exception as exc:
            self._logger.warning(
                "Sign-out request failed: %s", exc,
                extra={"event": "SIGN_OUT_FAILED"},
            )
            return
        self._logger.info("Sign-out requested.", extra={"event": "SIGN_OUT"})

    # ==================================================================
    # Connectivity
    # ==================================================================

    def check_backend_connection(self) -> bool:
        """``True`` when the backend answered a probe query in time."""
        if self._connectivity is None:
            return False
        return self._connectivity.check_backend_connection()

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _offline_result(self) -> Optional[AuthResult]:
        if self._connectivity is None:
            return None
        if self._connectivity.is_network_available() is False:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_UNAVAILABLE,
                error_message=ERROR_MESSAGES[AuthErrorCode.NETWORK_UNAVAILABLE],
            )
        return None

    @staticmethod
    def _invalid(check: ValidationResult) -> AuthResult:
        return AuthResult(
            success=False,
            error_code=check.error_code,
            error_message=check.error_message,
        )

    def _failure(
        self,
        kind: ExchangeKind,
        exc: ChirpError,
        email: str,
        attempts: int,
    ) -> AuthResult:
        """Map a terminal exchange error to a user-facing ``AuthResult``."""
        code = next(
            (code for cls, code in _ERROR_CODES.items() if isinstance(exc, cls)),
            AuthErrorCode.PROVIDER_ERROR,
        )
        if code == AuthErrorCode.TIMEOUT:
            message = TIMEOUT_MESSAGES[kind]
        elif code == AuthErrorCode.PROVIDER_ERROR:
            message = exc.message
        else:
            message = ERROR_MESSAGES[code]

        self._logger.warning(
            "%s failed for %s after %d attempt(s): %s",
            kind, email, attempts, code,
            extra={"event": f"{kind}_FAILED", "error_code": str(code)},
        )
        return AuthResult(
            success=False,
            error_code=code,
            error_message=message,
            email=email,
            attempts=attempts,
        )
