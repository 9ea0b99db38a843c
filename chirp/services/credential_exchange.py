"""
Retrying Credential Exchange.

Wraps one sign-in or sign-up call to the auth provider in the timeout
race and retries it, with backoff, while (and only while) it keeps
timing out.  Every other failure is classified into the error taxonomy
and raised on the spot.

Retry contract:
    - ``max_retries + 1`` provider calls at most, strictly sequential.
    - A timeout is followed by a backoff sleep, then the next attempt.
    - After the last attempt times out, its ``OperationTimeoutError``
      is raised.
    - Terminal errors are raised after exactly the attempt that hit them.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Optional

import httpx

from chirp.auth_provider import AuthProvider
from chirp.errors import (
    AlreadyRegisteredError,
    ChirpError,
    EmailNotConfirmedError,
    ExchangeError,
    InvalidCredentialsError,
    NetworkUnavailableError,
    OperationTimeoutError,
    ProviderError,
    WeakPasswordError,
)
from chirp.logger import StructuredLogger
from chirp.models.auth_models import (
    Credentials,
    ExchangeAttempt,
    RetryPolicy,
    SignUpMetadata,
)
from chirp.models.enums import ExchangeKind
from chirp.models.session import ExchangeResponse
from chirp.services.base_service import BaseService
from chirp.utils.clock import Clock, SystemClock
from chirp.utils.timeout import run_with_timeout


# ---------------------------------------------------------------------------
# Provider error classification
# ---------------------------------------------------------------------------

# Matched against the provider's error ``code`` and lower-cased message.
PROVIDER_ERROR_MAP: tuple[tuple[str, type[ExchangeError]], ...] = (
    ("invalid_credentials", InvalidCredentialsError),
    ("invalid login credentials", InvalidCredentialsError),
    ("invalid_grant", InvalidCredentialsError),
    ("email_not_confirmed", EmailNotConfirmedError),
    ("email not confirmed", EmailNotConfirmedError),
    ("user_already_exists", AlreadyRegisteredError),
    ("email_exists", AlreadyRegisteredError),
    ("already registered", AlreadyRegisteredError),
    ("weak_password", WeakPasswordError),
    ("password should be", WeakPasswordError),
)

# HTTP statuses of a gateway that gave up waiting on the auth server.
GATEWAY_TIMEOUT_STATUSES: frozenset[int] = frozenset({504, 524})


def classify_provider_error(
    exc: BaseException,
    operation: str,
    timeout_ms: int,
) -> ChirpError:
    """Map a raw provider / transport exception onto the error taxonomy.

    Transport-level and gateway timeouts become ``OperationTimeoutError`` so the retry
    loop treats them exactly like a missed deadline.

    Args:
        exc: The exception raised by the provider call.
        operation: Label of the timed operation, for timeout errors.
        timeout_ms: Deadline of the attempt, for timeout errors.
    """
    if isinstance(exc, ChirpError):
        return exc

    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return OperationTimeoutError(operation, timeout_ms)

    # supabase_auth raises AuthRetryableError for 5xx gateway responses.
    if getattr(exc, "status", None) in GATEWAY_TIMEOUT_STATUSES:
        return OperationTimeoutError(operation, timeout_ms)

    message: str = str(getattr(exc, "message", None) or exc)
    code: str = str(getattr(exc, "code", None) or "").lower()
    haystack = f"{code} {message.lower()}"
    for needle, error_cls in PROVIDER_ERROR_MAP:
        if needle in haystack:
            return error_cls(message, original_error=exc)

    # The backend manager raises RuntimeError when no client is configured.
    if isinstance(exc, (httpx.TransportError, ConnectionError, RuntimeError)):
        return NetworkUnavailableError(message, original_error=exc)

    return ProviderError(message, original_error=exc)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CredentialExchangeService(BaseService):
    """Timeout-and-retry wrapper around the provider's credential endpoints.

    Parameters
    ----------
    provider:
        The auth provider adapter.
    logger:
        Structured JSON logger.
    retry_policy:
        Backoff between timed-out attempts (constant 1 s by default).
    clock:
        Sleep/time source; injectable so tests do not wait for backoffs.
    """

    def __init__(
        self,
        provider: AuthProvider,
        logger: StructuredLogger,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(logger)
        self._provider: AuthProvider = provider
        self._policy: RetryPolicy = retry_policy or RetryPolicy()
        self._clock: Clock = clock or SystemClock()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    def exchange(
        self,
        kind: ExchangeKind,
        credentials: Credentials,
        metadata: Optional[SignUpMetadata] = None,
        *,
        timeout_ms: int,
        max_retries: int,
        attempt_log: Optional[list[ExchangeAttempt]] = None,
    ) -> ExchangeResponse:
        """Exchange *credentials* for a provider response.

        Args:
            kind: Sign-in or sign-up.
            credentials: Trimmed email and secret password.
            metadata: Sign-up ``user_metadata``; ignored for sign-in.
            timeout_ms: Deadline of each individual attempt.
            max_retries: Additional attempts allowed after a timeout.
            attempt_log: When given, every attempt is appended to it.

        Returns:
            The provider's response from the first attempt that settled
            successfully.

        Raises:
            OperationTimeoutError: Every attempt timed out.
            ExchangeError: A terminal failure (never retried).
            ValueError: Non-positive *timeout_ms* or negative *max_retries*.
        """
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")

        total_attempts = max_retries + 1
        call = self._provider_call(kind, credentials, metadata)
        attempt_number = 0

        while True:
            attempt_number += 1
            attempt = ExchangeAttempt(
                operation=kind,
                attempt_number=attempt_number,
                deadline=self._clock.now() + timedelta(milliseconds=timeout_ms),
            )
            if attempt_log is not None:
                attempt_log.append(attempt)

            label = f"{kind.lower()}-attempt-{attempt_number}"
            self._logger.debug(
                "%s attempt %d/%d for %s (deadline %s).",
                kind, attempt_number, total_attempts, credentials.email,
                attempt.deadline.isoformat(),
            )

            try:
                response = run_with_timeout(
                    lambda label=label: self._classified(call, label, timeout_ms),
                    timeout_ms,
                    name=label,
                )
            except OperationTimeoutError:
                self._logger.warning(
                    "%s attempt %d/%d timed out after %d ms.",
                    kind, attempt_number, total_attempts, timeout_ms,
                    extra={"event": "EXCHANGE_TIMEOUT", "attempt": attempt_number},
                )
                if attempt_number >= total_attempts:
                    self._logger.warning(
                        "%s gave up after %d timed-out attempts.",
                        kind, total_attempts,
                        extra={"event": f"{kind}_FAILED", "error": "OperationTimeoutError"},
                    )
                    raise
                self._clock.sleep(self._policy.delay_seconds(attempt_number))
                continue
            except ExchangeError as exc:
                self._logger.warning(
                    "%s rejected on attempt %d: %s (%s).",
                    kind, attempt_number, type(exc).__name__, exc.message,
                    extra={"event": f"{kind}_FAILED", "error": type(exc).__name__},
                )
                raise

            self._logger.info(
                "%s succeeded on attempt %d/%d.",
                kind, attempt_number, total_attempts,
                extra={"event": str(kind), "attempt": attempt_number},
            )
            return response

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _provider_call(
        self,
        kind: ExchangeKind,
        credentials: Credentials,
        metadata: Optional[SignUpMetadata],
    ) -> Callable[[], ExchangeResponse]:
        password = credentials.password.get_secret_value()
        if kind == ExchangeKind.SIGN_UP:
            return lambda: self._provider.sign_up(credentials.email, password, metadata)
        return lambda: self._provider.sign_in(credentials.email, password)

    @staticmethod
    def _classified(
        call: Callable[[], ExchangeResponse],
        label: str,
        timeout_ms: int,
    ) -> ExchangeResponse:
        try:
            return call()
        except Exception as exc:
            classified = classify_provider_error(exc, label, timeout_ms)
            if classified is exc:
                raise
            raise classified from exc
