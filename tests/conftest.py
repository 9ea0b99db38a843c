"""Shared fixtures: in-memory fakes for the auth provider, profile store and clock."""
from __future__ import annotations

import io
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional, Union
from uuid import uuid4

import pytest

from chirp.auth_provider import AuthStateCallback, Subscription
from chirp.config import AppConfig
from chirp.errors import ProfileConflictError
from chirp.logger import StructuredLogger
from chirp.models.auth_models import SignUpMetadata
from chirp.models.profile import Profile
from chirp.models.session import ExchangeResponse, Session, UserIdentity


class Hang:
    """Scripted outcome: block until the fake is released."""


HANG = Hang()

Outcome = Union[ExchangeResponse, BaseException, Hang]


class FakeAuthApiError(Exception):
    """Mimics supabase_auth's errors: a message, a machine-readable code and an HTTP status."""

    def __init__(
        self, message: str, code: Optional[str] = None, status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


def make_session(
    user_id: str = "8f14e45f-ceea-467f-a0e6-1c2a3b4d5e6f",
    email: Optional[str] = "jane@example.com",
    metadata: Optional[dict] = None,
) -> Session:
    return Session(
        user=UserIdentity(id=user_id, email=email, metadata=metadata or {}),
        access_token="access-token",
        refresh_token="refresh-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


def signed_in(session: Optional[Session] = None) -> ExchangeResponse:
    session = session or make_session()
    return ExchangeResponse(user=session.user, session=session)


class FakeAuthProvider:
    """Scriptable ``AuthProvider``.

    ``sign_in_script`` / ``sign_up_script`` are consumed one outcome per
    call; the last outcome repeats once the script runs out.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._release = threading.Event()
        self.sign_in_script: list[Outcome] = [signed_in()]
        self.sign_up_script: list[Outcome] = [signed_in()]
        self.sign_in_calls: list[tuple[str, str]] = []
        self.sign_up_calls: list[tuple[str, str, Optional[SignUpMetadata]]] = []
        self.session_outcome: Union[Optional[Session], BaseException, Hang] = None
        self.session_gate: Optional[threading.Event] = None
        self.sign_out_error: Optional[BaseException] = None
        self.sign_out_calls = 0
        self.emit_on_sign_out = True
        # supabase_auth notifies subscribers from inside sign_in / sign_up.
        self.emit_on_exchange = False
        self.subscribed = threading.Event()
        self._callbacks: dict[int, AuthStateCallback] = {}
        self._next_id = 0
        self.unsubscribe_calls = 0

    # -- AuthProvider -------------------------------------------------------

    def sign_in(self, email: str, password: str) -> ExchangeResponse:
        with self._lock:
            self.sign_in_calls.append((email, password))
            index = min(len(self.sign_in_calls), len(self.sign_in_script)) - 1
            outcome = self.sign_in_script[index]
        return self._settle(outcome)

    def sign_up(
        self, email: str, password: str, metadata: Optional[SignUpMetadata] = None,
    ) -> ExchangeResponse:
        with self._lock:
            self.sign_up_calls.append((email, password, metadata))
            index = min(len(self.sign_up_calls), len(self.sign_up_script)) - 1
            outcome = self.sign_up_script[index]
        return self._settle(outcome)

    def get_session(self) -> Optional[Session]:
        if self.session_gate is not None:
            self.session_gate.wait(5)
        outcome = self.session_outcome
        if isinstance(outcome, Hang):
            self._release.wait()
            return None
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription:
        with self._lock:
            callback_id = self._next_id
            self._next_id += 1
            self._callbacks[callback_id] = callback
        self.subscribed.set()
        return Subscription(lambda: self._unsubscribe(callback_id))

    def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error
        if self.emit_on_sign_out:
            self.emit("SIGNED_OUT", None)

    # -- Test helpers -------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def emit(self, event: str, session: Optional[Session]) -> None:
        with self._lock:
            callbacks = list(self._callbacks.values())
        for callback in callbacks:
            callback(event, session)

    def release(self) -> None:
        self._release.set()

    def _unsubscribe(self, callback_id: int) -> None:
        with self._lock:
            self.unsubscribe_calls += 1
            self._callbacks.pop(callback_id, None)

    def _settle(self, outcome: Outcome) -> ExchangeResponse:
        if isinstance(outcome, Hang):
            self._release.wait()
            raise RuntimeError("released after the caller gave up")
        if isinstance(outcome, BaseException):
            raise outcome
        if self.emit_on_exchange and outcome.session is not None:
            self.emit("SIGNED_IN", outcome.session)
        return outcome


class InMemoryProfileStore:
    """Thread-safe ``ProfileStore`` with a unique id and username, like the real table."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.rows: dict[str, Profile] = {}
        self.get_calls = 0
        self.insert_calls = 0
        self.conflicts = 0
        self.get_error: Optional[BaseException] = None
        self.insert_error: Optional[BaseException] = None
        self.probe_error: Optional[BaseException] = None
        self.hang: Optional[threading.Event] = None
        self.lookup_delay_s = 0.0
        self._race_barrier: Optional[threading.Barrier] = None
        self._race_gets_left = 0

    def race_first_lookups(self, parties: int) -> None:
        """Make the first *parties* lookups wait for each other, so all miss."""
        self._race_barrier = threading.Barrier(parties, timeout=5)
        self._race_gets_left = parties

    def get_profile(self, user_id: str) -> Optional[Profile]:
        if self.hang is not None:
            self.hang.wait()
        if self.lookup_delay_s:
            time.sleep(self.lookup_delay_s)
        with self._lock:
            self.get_calls += 1
            if self.get_error is not None:
                raise self.get_error
            found = self.rows.get(user_id)
            barrier = None
            if self._race_barrier is not None and self._race_gets_left > 0:
                self._race_gets_left -= 1
                barrier = self._race_barrier
        if barrier is not None:
            barrier.wait()
        return found

    def insert_profile(self, profile: Profile) -> Profile:
        with self._lock:
            self.insert_calls += 1
            if self.insert_error is not None:
                raise self.insert_error
            taken = any(row.username == profile.username for row in self.rows.values())
            if profile.id in self.rows or taken:
                self.conflicts += 1
                raise ProfileConflictError(
                    'duplicate key value violates unique constraint "user_profiles_pkey"'
                )
            self.rows[profile.id] = profile
            return profile

    def probe(self) -> bool:
        if self.probe_error is not None:
            raise self.probe_error
        return True


class FakeClock:
    """Records sleeps instead of waiting."""

    def __init__(self) -> None:
        self.sleeps: list[float] = []
        self._elapsed = 0.0
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._elapsed += seconds

    def monotonic(self) -> float:
        return self._elapsed

    def now(self) -> datetime:
        return self._epoch + timedelta(seconds=self._elapsed)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> StructuredLogger:
    return StructuredLogger(
        name=f"chirp.test.{uuid4().hex}",
        stream=log_stream,
        log_file="",
    )


@pytest.fixture
def provider() -> Iterator[FakeAuthProvider]:
    fake = FakeAuthProvider()
    yield fake
    fake.release()


@pytest.fixture
def store() -> Iterator[InMemoryProfileStore]:
    fake = InMemoryProfileStore()
    yield fake
    if fake.hang is not None:
        fake.hang.set()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        _env_file=None,
        SUPABASE_URL="https://demo.supabase.co",
        SIGN_IN_TIMEOUT_MS=200,
        SIGN_UP_TIMEOUT_MS=200,
        SESSION_CHECK_TIMEOUT_MS=200,
        PROFILE_PROVISION_TIMEOUT_MS=200,
        CONNECTION_PROBE_TIMEOUT_MS=200,
        EXCHANGE_MAX_RETRIES=2,
        RETRY_BACKOFF_MS=1000,
    )
