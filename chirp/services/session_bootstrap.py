"""
Session Bootstrap Orchestrator.

Resolves the client's auth state on launch and keeps it current for the
lifetime of the UI session.

State machine::

    LOADING -> AUTHENTICATED | UNAUTHENTICATED
    AUTHENTICATED <-> UNAUTHENTICATED   (notifications only)

``LOADING`` is left exactly once.  The launch check fetches the current
session under a deadline; a timeout or any error fails closed to
``UNAUTHENTICATED``.  Every auth-state-change notification runs the same
provision-then-publish step.  Sign-out is never applied directly: the
provider's notification is the single source of truth.

Thread Safety
-------------
Notifications arrive on the provider's thread.  The sync supabase client
delivers ``SIGNED_IN`` from inside ``sign_in_with_password`` / ``sign_up``,
i.e. on the credential exchange's timed worker, so the callback only
records the notification and queues it on a single worker thread owned by
the orchestrator.  Provisioning never counts against an exchange deadline.
The queued work may still overlap the launch check, so publication is
guarded by a generation counter: a result is published only if no newer
notification arrived while it was being computed.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from chirp.auth import SessionManager
from chirp.auth_provider import AuthProvider, Subscription
from chirp.errors import OperationTimeoutError
from chirp.logger import StructuredLogger
from chirp.models.enums import AuthState
from chirp.models.profile import Profile
from chirp.models.session import Session
from chirp.services.base_service import BaseService
from chirp.services.profile_provisioning import ProfileProvisioningService
from chirp.utils.timeout import run_with_timeout

StateListener = Callable[[AuthState], None]


class SessionBootstrapOrchestrator(BaseService):
    """Owns the ``LOADING -> AUTHENTICATED | UNAUTHENTICATED`` lifecycle.

    Parameters
    ----------
    provider:
        Auth provider adapter (session reads and change notifications).
    provisioner:
        Idempotent profile provisioner run for every observed user.
    session:
        Injectable state holder the resolved state is published into.
    logger:
        Structured JSON logger.
    session_timeout_ms:
        Deadline for the launch-time session fetch.
    provision_timeout_ms:
        Deadline for one provisioning run; a miss is treated as a
        provisioning failure and the user is still authenticated.
    """

    def __init__(
        self,
        provider: AuthProvider,
        provisioner: ProfileProvisioningService,
        session: SessionManager,
        logger: StructuredLogger,
        session_timeout_ms: int = 10_000,
        provision_timeout_ms: int = 10_000,
    ) -> None:
        super().__init__(logger)
        self._provider: AuthProvider = provider
        self._provisioner: ProfileProvisioningService = provisioner
        self._session: SessionManager = session
        self._session_timeout_ms: int = session_timeout_ms
        self._provision_timeout_ms: int = provision_timeout_ms

        self._lock: threading.Lock = threading.Lock()
        self._generation: int = 0
        self._started: bool = False
        self._torn_down: bool = False
        self._subscription: Optional[Subscription] = None
        self._listeners: dict[int, StateListener] = {}
        self._next_listener_id: int = 0
        self._resolved: threading.Event = threading.Event()
        self._worker: ThreadPoolExecutor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="auth-state",
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._session.state

    def start(self) -> AuthState:
        """Subscribe to auth changes, then resolve the launch state.

        Blocks until the launch state is resolved, bounded by the session
        and provisioning deadlines; UI shells call it from a worker thread.
        If a notification overtakes the launch check, waits for that
        notification to publish instead.  Calling it a second time, or
        after ``teardown()``, is a logged no-op.

        Returns:
            The resolved state (``LOADING`` only after a concurrent
            ``teardown()``).
        """
        with self._lock:
            if self._started or self._torn_down:
                self._logger.warning("Session bootstrap already started; ignoring.")
                return self._session.state
            self._started = True
            generation = self._generation

        try:
            subscription = self._provider.on_auth_state_change(self._on_auth_state_change)
        except Exception as exc:
            self._logger.error(
                "Could not subscribe to auth state changes: %s. "
                "Continuing without live updates.",
                exc,
            )
        else:
            with self._lock:
                if self._torn_down:
                    release: Optional[Subscription] = subscription
                else:
                    self._subscription = subscription
                    release = None
            if release is not None:
                release.unsubscribe()

        current: Optional[Session] = None
        try:
            current = run_with_timeout(
                self._provider.get_session,
                self._session_timeout_ms,
                name="get-session",
            )
        except OperationTimeoutError:
            self._logger.warning(
                "Session check timed out after %d ms; treating as signed out.",
                self._session_timeout_ms,
                extra={"event": "SESSION_CHECK_TIMEOUT"},
            )
        except Exception as exc:
            self._logger.warning(
                "Session check failed: %s; treating as signed out.",
                exc,
                extra={"event": "SESSION_CHECK_FAILED"},
            )

        self._apply(current, generation, source="bootstrap")
        if self._session.state == AuthState.LOADING:
            # A notification overtook the launch check and is still provisioning.
            return self.wait_until_resolved(
                (self._session_timeout_ms + self._provision_timeout_ms) / 1000.0
            )
        return self._session.state

    def teardown(self) -> None:
        """Unsubscribe from the provider and drop all state listeners.

        Idempotent.  Results still in flight are discarded.
        """
        with self._lock:
            if self._torn_down:
                return
            self._torn_down = True
            subscription, self._subscription = self._subscription, None
            self._listeners.clear()

        if subscription is not None:
            subscription.unsubscribe()
        self._worker.shutdown(wait=False, cancel_futures=True)
        self._resolved.set()
        self._logger.info("Session bootstrap torn down.")

    def add_state_listener(self, listener: StateListener) -> Subscription:
        """Call *listener* with every published state until unsubscribed."""
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener
        return Subscription(lambda: self._remove_listener(listener_id))

    def wait_until_resolved(self, timeout_s: Optional[float] = None) -> AuthState:
        """Block until ``LOADING`` has been left (or *timeout_s* elapses)."""
        self._resolved.wait(timeout_s)
        return self._session.state

    def flush(self, timeout_s: Optional[float] = None) -> bool:
        """Block until every notification received so far has been applied.

        Returns ``False`` if *timeout_s* elapsed first.
        """
        with self._lock:
            if self._torn_down:
                return True
            pending = self._worker.submit(lambda: None)
        try:
            pending.result(timeout_s)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Provider callback
    # ------------------------------------------------------------------

    def _on_auth_state_change(self, event: str, session: Optional[Session]) -> None:
        with self._lock:
            if self._torn_down:
                return
            self._generation += 1
            generation = self._generation
            self._worker.submit(self._process, event, session, generation)

    def _process(self, event: str, session: Optional[Session], generation: int) -> None:
        self._logger.info(
            "Auth state change: %s (user present: %s).",
            event,
            session is not None,
            extra={"event": "AUTH_STATE_CHANGE", "auth_event": event},
        )
        try:
            self._apply(session, generation, source=event)
        except Exception as exc:
            self._logger.error(
                "Failed to apply auth state change %s: %s", event, exc, exc_info=True,
            )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _apply(self, session: Optional[Session], generation: int, source: str) -> None:
        """Provision (if signed in) and publish, unless superseded."""
        profile: Optional[Profile] = None
        if session is not None:
            profile = self._provision(session)

        with self._lock:
            if self._torn_down:
                return
            if generation != self._generation:
                self._logger.debug(
                    "Discarding stale %s result (generation %d, current %d).",
                    source, generation, self._generation,
                )
                return

            if session is None:
                self._session.set_unauthenticated()
            else:
                self._session.set_authenticated(session, profile)
            state = self._session.state
            listeners = list(self._listeners.values())

        self._resolved.set()
        self._logger.info(
            "Session resolved as %s (source: %s).",
            state,
            source,
            extra={
                "event": "SESSION_RESOLVED",
                "state": str(state),
                "user_id": session.user.id if session is not None else "",
            },
        )

        for listener in listeners:
            try:
                listener(state)
            except Exception as exc:
                self._logger.error("State listener raised: %s", exc, exc_info=True)

    def _provision(self, session: Session) -> Optional[Profile]:
        user = session.user
        try:
            return run_with_timeout(
                lambda: self._provisioner.ensure_profile(user.id, user.email, user.metadata),
                self._provision_timeout_ms,
                name="ensure-profile",
            )
        except OperationTimeoutError:
            self._logger.warning(
                "Profile provisioning for %s timed out after %d ms; continuing.",
                user.id,
                self._provision_timeout_ms,
                extra={"event": "PROFILE_PROVISION_FAILED", "user_id": user.id},
            )
        except Exception as exc:
            self._logger.error(
                "Profile provisioning for %s failed: %s; continuing.",
                user.id,
                exc,
                extra={"event": "PROFILE_PROVISION_FAILED", "user_id": user.id},
            )
        return None

    def _remove_listener(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)
