"""
Connectivity Checks.

Two cheap questions asked before or around credential exchanges:

- ``is_network_available()``: can we open a TCP connection to the
  backend host at all?  Used to short-circuit sign-in/sign-up without
  spending a retry on a dead network.
- ``check_backend_connection()``: does a one-row profile query come back
  within the probe deadline?
"""

from __future__ import annotations

import socket
from typing import Callable, Optional

from chirp.backend import BackendManager
from chirp.errors import OperationTimeoutError
from chirp.logger import StructuredLogger
from chirp.repositories.profile_repository import ProfileStore
from chirp.services.base_service import BaseService
from chirp.utils.timeout import run_with_timeout

Connector = Callable[[tuple[str, int], float], socket.socket]


class ConnectivityService(BaseService):
    """Network and backend reachability checks.

    Parameters
    ----------
    backend:
        Backend manager; supplies the host to dial.
    store:
        Profile store used by the backend probe.
    logger:
        Structured JSON logger.
    network_timeout_s:
        Socket connect timeout for the network check.
    probe_timeout_ms:
        Deadline for the backend probe query.
    connector:
        ``socket.create_connection``-compatible callable (injectable).
    """

    HTTPS_PORT: int = 443

    def __init__(
        self,
        backend: BackendManager,
        store: ProfileStore,
        logger: StructuredLogger,
        network_timeout_s: float = 3.0,
        probe_timeout_ms: int = 5_000,
        connector: Optional[Connector] = None,
    ) -> None:
        super().__init__(logger)
        self._backend: BackendManager = backend
        self._store: ProfileStore = store
        self._network_timeout_s: float = network_timeout_s
        self._probe_timeout_ms: int = probe_timeout_ms
        self._connect: Connector = connector or socket.create_connection

    def is_network_available(self) -> Optional[bool]:
        """``True``/``False`` when known; ``None`` when no backend host is configured."""
        host = self._backend.host
        if not host:
            return None
        try:
            conn = self._connect((host, self.HTTPS_PORT), self._network_timeout_s)
        except OSError as exc:
            self._logger.info(
                "Network check: cannot reach %s (%s).", host, exc,
                extra={"event": "NETWORK_UNAVAILABLE"},
            )
            return False
        conn.close()
        return True

    def check_backend_connection(self) -> bool:
        """Probe the profile table; ``False`` on timeout or any error."""
        try:
            return bool(run_with_timeout(
                self._store.probe,
                self._probe_timeout_ms,
                name="backend-probe",
            ))
        except OperationTimeoutError:
            self._logger.warning(
                "Backend probe timed out after %d ms.", self._probe_timeout_ms,
            )
        except Exception as exc:
            self._logger.warning("Backend probe failed: %s", exc)
        return False
