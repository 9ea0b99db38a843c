"""
Chirp Auth Core Entry Point.

Bootstraps the dependency graph via constructor injection, resolves the
current session exactly as the mobile shell does on launch, logs the
outcome and tears everything down.  Every subsystem is wired here; there are
no module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import sys

from chirp.auth import SessionManager
from chirp.backend import BackendManager
from chirp.config import get_config
from chirp.logger import StructuredLogger, get_logger
from chirp.models.enums import AuthState
from chirp.services import create_services


def main() -> int:
    """Resolve the launch-time session and return a process exit code."""
    logger: StructuredLogger = get_logger("chirp.main")
    logger.info("Starting Chirp session bootstrap...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Backend client (unconfigured backend resolves as signed out)
    # ------------------------------------------------------------------
    backend = BackendManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="chirp.backend"),
    )

    # ------------------------------------------------------------------
    # 3. Session state + service container (single composition root)
    # ------------------------------------------------------------------
    session = SessionManager()
    services = create_services(backend=backend, config=config, session=session)
    orchestrator = services["session_bootstrap"]

    # ------------------------------------------------------------------
    # 4. Resolve, report, tear down
    # ------------------------------------------------------------------
    try:
        state = orchestrator.start()
        if state == AuthState.AUTHENTICATED:
            user = session.get_current_user()
            profile = session.profile
            logger.info(
                "Signed in as %s (profile: %s).",
                user.email or user.id,
                profile.username if profile is not None else "unavailable",
            )
        else:
            logger.info("No active session; sign-in required.")
    finally:
        orchestrator.teardown()
        logger.info("Chirp session bootstrap finished.")

    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
