"""
Application Configuration.

Pydantic Settings model for the Chirp auth core.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")
    PROFILES_TABLE: str = "user_profiles"

    # --- Credential exchange (milliseconds) ---
    SIGN_IN_TIMEOUT_MS: int = Field(default=30_000, gt=0)
    SIGN_UP_TIMEOUT_MS: int = Field(default=15_000, gt=0)
    EXCHANGE_MAX_RETRIES: int = Field(default=2, ge=0)
    RETRY_BACKOFF_MS: int = Field(default=1_000, ge=0)
    RETRY_BACKOFF_STRATEGY: Literal["constant", "exponential"] = "constant"
    RETRY_MAX_BACKOFF_MS: int = Field(default=8_000, ge=0)

    # --- Session bootstrap (milliseconds) ---
    SESSION_CHECK_TIMEOUT_MS: int = Field(default=10_000, gt=0)
    PROFILE_PROVISION_TIMEOUT_MS: int = Field(default=10_000, gt=0)

    # --- Connectivity ---
    CONNECTION_PROBE_TIMEOUT_MS: int = Field(default=5_000, gt=0)
    NETWORK_CHECK_TIMEOUT_S: float = Field(default=3.0, gt=0)

    # --- Sign-up policy ---
    MIN_PASSWORD_LENGTH: int = Field(default=6, ge=1)

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # empty: console only
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when the backend is not configured.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so an empty ``SUPABASE_URL`` would otherwise only surface as a
        confusing offline failure at the first sign-in.
        """
        _log = logging.getLogger("chirp.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty; the auth backend is unreachable "
                "and every session will resolve as unauthenticated."
            )

        return self

    @property
    def log_level(self) -> int:
        """Numeric logging level for ``LOG_LEVEL`` (falls back to INFO)."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so the fast path never touches the lock.

    Prefer constructor injection of ``AppConfig``; this factory exists for
    the logger and the entry point, which are created before anything else.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
