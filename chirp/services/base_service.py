"""
Base Service Class.

Minimal base class standardizing the logger pattern for the auth-core
services.  Services extend this and add their collaborators via __init__.
"""

from __future__ import annotations

from chirp.logger import StructuredLogger


class BaseService:
    """Base class for all service classes. Provides ``self._logger``."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
