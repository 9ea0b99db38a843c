"""
Structured Audit Logging Utility.

Every state change the auth core makes in the backend (today: profile
creation) is logged as a schema-validated JSON object on the ``AUDIT:``
channel of the injected logger.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from chirp.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event"]

# Kept flat; nested structures should be modelled explicitly.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Log a structured JSON audit event and return it.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"PROFILE_CREATE"``).
        entity_type: Type of entity affected (e.g. ``"Profile"``).
        entity_id: Primary key of the affected entity.
        user_id: ID of the user on whose behalf the change was made.
        details: Optional additional context.  Never pass credentials.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info(
        "AUDIT: %s",
        json.dumps(event.model_dump(), default=str),
        extra={"event": action},
    )
    return event
