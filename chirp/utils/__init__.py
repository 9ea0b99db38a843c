"""Shared utilities: timeout race, clock, audit logging."""

from chirp.utils.audit import AuditEvent, log_audit_event
from chirp.utils.clock import Clock, SystemClock
from chirp.utils.timeout import run_with_timeout

__all__ = [
    "AuditEvent",
    "Clock",
    "SystemClock",
    "log_audit_event",
    "run_with_timeout",
]
