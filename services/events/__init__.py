"""Event Log - write-once, redacted audit trail."""

from services.events.log import EventLog, REDACTED, redact

__all__ = ["EventLog", "REDACTED", "redact"]
