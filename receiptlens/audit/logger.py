"""
Audit Logger

DESIGN DECISION: Every engine mutation is logged.
This provides:
1. Traceability of generated occurrences back to their templates
2. A clear record of tier transitions and quota decisions
3. Evidence for reconciling a half-applied rename cascade

The audit logger:
- Is synchronous, like the rest of the engine
- Never raises (a logging failure must not fail a ledger operation)
- Keeps a bounded in-memory trail of the most recent events
"""

import logging
import sys
from collections import deque
from typing import Optional

import structlog

from receiptlens.models.audit import AuditEvent, AuditSeverity


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog for JSON output."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log and remembers the most
    recent ones so the UI (and tests) can show what just happened.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("receiptlens.audit")
        self._recent: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, oldest first."""
        return list(self._recent)

    def log(self, event: AuditEvent) -> None:
        self._recent.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            print(f"WARNING: Failed to write audit event {event.event_id}: {e}", file=sys.stderr)

    def events_for(self, entity_type: str, entity_id: Optional[str] = None) -> list[AuditEvent]:
        return [
            event for event in self._recent
            if event.entity_type == entity_type
            and (entity_id is None or event.entity_id == entity_id)
        ]
