"""Audit logging package."""

from receiptlens.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
