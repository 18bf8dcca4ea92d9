"""Audit logging module for certmint."""

from certmint.audit.logger import AuditEvent, AuditLogger

__all__ = [
    "AuditEvent",
    "AuditLogger",
]
