"""Security audit logging.

Logs authentication events and every certificate lifecycle operation
(submission, deletion, verification, minting) as structured records.
This trail is operational; the persistent per-certificate history lives in
the verification_logs table.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from starlette.requests import Request

log = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured audit event."""

    action: str  # e.g., "auth.login", "certificate.mint"
    principal: str = "anonymous"  # user id or "anonymous"
    resource: str | None = None  # e.g., "certificate:<id>"
    status: str = "success"  # "success", "denied", "error", "noop"
    details: dict[str, Any] | None = None
    request_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Audit logger for security-relevant operations.

    Logs events as structured records via Python's logging module and keeps
    an in-memory ring buffer for recent event retrieval.
    """

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._buffer: deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(self, event: AuditEvent) -> None:
        """Write an audit event to the log and the ring buffer."""
        if not self.enabled:
            return

        self._buffer.append(asdict(event))

        extra = {
            "type": "audit",
            "principal": event.principal,
            "action": event.action,
            "status": event.status,
        }
        if event.resource:
            extra["resource"] = event.resource
        if event.request_id:
            extra["request_id"] = event.request_id
        if event.details:
            extra["details"] = event.details

        if event.status in ("denied", "error"):
            log.warning(f"audit: {event.action} {event.status}", extra=extra)
        else:
            log.info(f"audit: {event.action} {event.status}", extra=extra)

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: str | None = None,
        status_filter: str | None = None,
    ) -> list[dict]:
        """Get recent audit events, newest first.

        Args:
            limit: Max events to return
            action_filter: Filter by action prefix (e.g., "auth.")
            status_filter: Filter by status (e.g., "denied")
        """
        events = list(self._buffer)
        events.reverse()

        if action_filter:
            events = [e for e in events if e["action"].startswith(action_filter)]
        if status_filter:
            events = [e for e in events if e["status"] == status_filter]

        return events[:limit]

    def log_login(
        self,
        user_id: str,
        wallet_address: str,
        created: bool,
        request: Request | None = None,
    ) -> None:
        """Log a successful wallet login."""
        self.log(
            AuditEvent(
                action="auth.login",
                principal=user_id,
                resource=f"wallet:{wallet_address}",
                details={"new_user": created},
                request_id=_get_request_id(request),
            )
        )

    def log_auth_failure(
        self,
        reason: str,
        request: Request | None = None,
    ) -> None:
        """Log a failed authentication attempt."""
        self.log(
            AuditEvent(
                action="auth.failure",
                status="denied",
                details={"reason": reason},
                request_id=_get_request_id(request),
            )
        )

    def log_certificate(
        self,
        action: str,
        user_id: str,
        certificate_id: str,
        status: str = "success",
        details: dict[str, Any] | None = None,
        request: Request | None = None,
    ) -> None:
        """Log a certificate lifecycle event.

        Args:
            action: Action suffix ("create", "delete", "verify", "mint")
            user_id: The acting user
            certificate_id: The certificate concerned
            status: "success", "error" or "noop"
            details: Additional context
            request: Optional request for correlation ID
        """
        self.log(
            AuditEvent(
                action=f"certificate.{action}",
                principal=user_id,
                resource=f"certificate:{certificate_id}",
                status=status,
                details=details,
                request_id=_get_request_id(request),
            )
        )


def _get_request_id(request: Request | None) -> str | None:
    """Extract request ID from request headers if available."""
    if request is None:
        return None

    for header in ("X-Request-ID", "X-Correlation-ID", "Request-Id"):
        if header in request.headers:
            return request.headers[header]

    return None
