"""
dashnotify Error Hierarchy — Structured exceptions for delivery diagnostics.

Every error carries the service name and any extra context as keyword
arguments, serializable to JSON for log shipping.

Hierarchy:
    DashNotifyError
    ├── ConfigurationError       — Malformed base URL / options / unknown service
    ├── AuthSetupError           — Identity-token client could not be built
    ├── AnnotationEncodingError  — Annotation could not be serialized
    ├── ResponseReadError        — Response body could not be read
    └── DeliveryError            — Endpoint answered with a non-200 status

Transport-level failures are raised as ``httpx.TransportError`` unchanged.
``TransportError`` is re-exported here so callers can catch every failure
mode from one module.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from httpx import TransportError


class DashNotifyError(Exception):
    """
    Base error for all dashnotify failures.
    All context is kept as a dict so it can be serialized.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.service: Optional[str] = context.get("service")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "service": self.service,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k != "service"
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.service:
            parts.append(f"service={self.service}")
        return " | ".join(parts)


class ConfigurationError(DashNotifyError):
    """Options are unusable (unparseable base URL, unknown service type)."""

    def __init__(self, message: str, **context: Any):
        self.field: Optional[str] = context.get("field")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["field"] = self.field
        return d


class AuthSetupError(DashNotifyError):
    """Identity-token client construction failed. No request was attempted."""

    def __init__(self, message: str, **context: Any):
        self.subsystem: Optional[str] = context.get("subsystem")
        super().__init__(message, **context)


class AnnotationEncodingError(DashNotifyError):
    """Annotation could not be serialized to JSON."""
    pass


class ResponseReadError(DashNotifyError):
    """A response arrived but its body could not be read."""

    def __init__(self, message: str, **context: Any):
        self.url: Optional[str] = context.get("url")
        super().__init__(message, **context)


class DeliveryError(DashNotifyError):
    """Endpoint answered with anything other than HTTP 200."""

    def __init__(self, message: str, **context: Any):
        self.url: Optional[str] = context.get("url")
        self.status_code: Optional[int] = context.get("status_code")
        self.response_body: Optional[str] = context.get("response_body")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["url"] = self.url
        d["status_code"] = self.status_code
        d["response_body"] = self.response_body
        return d


__all__ = [
    "AnnotationEncodingError",
    "AuthSetupError",
    "ConfigurationError",
    "DashNotifyError",
    "DeliveryError",
    "ResponseReadError",
    "TransportError",
]
