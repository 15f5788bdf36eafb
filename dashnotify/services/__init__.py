"""Notification services, looked up by type name."""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from dashnotify.engine.errors import ConfigurationError

from .base import Destination, Notification, NotificationService
from .grafana import AuthMode, GrafanaAnnotation, GrafanaService, new_grafana_service

SERVICE_FACTORIES: Dict[str, Callable[..., NotificationService]] = {
    "grafana": new_grafana_service,
}


def new_service(service_type: str, options: Mapping[str, Any], **kwargs: Any) -> NotificationService:
    """Build the notification service registered under ``service_type``."""
    factory = SERVICE_FACTORIES.get(service_type)
    if factory is None:
        raise ConfigurationError(
            f"Unknown notification service type: {service_type!r} "
            f"(available: {', '.join(sorted(SERVICE_FACTORIES))})",
            service=service_type,
            field="service",
        )
    return factory(options, **kwargs)


__all__ = [
    "AuthMode",
    "Destination",
    "GrafanaAnnotation",
    "GrafanaService",
    "Notification",
    "NotificationService",
    "SERVICE_FACTORIES",
    "new_grafana_service",
    "new_service",
]
