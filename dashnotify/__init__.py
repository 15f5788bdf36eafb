"""
dashnotify — Notification delivery as dashboard annotations.

Turns a notification plus a destination into a Grafana annotation and posts
it over HTTP, authenticated with a static API key or a service-account
identity token.

Usage:
    from dashnotify import Destination, Notification, new_service

    svc = new_service("grafana", {"apiUrl": "https://grafana.example/api", "apiKey": "..."})
    svc.send(Notification(message="deployed v1.2"), Destination(recipient="deploy|prod"))
"""

__version__ = "0.1.0"

from dashnotify.services import (  # noqa: E402
    Destination,
    GrafanaService,
    Notification,
    NotificationService,
    new_service,
)

__all__ = [
    "Destination",
    "GrafanaService",
    "Notification",
    "NotificationService",
    "new_service",
]
