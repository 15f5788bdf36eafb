from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Notification:
    """Rendered notification handed over by the dispatch layer."""

    message: str = ""


@dataclass(frozen=True, slots=True)
class Destination:
    """Where a notification goes. ``recipient`` is interpreted per service."""

    recipient: str = ""
    service: str = ""


class NotificationService(Protocol):
    """Common interface implemented by notification services."""

    def send(self, notification: Notification, destination: Destination) -> None:
        """Deliver ``notification`` to ``destination``, raising on failure."""


__all__ = [
    "Destination",
    "Notification",
    "NotificationService",
]
