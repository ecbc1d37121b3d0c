"""User-facing transient notifications (success/error toasts)"""

import logging
from typing import Literal, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Variant = Literal["default", "destructive"]


class Notification(BaseModel):
    title: str
    description: str
    variant: Variant = "default"


class Notifier(Protocol):
    def notify(self, title: str, description: str, variant: Variant = "default") -> None: ...


class LoggingNotifier:
    """Notification sink that only writes to the log"""

    def notify(self, title: str, description: str, variant: Variant = "default") -> None:
        if variant == "destructive":
            logger.warning(f"🔔 {title}: {description}")
        else:
            logger.info(f"🔔 {title}: {description}")


class RequestNotifier(LoggingNotifier):
    """Collects notifications raised while serving one request so they can be returned to the UI"""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, title: str, description: str, variant: Variant = "default") -> None:
        super().notify(title, description, variant)
        self.notifications.append(Notification(title=title, description=description, variant=variant))


def get_request_notifier() -> RequestNotifier:
    """Dependency injection for a per-request notifier"""
    return RequestNotifier()
