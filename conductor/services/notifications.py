"""
Notifications - One-way user feedback (toasts) for gate failures and confirmations.

Notifiers are called synchronously and never awaited; a failing notifier is
logged and otherwise ignored so it cannot disturb core state.
"""
import logging
import uuid
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..config import settings

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: f"toast_{uuid.uuid4().hex[:12]}")
    message: str
    severity: Severity = Severity.INFO
    duration_ms: int = 3000
    created_at: datetime = Field(default_factory=datetime.now)


class ToastNotifier:
    """Keeps the most recent notifications for the UI to poll."""

    def __init__(self, max_items: int = 50):
        self._toasts: deque[Notification] = deque(maxlen=max_items)

    def notify(self, message: str, severity: Severity = Severity.INFO, duration_ms: Optional[int] = None):
        if duration_ms is None:
            duration_ms = (
                settings.error_notification_duration_ms
                if severity == Severity.ERROR
                else settings.notification_duration_ms
            )
        self._toasts.append(Notification(message=message, severity=severity, duration_ms=duration_ms))

    def drain(self) -> list[Notification]:
        """Return and clear pending notifications."""
        items = list(self._toasts)
        self._toasts.clear()
        return items

    def __len__(self) -> int:
        return len(self._toasts)


class LoggingNotifier:
    """Writes notifications to the log instead of a UI."""

    def notify(self, message: str, severity: Severity = Severity.INFO, duration_ms: Optional[int] = None):
        level = logging.WARNING if severity in (Severity.ERROR, Severity.WARNING) else logging.INFO
        logger.log(level, f"[{severity.value}] {message}")

    def drain(self) -> list[Notification]:
        """Nothing is kept for polling."""
        return []


def safe_notify(notifier, message: str, severity: Severity = Severity.INFO, duration_ms: Optional[int] = None):
    """Fire-and-forget notification."""
    if notifier is None:
        return
    try:
        notifier.notify(message, severity, duration_ms)
    except Exception as e:
        logger.warning(f"Notifier failed: {e}")


# Global notifier instance
notifier = None


def create_notifier():
    """Build the notifier selected in settings."""
    if settings.notifier_backend == "log":
        return LoggingNotifier()
    return ToastNotifier()


def get_notifier():
    """Get or create the global notifier."""
    global notifier
    if notifier is None:
        notifier = create_notifier()
    return notifier
