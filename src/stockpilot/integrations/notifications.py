# Notifications — user-facing status messages emitted by the marketplace client.
# Created: 2026-10-19
#
# The client never renders anything itself; it hands (message, type) pairs to
# a callback supplied by whatever UI is driving it.

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger("stockpilot.notifications")


class NotificationType(str, Enum):
    """Severity of a user-facing notification."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


Notifier = Callable[[str, NotificationType], None]

_LEVELS = {
    NotificationType.SUCCESS: logging.INFO,
    NotificationType.INFO: logging.INFO,
    NotificationType.WARNING: logging.WARNING,
    NotificationType.ERROR: logging.ERROR,
}


def log_notifier(message: str, kind: NotificationType) -> None:
    """Default notifier: route notifications to the log."""
    logger.log(_LEVELS.get(kind, logging.INFO), "[%s] %s", kind.value, message)
