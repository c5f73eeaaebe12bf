"""
Notifiers Package
Outbound delivery channels.
"""
from typing import Optional

from engagement.core.config import Settings, get_settings
from engagement.domain.interfaces.notifier import Notifier
from .smtp import SMTPNotifier, SMTPConfigError
from .logging_notifier import LoggingNotifier


def create_notifier(settings: Optional[Settings] = None) -> Notifier:
    """Build the notifier selected by the `notifier` setting."""
    settings = settings or get_settings()
    if settings.notifier == "smtp":
        return SMTPNotifier(settings)
    if settings.notifier == "logging":
        return LoggingNotifier()
    raise ValueError(f"Unknown notifier: {settings.notifier}")


__all__ = [
    "SMTPNotifier",
    "SMTPConfigError",
    "LoggingNotifier",
    "create_notifier",
]
