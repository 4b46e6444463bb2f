"""
Out-of-band user notifications.

Delivery is best-effort: failures are logged and never abort the workflow
that sent the message.
"""

from typing import Optional

from ..config.defaults import NotificationParams
from .base import BaseNotifier, Messages
from .log_notifier import LogNotifier
from .telegram import TelegramNotifier


def create_notifier(params: Optional[NotificationParams] = None) -> BaseNotifier:
    """Telegram when a bot token is configured, otherwise the log notifier."""
    params = params or NotificationParams()
    if params.telegram_bot_token:
        return TelegramNotifier(
            bot_token=params.telegram_bot_token,
            api_url=params.telegram_api_url,
            timeout_seconds=params.timeout_seconds,
        )
    return LogNotifier()


__all__ = [
    "BaseNotifier",
    "LogNotifier",
    "Messages",
    "TelegramNotifier",
    "create_notifier",
]
