"""Notifier that only writes messages to the log; used without a bot token."""

from .base import BaseNotifier, NotificationResult, NotificationStatus


class LogNotifier(BaseNotifier):
    """Records every message as a structured log event."""

    def __init__(self, **kwargs):
        super().__init__("log", **kwargs)
        self.sent: list[tuple[str, str]] = []

    def deliver(self, chat_id: str, text: str) -> NotificationResult:
        self.sent.append((chat_id, text))
        self.logger.info("User notification", chat_id=chat_id, text=text)
        return NotificationResult(
            status=NotificationStatus.SUCCESS,
            message="Logged"
        )

    def health_check(self) -> bool:
        return True
