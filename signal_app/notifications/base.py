"""Base classes for best-effort user notifications."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import structlog

from ..errors import CollaboratorError


class NotificationStatus(Enum):
    """Notification delivery status."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class NotificationResult:
    """Result of a notification attempt."""
    status: NotificationStatus
    message: Optional[str] = None
    attempt_count: int = 1
    delivery_time_ms: Optional[int] = None
    error: Optional[Exception] = None


class NotificationError(CollaboratorError):
    """Base exception for notification errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, collaborator="notifier", **kwargs)


class NotificationRetryableError(NotificationError):
    """Transient failure; the message may be sent again."""
    pass


class NotificationPermanentError(NotificationError):
    """Failure that retrying will not fix (bad chat, bad token)."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.recoverable = False


class Messages:
    """Texts sent to users along a signal's life."""
    GRANTED = "The analysis system is working. Wait for a signal"
    COMING_SOON = "Signal is coming soon"
    READY = "Signal received. Open the Mini App"


class BaseNotifier(ABC):
    """
    Base class for notifier implementations.

    ``send`` never raises: a failed notification is logged and counted, and
    the workflow that asked for it carries on.
    """

    def __init__(self, name: str, max_retries: int = 1, retry_delay: float = 1.0):
        self.name = name
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = structlog.get_logger(f"notifications.{name}")
        self._delivery_count = 0
        self._error_count = 0

    @abstractmethod
    def deliver(self, chat_id: str, text: str) -> NotificationResult:
        """
        Deliver one message.

        Raises:
            NotificationRetryableError: on transient failures
            NotificationPermanentError: on failures retrying cannot fix
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the notification channel is healthy."""
        pass

    def send(self, chat_id: Optional[str], text: str) -> bool:
        """
        Best-effort delivery with retry.

        Args:
            chat_id: Destination; users without one are skipped
            text: Message text

        Returns:
            True if the message was delivered
        """
        if not chat_id:
            return False

        result = self.send_with_retry(chat_id, text)
        return result.status == NotificationStatus.SUCCESS

    def send_with_retry(self, chat_id: str, text: str) -> NotificationResult:
        attempt = 0
        last_error: Optional[Exception] = None

        while attempt <= self.max_retries:
            try:
                start_time = time.time()
                result = self.deliver(chat_id, text)
                result.delivery_time_ms = int((time.time() - start_time) * 1000)
                result.attempt_count = attempt + 1
                if result.status == NotificationStatus.SUCCESS:
                    self._delivery_count += 1
                return result

            except NotificationPermanentError as e:
                self._error_count += 1
                self.logger.warning(
                    "Notification failed permanently",
                    chat_id=chat_id,
                    error=str(e)
                )
                return NotificationResult(
                    status=NotificationStatus.FAILED,
                    message=f"Permanent error: {str(e)}",
                    attempt_count=attempt + 1,
                    error=e
                )

            except Exception as e:
                # Unknown errors are treated as retryable
                last_error = e

            attempt += 1

            if attempt <= self.max_retries:
                self.logger.warning(
                    f"Notification attempt {attempt} failed, retrying in {self.retry_delay}s",
                    chat_id=chat_id,
                    error=str(last_error)
                )
                time.sleep(self.retry_delay)

        self._error_count += 1
        self.logger.warning(
            "Notification dropped after retries",
            chat_id=chat_id,
            attempts=attempt,
            error=str(last_error)
        )
        return NotificationResult(
            status=NotificationStatus.FAILED,
            message=f"Max retries exceeded: {str(last_error)}",
            attempt_count=attempt,
            error=last_error
        )

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        return {
            "name": self.name,
            "delivery_count": self._delivery_count,
            "error_count": self._error_count,
            "success_rate": (
                self._delivery_count / (self._delivery_count + self._error_count)
                if (self._delivery_count + self._error_count) > 0 else 0.0
            )
        }
