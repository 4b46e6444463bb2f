"""Telegram Bot API notifier."""

import json
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from .base import (
    BaseNotifier,
    NotificationPermanentError,
    NotificationResult,
    NotificationRetryableError,
    NotificationStatus,
)


class TelegramNotifier(BaseNotifier):
    """Sends messages through the Bot API ``sendMessage`` method."""

    def __init__(
        self,
        bot_token: str,
        api_url: str = "https://api.telegram.org",
        timeout_seconds: int = 10,
        **kwargs
    ):
        super().__init__("telegram", **kwargs)
        if not bot_token:
            raise NotificationPermanentError("Bot token is not defined")

        parsed = urlparse(api_url)
        if not parsed.scheme or not parsed.netloc:
            raise NotificationPermanentError(f"Invalid URL: {api_url}")

        self.api_url = api_url.rstrip("/")
        self.bot_token = bot_token
        self.timeout_seconds = timeout_seconds

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.bot_token}/{method}"

    def deliver(self, chat_id: str, text: str) -> NotificationResult:
        """Deliver a single message via HTTP POST."""
        data = json.dumps({"chat_id": chat_id, "text": text}).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(data)),
            "User-Agent": "signal-app/1.0",
        }

        req = Request(
            self._method_url("sendMessage"),
            data=data,
            headers=headers,
            method="POST"
        )

        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                response_code = response.getcode()
                response_data = response.read().decode("utf-8")

        except HTTPError as e:
            error_msg = f"HTTP {e.code}: {e.reason}"
            # Server errors and rate limits are retryable, other client errors are not
            if e.code >= 500 or e.code == 429:
                raise NotificationRetryableError(error_msg) from e
            raise NotificationPermanentError(error_msg) from e

        except (OSError, URLError, socket.timeout) as e:
            raise NotificationRetryableError(f"Network error: {str(e)}") from e

        self.logger.debug(
            "Message delivered",
            chat_id=chat_id,
            response_code=response_code
        )
        return NotificationResult(
            status=NotificationStatus.SUCCESS,
            message=f"HTTP {response_code}: {response_data[:100]}"
        )

    def health_check(self) -> bool:
        """Check that the bot token is accepted."""
        try:
            req = Request(self._method_url("getMe"), method="GET")
            with urlopen(req, timeout=5) as response:
                return 200 <= response.getcode() < 300
        except Exception as e:
            self.logger.warning("Health check failed", error=str(e))
            return False
