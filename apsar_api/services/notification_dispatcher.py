"""
Notification Dispatcher: best-effort push delivery of committed notifications.

One dispatcher is constructed per process and stored on ``app.state``.
Request handlers never call it directly; the session dependency schedules
whatever a request queued once its transaction has committed.

Delivery guarantees:
- Recipients are sent in batches of ``notification_batch_size``
- Transport errors, 5xx and 429 responses are retried with exponential backoff
- Failures are logged, never raised to the caller
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

import httpx

from ..core.config import Settings, get_settings
from .notifications import OutboundNotification

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


# =============================================================================
# DELIVERY CHANNELS
# =============================================================================


class DeliveryChannel(ABC):
    """Abstract base for notification delivery channels."""

    @abstractmethod
    async def send(
        self,
        notification: OutboundNotification,
        tokens: list[str],
    ) -> tuple[bool, str | None]:
        """
        Deliver one batch.

        Returns:
            (success, error_message)
        """
        pass

    async def aclose(self) -> None:
        pass


class LoggingChannel(DeliveryChannel):
    """Used when push is disabled: records what would have been sent."""

    async def send(
        self,
        notification: OutboundNotification,
        tokens: list[str],
    ) -> tuple[bool, str | None]:
        logger.info(
            f"[PUSH disabled] {notification.notification_type.value}: "
            f"'{notification.title}' to {len(tokens)} device(s)"
        )
        return True, None


class PushChannel(DeliveryChannel):
    """Expo-compatible push API over HTTP."""

    def __init__(
        self,
        url: str,
        access_token: str | None = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = url
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._headers = headers
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def _build_messages(
        self, notification: OutboundNotification, tokens: list[str]
    ) -> list[dict]:
        return [
            {
                "to": token,
                "title": notification.title,
                "body": notification.body,
                "data": notification.data,
                "sound": "default",
            }
            for token in tokens
        ]

    async def send(
        self,
        notification: OutboundNotification,
        tokens: list[str],
    ) -> tuple[bool, str | None]:
        messages = self._build_messages(notification, tokens)
        error: str | None = None

        for attempt in range(self._max_retries + 1):
            if attempt:
                delay = self._retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Retrying push batch in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{self._max_retries + 1}): {error}"
                )
                await asyncio.sleep(delay)

            try:
                response = await self._client.post(
                    self._url, json=messages, headers=self._headers
                )
            except httpx.TransportError as e:
                error = f"Transport error: {e}"
                continue

            if response.status_code in RETRYABLE_STATUS:
                error = f"Push service returned {response.status_code}"
                continue
            if response.is_error:
                return False, f"Push service rejected batch: {response.status_code}"
            return True, None

        return False, error

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# =============================================================================
# DISPATCHER
# =============================================================================


@dataclass
class DeliveryResult:
    """Outcome of delivering one outbound notification."""
    batches_sent: int = 0
    batches_failed: int = 0


class NotificationDispatcher:
    """Process-wide, fire-and-forget delivery of committed notifications."""

    def __init__(self, channel: DeliveryChannel, batch_size: int = 100):
        self._channel = channel
        self._batch_size = batch_size
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "NotificationDispatcher":
        settings = settings or get_settings()
        if settings.push_enabled:
            channel: DeliveryChannel = PushChannel(
                url=settings.push_url,
                access_token=settings.push_access_token,
                max_retries=settings.notification_max_retries,
                retry_delay_seconds=settings.notification_retry_delay_seconds,
                timeout_seconds=settings.push_timeout_seconds,
            )
        else:
            channel = LoggingChannel()
        return cls(channel, batch_size=settings.notification_batch_size)

    def schedule(self, items: Iterable[OutboundNotification]) -> None:
        """Start background delivery; returns immediately."""
        for item in items:
            task = asyncio.create_task(self.deliver(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def deliver(self, notification: OutboundNotification) -> DeliveryResult:
        """Deliver one notification to all its push tokens, batch by batch."""
        result = DeliveryResult()
        tokens = notification.push_tokens
        if not tokens:
            logger.debug(
                f"No push tokens for {notification.notification_type.value} "
                f"({len(notification.recipient_ids)} in-app recipient(s))"
            )
            return result

        for start in range(0, len(tokens), self._batch_size):
            batch = tokens[start:start + self._batch_size]
            try:
                success, error = await self._channel.send(notification, batch)
            except Exception as e:
                success, error = False, str(e)
                logger.exception("Push channel raised during delivery")

            if success:
                result.batches_sent += 1
            else:
                result.batches_failed += 1
                logger.warning(
                    f"Push delivery failed for {len(batch)} device(s) "
                    f"({notification.notification_type.value}): {error}"
                )

        logger.info(
            f"Delivered {notification.notification_type.value} push: "
            f"{result.batches_sent} batch(es) sent, {result.batches_failed} failed"
        )
        return result

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._channel.aclose()
