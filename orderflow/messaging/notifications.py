"""
Publish-only notification channel for order-status events.

The channel fans each published event out to every subscriber. Publishing
requires the notification credential, which is passed as a SecretStr and
never written to logs.
"""

import asyncio
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Union

from loguru import logger
from pydantic import SecretStr

from orderflow.core.exceptions import NotificationError
from orderflow.storage.schemas import NotificationEvent

Subscriber = Callable[[NotificationEvent], Union[None, Awaitable[None]]]


class NotificationChannel(ABC):
    """Publish-only fan-out for order-status events."""

    @abstractmethod
    async def publish(self, event: NotificationEvent, credential: SecretStr) -> str:
        """
        Publish an event to all subscribers.

        Args:
            event: Event to publish
            credential: Notification API key

        Returns:
            Message id assigned by the channel

        Raises:
            NotificationError: If the publish fails
        """
        pass


class InMemoryNotificationChannel(NotificationChannel):
    """
    In-process topic with subscriber fan-out.

    A failing subscriber fails the publish, mirroring a topic that rejects
    the message; delivery is then retried by the caller.
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._published: List[NotificationEvent] = []
        self._lock = threading.RLock()

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    @property
    def published(self) -> List[NotificationEvent]:
        with self._lock:
            return list(self._published)

    async def publish(self, event: NotificationEvent, credential: SecretStr) -> str:
        if not credential.get_secret_value():
            raise NotificationError("Notification credential is empty")

        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                result = subscriber(event)
                if asyncio.iscoroutine(result):
                    await result
            except NotificationError:
                raise
            except Exception as e:
                raise NotificationError(f"Subscriber rejected event: {e}") from e

        message_id = f"msg_{uuid.uuid4().hex[:16]}"
        with self._lock:
            self._published.append(event)

        logger.debug(
            f"Published {event.status} notification",
            order_id=event.order_id,
            notification_id=message_id,
        )
        return message_id


class LoggingNotificationChannel(InMemoryNotificationChannel):
    """Channel that also writes each event to the log; used by the CLI."""

    async def publish(self, event: NotificationEvent, credential: SecretStr) -> str:
        message_id = await super().publish(event, credential)
        logger.info(
            f"Notification sent: order {event.order_id} is {event.status}",
            order_id=event.order_id,
            notification_id=message_id,
        )
        return message_id
