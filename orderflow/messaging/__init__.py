"""
Messaging adapters: the work queue and the notification channel.
"""

from orderflow.messaging.notifications import (
    InMemoryNotificationChannel,
    LoggingNotificationChannel,
    NotificationChannel,
)
from orderflow.messaging.queue import (
    FileWorkQueue,
    InMemoryWorkQueue,
    QueueMessage,
    QueueStats,
    WorkQueue,
)

__all__ = [
    "WorkQueue",
    "InMemoryWorkQueue",
    "FileWorkQueue",
    "QueueMessage",
    "QueueStats",
    "NotificationChannel",
    "InMemoryNotificationChannel",
    "LoggingNotificationChannel",
]
