"""Event publishing and notification recipients."""

from .events import BackgroundSink, EventPublisher, EventSink, LoggingSink, RecordingSink
from .recipients import DirectoryRecipientResolver, RecipientResolver
from .webhook import WebhookSink

__all__ = [
    "BackgroundSink",
    "EventPublisher",
    "EventSink",
    "LoggingSink",
    "RecordingSink",
    "DirectoryRecipientResolver",
    "RecipientResolver",
    "WebhookSink",
]
