"""
sphere-chat: real-time chat client for Python.

Optimistic sends, live store pushes and paginated history reconciled into
one ordered message list, with sentiment, entity and translation enrichment.
"""

from sphere_chat.client import AsyncSphereChat
from sphere_chat.config import Settings
from sphere_chat.session import ChatSession, SendResult
from sphere_chat.ledger import MessageLedger, apply
from sphere_chat.moderation import is_blocked
from sphere_chat.models.message import Message, Sender, Sentiment, Entity
from sphere_chat.errors import (
    SphereChatError,
    StoreReadError,
    StoreWriteError,
    AnalysisServiceError,
    ResponderServiceError,
    ConnectionError,
    ConfigError,
)

__version__ = "0.1.0"
__all__ = [
    "AsyncSphereChat",
    "Settings",
    "ChatSession",
    "SendResult",
    "MessageLedger",
    "apply",
    "is_blocked",
    "Message",
    "Sender",
    "Sentiment",
    "Entity",
    "SphereChatError",
    "StoreReadError",
    "StoreWriteError",
    "AnalysisServiceError",
    "ResponderServiceError",
    "ConnectionError",
    "ConfigError",
]
