"""Usage statistics over a loaded message list."""

from typing import Iterable

from pydantic import BaseModel

from sphere_chat.models.message import Message, Sender


class UsageStats(BaseModel):
    message_count: int = 0
    unique_users: int = 0
    user_messages: int = 0
    responder_messages: int = 0
    total_tokens: int = 0


def usage_stats(messages: Iterable[Message]) -> UsageStats:
    stats = UsageStats()
    authors: set[str] = set()
    for m in messages:
        stats.message_count += 1
        stats.total_tokens += m.token_count
        if m.sender is Sender.RESPONDER:
            stats.responder_messages += 1
        else:
            stats.user_messages += 1
        authors.add(m.author)
    stats.unique_users = len(authors)
    return stats
