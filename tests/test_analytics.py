from conftest import make_message

from sphere_chat.analytics import usage_stats
from sphere_chat.models.message import Sender


def test_counts_messages_and_unique_authors():
    messages = [
        make_message(1, author="alice", text="hello there"),
        make_message(2, author="bob", text="hi"),
        make_message(3, author="alice", sender=Sender.RESPONDER, text="a reply for alice"),
    ]
    stats = usage_stats(messages)
    assert stats.message_count == 3
    assert stats.unique_users == 2
    assert stats.user_messages == 2
    assert stats.responder_messages == 1
    assert stats.total_tokens == 7


def test_empty():
    assert usage_stats([]).message_count == 0
