"""Basic unit tests for the sphere-chat package."""

from sphere_chat import (
    AsyncSphereChat,
    ChatSession,
    SphereChatError,
    StoreReadError,
    StoreWriteError,
    AnalysisServiceError,
    ResponderServiceError,
    ConnectionError,
    ConfigError,
    Message,
    Sender,
    __version__,
)


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert AsyncSphereChat is not None
    assert ChatSession is not None


def test_error_hierarchy():
    for cls in (StoreReadError, StoreWriteError, AnalysisServiceError,
                ResponderServiceError, ConnectionError, ConfigError):
        assert issubclass(cls, SphereChatError)


def test_error_attributes():
    err = SphereChatError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None

    write = StoreWriteError("denied", details={"status_code": 403})
    assert write.code == "store_write_error"
    assert write.details == {"status_code": 403}

    analysis = AnalysisServiceError("sentiment", "down")
    assert analysis.kind == "sentiment"
    assert analysis.details == {"kind": "sentiment"}


def test_message_token_count_and_compose():
    m = Message.compose("alice", "  three  word   message ")
    assert m.token_count == 3
    assert m.id == m.nonce
    assert m.sender is Sender.USER
    assert m.created_at.tzinfo is not None

    reply = Message.compose("alice", "ok", sender=Sender.RESPONDER)
    assert reply.nonce is None


def test_message_document_round_trip():
    m = Message.compose("alice", "hello world")
    doc = m.to_document()
    assert "id" not in doc
    assert doc["sender"] == "user"
    assert doc["token_count"] == 2
    stored = Message.model_validate({**doc, "id": "srv1"})
    assert stored.nonce == m.nonce
    assert stored.created_at == m.created_at


def test_naive_timestamps_are_utc():
    m = Message.model_validate({"id": "x", "author": "a", "text": "t", "created_at": "2024-01-01T10:00:00"})
    assert m.created_at.utcoffset().total_seconds() == 0
    assert m.token_count == 1
