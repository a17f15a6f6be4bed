"""
MessageStore contract and the remote adapter.

The remote store is a REST collection for reads and writes plus a Socket.IO
push channel for additions and modifications. Pages come back newest-first;
the ledger normalizes them.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from sphere_chat.errors import ConnectionError, SphereChatError, StoreReadError, StoreWriteError
from sphere_chat.models.ledger import PageCursor
from sphere_chat.models.message import Message
from sphere_chat.transport.envelope import parse_envelope
from sphere_chat.transport.http import HttpClient
from sphere_chat.transport.socketio import SocketIOManager

logger = logging.getLogger(__name__)

_FIELDS = TypeAdapter(dict[str, Any])

MESSAGES_PATH = "/v1/messages"
EVENT_SUBSCRIBE = "messages:subscribe"
EVENT_UNSUBSCRIBE = "messages:unsubscribe"
EVENT_ADDED = "message:added"
EVENT_MODIFIED = "message:modified"

MessageCallback = Callable[[Message], None]


class MessageStore(Protocol):
    async def append(self, message: Message) -> str: ...

    async def update(self, message_id: str, fields: dict[str, Any]) -> None: ...

    async def query_recent(self, limit: int, before: Optional[PageCursor] = None) -> list[Message]: ...

    async def subscribe(
        self, since: datetime, on_added: MessageCallback, on_modified: MessageCallback,
    ) -> Callable[[], None]: ...


class RemoteMessageStore:
    """Store adapter scoped to one author's conversation."""

    def __init__(self, http: HttpClient, sio: SocketIOManager, author: str, subscribe_timeout: float = 10.0):
        self._http = http
        self._sio = sio
        self._author = author
        self._subscribe_timeout = subscribe_timeout

    async def append(self, message: Message) -> str:
        try:
            result = await self._http.post(MESSAGES_PATH, message.to_document())
        except SphereChatError as e:
            raise StoreWriteError(f"Failed to append message: {e}", details=e.details)
        if not isinstance(result, dict) or not result.get("id"):
            raise StoreWriteError("Store did not return an id for the appended message")
        return str(result["id"])

    async def update(self, message_id: str, fields: dict[str, Any]) -> None:
        try:
            await self._http.patch(f"{MESSAGES_PATH}/{message_id}", _FIELDS.dump_python(fields, mode="json"))
        except SphereChatError as e:
            raise StoreWriteError(f"Failed to update message {message_id}: {e}", details=e.details)

    async def query_recent(self, limit: int, before: Optional[PageCursor] = None) -> list[Message]:
        params: dict[str, Any] = {"author": self._author, "limit": limit}
        if before is not None:
            params["before"] = before.created_at.isoformat()
            params["before_id"] = before.id
        try:
            result = await self._http.get(MESSAGES_PATH, params=params)
        except SphereChatError as e:
            raise StoreReadError(f"Failed to load messages: {e}", details=e.details)
        docs = result.get("messages", []) if isinstance(result, dict) else result
        if not isinstance(docs, list):
            raise StoreReadError("Unexpected message page shape")
        try:
            return [Message.model_validate(d) for d in docs]
        except ValidationError as e:
            raise StoreReadError(f"Malformed message in page: {e}")

    async def subscribe(
        self, since: datetime, on_added: MessageCallback, on_modified: MessageCallback,
    ) -> Callable[[], None]:
        """Open the push subscription. Returns the unsubscribe function."""
        try:
            await self._sio.connect()
        except Exception as e:
            raise ConnectionError(f"Push channel unavailable: {e}")

        def handler(event: str, raw: dict[str, Any]) -> None:
            if event not in (EVENT_ADDED, EVENT_MODIFIED):
                return
            envelope = parse_envelope(raw)
            if envelope is None:
                return
            if envelope.payload.author and envelope.payload.author != self._author:
                return
            try:
                message = Message.model_validate(envelope.payload.data)
            except ValidationError as e:
                logger.warning("Dropping malformed %s push: %s", event, e)
                return
            if event == EVENT_ADDED:
                on_added(message)
            else:
                on_modified(message)

        remove_handler = self._sio.add_event_handler(handler)
        try:
            await self._sio.emit_and_wait(
                EVENT_SUBSCRIBE,
                {"author": self._author, "since": since.isoformat()},
                timeout=self._subscribe_timeout,
            )
        except (TimeoutError, RuntimeError) as e:
            remove_handler()
            raise ConnectionError(f"Subscription not acknowledged: {e}")

        def unsubscribe() -> None:
            remove_handler()
            self._sio.emit(EVENT_UNSUBSCRIBE, {"author": self._author})

        return unsubscribe
