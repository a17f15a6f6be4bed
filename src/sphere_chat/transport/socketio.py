"""
Socket.IO connection manager for the store push channel.

Connection: {base_url}/v1/socket.io/ with auth={author, token}.
Waits for the `ready` event before resolving connect().
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

import socketio

from sphere_chat.transport.envelope import build_envelope

SOCKETIO_PATH = "/v1/socket.io/"

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict[str, Any]], None]


class SocketIOManager:
    def __init__(
        self,
        base_url: str,
        author: str,
        token: Optional[str] = None,
        client_id: Optional[str] = None,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
    ):
        self._base_url = base_url
        self._author = author
        self._token = token
        self._client_id = client_id or str(uuid.uuid4())
        self._transports = transports or ["websocket"]
        self._ready_timeout = ready_timeout
        self._sio: Optional[socketio.AsyncClient] = None
        self._event_handlers: list[EventHandler] = []

    def add_event_handler(self, handler: EventHandler) -> Callable[[], None]:
        """Add an event handler. Returns a cleanup function."""
        self._event_handlers.append(handler)
        def remove() -> None:
            try:
                self._event_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def _dispatch(self, event: str, data: Any) -> None:
        if not isinstance(data, dict):
            return
        for handler in list(self._event_handlers):
            try:
                handler(event, data)
            except Exception:
                logger.exception("Handler failed for %s", event)

    async def connect(self) -> None:
        """Connect and wait for `ready`."""
        if self._sio and self._sio.connected:
            return

        self._sio = socketio.AsyncClient()
        ready_event = asyncio.Event()

        @self._sio.on("ready")
        async def on_ready(*_args: Any) -> None:
            ready_event.set()

        @self._sio.on("*")
        async def on_any(event: str, data: Any) -> None:
            if event in ("connect", "disconnect", "connect_error", "ready"):
                return
            self._dispatch(event, data)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
                logger.info("Push channel disconnected")

        auth: dict[str, Any] = {"author": self._author}
        if self._token:
            auth["token"] = self._token
        await self._sio.connect(
            self._base_url,
            auth=auth,
            transports=self._transports,
            socketio_path=SOCKETIO_PATH,
        )

        try:
            await asyncio.wait_for(ready_event.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            await self._sio.disconnect()
            raise TimeoutError(f"Timed out waiting for 'ready' event after {self._ready_timeout}s")

    async def emit_and_wait(
        self,
        event_type: str,
        data: Any,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """Emit and wait for the reply event carrying the same request_id."""
        if not self._sio or not self._sio.connected:
            raise RuntimeError("Socket.IO not connected")
        request_id = str(uuid.uuid4())
        envelope = build_envelope(
            event_type, data,
            author=self._author,
            client_id=self._client_id,
            request_id=request_id,
        )

        result_event = asyncio.Event()
        result_data: dict[str, Any] = {}

        def response_handler(evt: str, raw: dict[str, Any]) -> None:
            if evt != event_type:
                return
            meta = raw.get("metadata", {})
            if meta.get("request_id") == request_id:
                result_data.update(raw.get("payload", {}).get("data") or {})
                result_event.set()

        remove_handler = self.add_event_handler(response_handler)
        try:
            await self._sio.emit(event_type, envelope)
            await asyncio.wait_for(result_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timeout waiting for {event_type} response")
        finally:
            remove_handler()

        return result_data

    def emit(self, event_type: str, data: Any) -> None:
        """Fire-and-forget emit scheduled on the running loop. Errors are logged."""
        if not self._sio or not self._sio.connected:
            logger.debug("Dropping %s: not connected", event_type)
            return
        envelope = build_envelope(event_type, data, author=self._author, client_id=self._client_id)
        sio = self._sio

        async def _do_emit() -> None:
            try:
                await sio.emit(event_type, envelope)
            except Exception as e:
                logger.error("Emit failed for %s: %s", event_type, e)

        asyncio.get_running_loop().create_task(_do_emit())

    async def disconnect(self) -> None:
        if self._sio:
            await self._sio.disconnect()
            self._sio = None
