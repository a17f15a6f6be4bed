"""
AsyncSphereChat: builds the shared collaborators once and opens sessions.
"""

import asyncio
import logging
from typing import Any, Optional

from sphere_chat.cache import AnalysisCache, FileAnalysisCache, InMemoryAnalysisCache
from sphere_chat.config import Settings
from sphere_chat.notifications import Notifier
from sphere_chat.services import HttpResponderService, HttpTextAnalysisService
from sphere_chat.session import ChatSession
from sphere_chat.store import RemoteMessageStore
from sphere_chat.transport.http import HttpClient
from sphere_chat.transport.socketio import SocketIOManager

logger = logging.getLogger(__name__)


class AsyncSphereChat:
    """Async sphere-chat client.

    One HTTP client per backend and one analysis cache are shared by every
    session opened from this client; each session gets its own push channel.
    """

    def __init__(self, settings: Optional[Settings] = None, token: Optional[str] = None, **overrides: Any):
        base = settings or Settings()
        self.settings = base.model_copy(update=overrides) if overrides else base
        self._token = token

        s = self.settings
        self.http = HttpClient(s.base_url, timeout=s.request_timeout, token=token)
        self._analysis_http = HttpClient(s.effective_analysis_url, timeout=s.analysis_timeout, token=token)
        self._responder_http = HttpClient(s.effective_responder_url, timeout=s.reply_timeout, token=token)
        self.analysis = HttpTextAnalysisService(self._analysis_http)
        self.responder = HttpResponderService(self._responder_http)
        self.cache: AnalysisCache = (
            FileAnalysisCache(s.cache_path) if s.cache_path else InMemoryAnalysisCache()
        )
        self._channels: list[SocketIOManager] = []
        self._sessions: list[ChatSession] = []

    def session(self, author: str, notifier: Optional[Notifier] = None) -> ChatSession:
        """Build a session for `author`. Call open() (or use `async with`) to start it."""
        sio = SocketIOManager(
            base_url=self.settings.base_url,
            author=author,
            token=self._token,
            ready_timeout=self.settings.ready_timeout,
        )
        self._channels.append(sio)
        store = RemoteMessageStore(self.http, sio, author)
        chat = ChatSession(
            author=author,
            store=store,
            analysis=self.analysis,
            responder=self.responder,
            cache=self.cache,
            settings=self.settings,
            notifier=notifier,
        )
        self._sessions.append(chat)
        return chat

    async def open_session(self, author: str, notifier: Optional[Notifier] = None) -> ChatSession:
        chat = self.session(author, notifier)
        await chat.open()
        return chat

    async def close(self) -> None:
        for chat in self._sessions:
            await chat.close()
        for sio in self._channels:
            await sio.disconnect()
        for http in (self.http, self._analysis_http, self._responder_http):
            await http.close()
        await asyncio.to_thread(self.cache.flush)
        self._sessions.clear()
        self._channels.clear()

    async def __aenter__(self) -> "AsyncSphereChat":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
