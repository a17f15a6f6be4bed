"""
Chat session: one user's live view of the conversation.

The session is the effect layer around the ledger: it opens the store
subscription, issues page queries, sends messages and starts enrichment and
reply requests. Every completion comes back as a ledger event. After close()
those events are dropped silently.

Send flow:
    moderation -> OptimisticSendIssued -> store.append
        failure: SendFailed (rollback + settle the reply slot)
        success: enrichment and reply requests run in the background
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

from sphere_chat.cache import AnalysisCache, InMemoryAnalysisCache
from sphere_chat.config import Settings
from sphere_chat.enrichment import EnrichmentOrchestrator
from sphere_chat.errors import ConnectionError, StoreReadError, StoreWriteError
from sphere_chat.ledger import MessageLedger, StateListener
from sphere_chat.models.events import (
    InitialLoadFailed,
    InitialLoadRequested,
    InitialLoadSucceeded,
    LedgerEvent,
    OlderPageFailed,
    OlderPageLoaded,
    OlderPageRequested,
    OptimisticSendIssued,
    ReplySettled,
    SendFailed,
    StoreAddedPushed,
    StoreModifiedPushed,
)
from sphere_chat.models.ledger import LedgerState
from sphere_chat.models.message import Message, utcnow
from sphere_chat.moderation import is_blocked
from sphere_chat.notifications import NoticeHandler, Notifier
from sphere_chat.responder import ResponderOrchestrator
from sphere_chat.services import HistoryEntry, ResponderService, TextAnalysisService
from sphere_chat.store import MessageStore

logger = logging.getLogger(__name__)


class SendResult(str, Enum):
    SENT = "sent"
    EMPTY = "empty"
    BLOCKED = "blocked"
    FAILED = "failed"
    CLOSED = "closed"


class ChatSession:
    def __init__(
        self,
        author: str,
        store: MessageStore,
        analysis: TextAnalysisService,
        responder: ResponderService,
        cache: Optional[AnalysisCache] = None,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.author = author
        self._store = store
        self._settings = settings or Settings()
        self._notifier = notifier or Notifier()
        self._ledger = MessageLedger()
        self._alive = True
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._tasks: set[asyncio.Task[Any]] = set()

        self.enrichment = EnrichmentOrchestrator(
            store=store,
            analysis=analysis,
            cache=cache if cache is not None else InMemoryAnalysisCache(),
            notifier=self._notifier,
            is_pending=lambda message_id: self._ledger.state.is_pending(message_id),
            lookup=lambda message_id: self._ledger.state.get(message_id),
            timeout=self._settings.analysis_timeout,
        )
        self.responder = ResponderOrchestrator(
            store=store,
            responder=responder,
            notifier=self._notifier,
            author=author,
            on_settled=lambda: self._dispatch(ReplySettled()),
            timeout=self._settings.reply_timeout,
            pace_replies=self._settings.pace_replies,
        )

    # -- state -------------------------------------------------------------

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def state(self) -> LedgerState:
        return self._ledger.state

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._ledger.messages

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        return self._ledger.add_listener(listener)

    def add_notice_handler(self, handler: NoticeHandler) -> Callable[[], None]:
        return self._notifier.add_handler(handler)

    def history_snapshot(self) -> list[HistoryEntry]:
        window = self._settings.history_window
        recent = self.messages[-window:] if window else ()
        return [{"sender": m.sender.value, "text": m.text} for m in recent]

    def _dispatch(self, event: LedgerEvent) -> bool:
        if not self._alive:
            logger.debug("Session closed, dropping %s", type(event).__name__)
            return False
        return self._ledger.dispatch(event)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Background task failed", exc_info=t.exception())

        task.add_done_callback(done)
        return task

    # -- lifecycle ---------------------------------------------------------

    async def open(self) -> None:
        """Subscribe to pushes, then load the most recent page."""
        if self._unsubscribe is not None:
            return
        since = utcnow()
        try:
            self._unsubscribe = await self._store.subscribe(
                since,
                on_added=lambda m: self._dispatch(StoreAddedPushed(message=m)),
                on_modified=lambda m: self._dispatch(StoreModifiedPushed(message=m)),
            )
        except ConnectionError as e:
            logger.error("Subscription failed: %s", e)
            self._notifier.error("Live updates are unavailable.", code=e.code, retryable=True)
            raise
        await self.load_initial()

    async def close(self, wait: bool = False) -> None:
        """Release the subscription. Late completions become no-ops."""
        self._alive = False
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()
        if wait:
            await self.drain()

    async def drain(self) -> None:
        """Wait for background enrichment and reply requests to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> "ChatSession":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- pagination --------------------------------------------------------

    async def load_initial(self) -> bool:
        if not self._dispatch(InitialLoadRequested()):
            return False
        page_size = self._settings.page_size
        try:
            batch = await asyncio.wait_for(self._store.query_recent(page_size), timeout=self._settings.request_timeout)
        except (StoreReadError, asyncio.TimeoutError) as e:
            logger.warning("Initial load failed: %s", e)
            self._dispatch(InitialLoadFailed(error=str(e) or "timeout"))
            self._notifier.error("Could not load messages.", code="store_read_error", retryable=True)
            return False
        return self._dispatch(InitialLoadSucceeded(batch=batch, page_size=page_size))

    async def load_older(self) -> bool:
        """Fetch the page before the oldest loaded message. No-op when nothing is left."""
        if not self._dispatch(OlderPageRequested()):
            return False
        page_size = self._settings.page_size
        try:
            batch = await asyncio.wait_for(
                self._store.query_recent(page_size, before=self.state.cursor),
                timeout=self._settings.request_timeout,
            )
        except (StoreReadError, asyncio.TimeoutError) as e:
            logger.warning("Loading older messages failed: %s", e)
            self._dispatch(OlderPageFailed(error=str(e) or "timeout"))
            self._notifier.error("Could not load older messages.", code="store_read_error", retryable=True)
            return False
        return self._dispatch(OlderPageLoaded(batch=batch, page_size=page_size))

    # -- sending -----------------------------------------------------------

    async def send(self, text: str) -> SendResult:
        if not self._alive:
            return SendResult.CLOSED
        if not text.strip():
            return SendResult.EMPTY
        if is_blocked(text):
            self._notifier.warning("Inappropriate content detected.", code="moderation")
            return SendResult.BLOCKED

        history = self.history_snapshot()
        message = Message.compose(self.author, text)
        self._dispatch(OptimisticSendIssued(message=message))
        try:
            assigned_id = await asyncio.wait_for(self._store.append(message), timeout=self._settings.request_timeout)
        except (StoreWriteError, asyncio.TimeoutError) as e:
            logger.warning("Send failed: %s", e)
            self._dispatch(SendFailed(nonce=message.nonce, error=str(e) or "timeout"))
            self._notifier.error("Message could not be sent.", code="store_write_error")
            return SendResult.FAILED

        if not self._alive:
            return SendResult.SENT
        self._spawn(self.enrichment.analyze(assigned_id, text, self._settings.target_language))
        self._spawn(self.responder.request_reply(text, history, self._settings.language))
        return SendResult.SENT

    async def analyze(self, message_id: str, target_language: Optional[str] = None) -> bool:
        """Manually re-run enrichment for a visible, confirmed message."""
        message = self.state.get(message_id)
        if message is None:
            return False
        return await self.enrichment.analyze(
            message_id, message.text, target_language or self._settings.target_language,
        )
