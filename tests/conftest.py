"""In-memory fakes for the store and the services."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

from sphere_chat.config import Settings
from sphere_chat.errors import AnalysisServiceError, ResponderServiceError, StoreReadError, StoreWriteError
from sphere_chat.models.ledger import PageCursor
from sphere_chat.models.message import Entity, Message, Sender, Sentiment

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_message(i: int, author: str = "alice", sender: Sender = Sender.USER, **kwargs: Any) -> Message:
    return Message(
        id=kwargs.pop("id", f"m{i}"),
        author=author,
        sender=sender,
        text=kwargs.pop("text", f"message {i}"),
        created_at=kwargs.pop("created_at", EPOCH + timedelta(seconds=i)),
        seq=kwargs.pop("seq", i),
        **kwargs,
    )


class FakeStore:
    """MessageStore double. Pushes are delivered synchronously unless held."""

    def __init__(self) -> None:
        self.docs: dict[str, Message] = {}
        self.appended: list[Message] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.queries: list[tuple[int, Optional[PageCursor]]] = []
        self.fail_appends = False
        self.fail_updates = False
        self.fail_reads = False
        self.hold_pushes = False
        self.held: list[tuple[str, Message]] = []
        self.subscribed = False
        self.unsubscribed = False
        self._seq = 1000
        self._on_added: Optional[Callable[[Message], None]] = None
        self._on_modified: Optional[Callable[[Message], None]] = None

    def seed(self, count: int, author: str = "alice") -> list[Message]:
        seeded = [make_message(i, author=author) for i in range(count)]
        for m in seeded:
            self.docs[m.id] = m
        return seeded

    def _push(self, kind: str, message: Message) -> None:
        if self.hold_pushes:
            self.held.append((kind, message))
            return
        callback = self._on_added if kind == "added" else self._on_modified
        if callback is not None and not self.unsubscribed:
            callback(message)

    def flush(self) -> None:
        held, self.held = self.held, []
        for kind, message in held:
            callback = self._on_added if kind == "added" else self._on_modified
            if callback is not None and not self.unsubscribed:
                callback(message)

    async def append(self, message: Message) -> str:
        if self.fail_appends:
            raise StoreWriteError("append refused")
        self._seq += 1
        stored = message.model_copy(update={
            "id": f"srv{self._seq}",
            "created_at": EPOCH + timedelta(seconds=self._seq),
            "seq": self._seq,
        })
        self.docs[stored.id] = stored
        self.appended.append(stored)
        self._push("added", stored)
        return stored.id

    async def update(self, message_id: str, fields: dict[str, Any]) -> None:
        if self.fail_updates:
            raise StoreWriteError("update refused")
        self.updates.append((message_id, fields))
        doc = self.docs[message_id].model_copy(update=fields)
        self.docs[message_id] = doc
        self._push("modified", doc)

    async def query_recent(self, limit: int, before: Optional[PageCursor] = None) -> list[Message]:
        self.queries.append((limit, before))
        if self.fail_reads:
            raise StoreReadError("read refused")
        ordered = sorted(self.docs.values(), key=lambda m: (m.created_at, m.seq or 0))
        if before is not None:
            ids = [m.id for m in ordered]
            ordered = ordered[:ids.index(before.id)]
        return list(reversed(ordered[-limit:]))

    async def subscribe(self, since, on_added, on_modified):
        self.subscribed = True
        self._on_added = on_added
        self._on_modified = on_modified

        def unsubscribe() -> None:
            self.unsubscribed = True

        return unsubscribe


class FakeAnalysis:
    def __init__(self) -> None:
        self.calls: dict[str, int] = {"sentiment": 0, "entities": 0, "translation": 0}
        self.failing: set[str] = set()
        self.delay = 0.0

    async def _call(self, kind: str) -> None:
        self.calls[kind] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if kind in self.failing:
            raise AnalysisServiceError(kind, f"{kind} down")

    async def sentiment(self, text: str) -> Optional[Sentiment]:
        await self._call("sentiment")
        return Sentiment(score=0.8, magnitude=0.9)

    async def entities(self, text: str) -> list[Entity]:
        await self._call("entities")
        return [Entity(name=w, type="OTHER") for w in text.split() if w.istitle()]

    async def translate(self, text: str, target_language: str) -> str:
        await self._call("translation")
        return f"[{target_language}] {text}"


class FakeResponder:
    """Replies immediately, or waits on a gate per call when `gated`."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list, str]] = []
        self.gated = False
        self.gates: list[asyncio.Future] = []
        self.fail = False

    async def generate(self, text: str, history: list, language: str) -> str:
        self.calls.append((text, history, language))
        if self.gated:
            gate = asyncio.get_running_loop().create_future()
            self.gates.append(gate)
            outcome = await gate
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        if self.fail:
            raise ResponderServiceError("responder down")
        return f"reply to {text}"

    @staticmethod
    def failure() -> Exception:
        return ResponderServiceError("responder down")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def analysis() -> FakeAnalysis:
    return FakeAnalysis()


@pytest.fixture
def responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture
def settings() -> Settings:
    return Settings(page_size=20, analysis_timeout=1.0, reply_timeout=1.0, request_timeout=1.0)
