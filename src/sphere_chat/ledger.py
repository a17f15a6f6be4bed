"""
Reconciling message ledger.

`apply(state, event)` is the transition function: it takes the prior
LedgerState and one event and returns the next state without side effects.
`MessageLedger` owns the current state, applies events one at a time and
notifies listeners after each accepted transition.

Reconciliation rules:
- Optimistic sends are appended with id == nonce and tracked in the
  `pending` correlation table (nonce -> list position).
- A pushed document whose nonce matches a pending entry replaces that entry
  in place; the list position never changes on confirmation.
- Pushed documents with an id already present are dropped (idempotent
  redelivery).
- Modifications merge only the enrichment fields the document carries.
"""

import logging
from typing import Callable, Iterable, Optional

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
from sphere_chat.models.ledger import LedgerState, PageCursor
from sphere_chat.models.message import Message

logger = logging.getLogger(__name__)

StateListener = Callable[[LedgerState, LedgerState, LedgerEvent], None]


def _order_key(m: Message) -> tuple:
    return (m.created_at, m.seq if m.seq is not None else 0)


def normalize_batch(batch: Iterable[Message]) -> list[Message]:
    """Oldest-first, deduplicated by id. Stores return newest-first pages."""
    seen: set[str] = set()
    unique: list[Message] = []
    for m in reversed(list(batch)):
        if m.id in seen:
            continue
        seen.add(m.id)
        unique.append(m)
    # sorted() is stable, so equal keys keep the store's document order
    return sorted(unique, key=_order_key)


def _cursor_for(batch: list[Message], fallback: Optional[PageCursor]) -> Optional[PageCursor]:
    if not batch:
        return fallback
    oldest = batch[0]
    return PageCursor(created_at=oldest.created_at, id=oldest.id)


def _reindex(messages: tuple[Message, ...], nonces: Iterable[str]) -> dict[str, int]:
    """Recompute list positions for the pending nonces still present."""
    wanted = set(nonces)
    if not wanted:
        return {}
    return {m.id: i for i, m in enumerate(messages) if m.id in wanted}


def _settle_reply(state: LedgerState) -> dict:
    remaining = max(0, state.in_flight_replies - 1)
    return {"in_flight_replies": remaining, "is_responder_composing": remaining > 0}


def _insert_ordered(messages: tuple[Message, ...], message: Message) -> tuple[Message, ...]:
    """Append, stepping back over tail entries strictly newer than `message`."""
    pos = len(messages)
    while pos > 0 and messages[pos - 1].created_at > message.created_at:
        pos -= 1
    return messages[:pos] + (message,) + messages[pos:]


def apply(state: LedgerState, event: LedgerEvent) -> LedgerState:
    """Return the state after `event`. Returns `state` itself when ignored."""

    if isinstance(event, InitialLoadRequested):
        if state.is_initial_loading or state.initial_loaded:
            return state
        return state.model_copy(update={"is_initial_loading": True, "last_error": None})

    if isinstance(event, InitialLoadSucceeded):
        if not state.is_initial_loading:
            return state
        batch = normalize_batch(event.batch)
        loaded_ids = {m.id for m in batch}
        # Pushes and optimistic sends that landed while the query was in flight
        # are newer than the page and stay after it.
        carried = tuple(m for m in state.messages if m.id not in loaded_ids)
        messages = tuple(batch) + carried
        return state.model_copy(update={
            "messages": messages,
            "cursor": _cursor_for(batch, None),
            "has_more_older": len(event.batch) == event.page_size,
            "is_initial_loading": False,
            "initial_loaded": True,
            "pending": _reindex(messages, state.pending),
        })

    if isinstance(event, InitialLoadFailed):
        if not state.is_initial_loading:
            return state
        return state.model_copy(update={"is_initial_loading": False, "last_error": event.error})

    if isinstance(event, OlderPageRequested):
        if not state.initial_loaded or not state.has_more_older or state.is_loading_older:
            return state
        return state.model_copy(update={"is_loading_older": True, "last_error": None})

    if isinstance(event, OlderPageLoaded):
        if not state.is_loading_older:
            return state
        present = {m.id for m in state.messages}
        page = normalize_batch(event.batch)
        batch = [m for m in page if m.id not in present]
        messages = tuple(batch) + state.messages
        # The cursor follows the page even when every item was already visible.
        return state.model_copy(update={
            "messages": messages,
            "cursor": _cursor_for(page, state.cursor),
            "has_more_older": len(event.batch) == event.page_size,
            "is_loading_older": False,
            "pending": _reindex(messages, state.pending),
        })

    if isinstance(event, OlderPageFailed):
        if not state.is_loading_older:
            return state
        return state.model_copy(update={"is_loading_older": False, "last_error": event.error})

    if isinstance(event, OptimisticSendIssued):
        m = event.message
        in_flight = state.in_flight_replies + 1
        update: dict = {"in_flight_replies": in_flight, "is_responder_composing": True}
        already_confirmed = m.nonce is not None and any(x.nonce == m.nonce for x in state.messages)
        if not already_confirmed and state.index_of(m.id) is None:
            update["messages"] = state.messages + (m,)
            update["pending"] = {**state.pending, m.id: len(state.messages)}
        return state.model_copy(update=update)

    if isinstance(event, StoreAddedPushed):
        m = event.message
        if m.nonce and m.nonce in state.pending:
            pos = state.pending[m.nonce]
            messages = list(state.messages)
            if m.id != m.nonce and state.index_of(m.id) is not None:
                # Confirmed copy already visible: drop the optimistic entry.
                del messages[pos]
            else:
                messages[pos] = m
            pending = {k: v for k, v in state.pending.items() if k != m.nonce}
            messages_t = tuple(messages)
            return state.model_copy(update={
                "messages": messages_t,
                "pending": _reindex(messages_t, pending),
            })
        if state.index_of(m.id) is not None:
            return state
        messages_t = _insert_ordered(state.messages, m)
        return state.model_copy(update={
            "messages": messages_t,
            "pending": _reindex(messages_t, state.pending),
        })

    if isinstance(event, StoreModifiedPushed):
        i = state.index_of(event.message.id)
        if i is None:
            return state
        current = state.messages[i]
        merged = current.merged_with(event.message)
        if merged is current:
            return state
        messages = state.messages[:i] + (merged,) + state.messages[i + 1:]
        return state.model_copy(update={"messages": messages})

    if isinstance(event, SendFailed):
        update = _settle_reply(state)
        update["last_error"] = event.error
        if event.nonce in state.pending:
            messages_t = tuple(m for m in state.messages if m.id != event.nonce)
            pending = {k: v for k, v in state.pending.items() if k != event.nonce}
            update["messages"] = messages_t
            update["pending"] = _reindex(messages_t, pending)
        return state.model_copy(update=update)

    if isinstance(event, ReplySettled):
        return state.model_copy(update=_settle_reply(state))

    raise TypeError(f"Unknown ledger event: {type(event).__name__}")


class MessageLedger:
    """Single owner of a LedgerState. All mutation goes through dispatch()."""

    def __init__(self, state: Optional[LedgerState] = None) -> None:
        self._state = state or LedgerState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._state.messages

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called after each accepted transition. Returns a cleanup function."""
        self._listeners.append(listener)
        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def dispatch(self, event: LedgerEvent) -> bool:
        """Apply one event. Returns True if the state changed."""
        prev = self._state
        nxt = apply(prev, event)
        if nxt is prev:
            logger.debug("Ignored %s", type(event).__name__)
            return False
        self._state = nxt
        for listener in list(self._listeners):
            try:
                listener(prev, nxt, event)
            except Exception:
                logger.exception("Ledger listener failed on %s", type(event).__name__)
        return True
