"""
Ledger events: every mutation of the message list is one of these.

Request events are accepted or ignored by the transition function; the
session issues the matching store query only when the request was accepted.
"""

from typing import Literal, Optional

from pydantic import BaseModel

from sphere_chat.models.message import Message


class LedgerEvent(BaseModel):
    model_config = {"frozen": True}


class InitialLoadRequested(LedgerEvent):
    kind: Literal["initial_load_requested"] = "initial_load_requested"


class InitialLoadSucceeded(LedgerEvent):
    kind: Literal["initial_load_succeeded"] = "initial_load_succeeded"
    batch: list[Message]
    page_size: int


class InitialLoadFailed(LedgerEvent):
    kind: Literal["initial_load_failed"] = "initial_load_failed"
    error: str


class OlderPageRequested(LedgerEvent):
    kind: Literal["older_page_requested"] = "older_page_requested"


class OlderPageLoaded(LedgerEvent):
    kind: Literal["older_page_loaded"] = "older_page_loaded"
    batch: list[Message]
    page_size: int


class OlderPageFailed(LedgerEvent):
    kind: Literal["older_page_failed"] = "older_page_failed"
    error: str


class OptimisticSendIssued(LedgerEvent):
    kind: Literal["optimistic_send_issued"] = "optimistic_send_issued"
    message: Message


class StoreAddedPushed(LedgerEvent):
    kind: Literal["store_added_pushed"] = "store_added_pushed"
    message: Message


class StoreModifiedPushed(LedgerEvent):
    kind: Literal["store_modified_pushed"] = "store_modified_pushed"
    message: Message


class SendFailed(LedgerEvent):
    kind: Literal["send_failed"] = "send_failed"
    nonce: str
    error: Optional[str] = None


class ReplySettled(LedgerEvent):
    """A responder request finished, successfully or not."""
    kind: Literal["reply_settled"] = "reply_settled"
