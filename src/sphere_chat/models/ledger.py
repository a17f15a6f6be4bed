"""
Ledger state: owned by the MessageLedger, replaced on every transition.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from sphere_chat.models.message import Message


class PageCursor(BaseModel):
    """Position of the oldest loaded message; older pages are fetched before it."""
    created_at: datetime
    id: str

    model_config = {"frozen": True}


class LedgerState(BaseModel):
    messages: tuple[Message, ...] = ()
    cursor: Optional[PageCursor] = None
    has_more_older: bool = False
    is_responder_composing: bool = False
    is_initial_loading: bool = False
    is_loading_older: bool = False
    initial_loaded: bool = False
    in_flight_replies: int = 0
    # nonce -> list position of the optimistic entry awaiting confirmation
    pending: dict[str, int] = Field(default_factory=dict)
    last_error: Optional[str] = None

    model_config = {"frozen": True}

    def index_of(self, message_id: str) -> Optional[int]:
        for i, m in enumerate(self.messages):
            if m.id == message_id:
                return i
        return None

    def get(self, message_id: str) -> Optional[Message]:
        i = self.index_of(message_id)
        return None if i is None else self.messages[i]

    def is_pending(self, message_id: str) -> bool:
        return message_id in self.pending
