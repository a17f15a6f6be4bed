"""
Message model: the unit the ledger reconciles.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Sender(str, Enum):
    USER = "user"
    RESPONDER = "responder"


class Sentiment(BaseModel):
    score: float
    magnitude: float


class Entity(BaseModel):
    name: str
    type: str = "OTHER"


ENRICHMENT_FIELDS = ("sentiment", "entities", "translation")


def count_tokens(text: str) -> int:
    return len(text.split())


def new_nonce() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    id: str
    nonce: Optional[str] = None
    sender: Sender = Sender.USER
    author: str
    text: str
    created_at: datetime = Field(default_factory=utcnow)
    seq: Optional[int] = None
    token_count: int = 0
    sentiment: Optional[Sentiment] = None
    entities: list[Entity] = Field(default_factory=list)
    translation: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _fill_token_count(cls, data: Any) -> Any:
        # Documents written by older clients carry no token count.
        if isinstance(data, dict) and not data.get("token_count"):
            data = {**data, "token_count": count_tokens(data.get("text") or "")}
        return data

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def compose(cls, author: str, text: str, sender: Sender = Sender.USER) -> "Message":
        """Build a locally-issued message. User messages get a nonce as their id."""
        if sender is Sender.USER:
            nonce = new_nonce()
            return cls(id=nonce, nonce=nonce, sender=sender, author=author, text=text)
        return cls(id=new_nonce(), sender=sender, author=author, text=text)

    @property
    def is_enriched(self) -> bool:
        return self.sentiment is not None and bool(self.entities) and bool(self.translation)

    def enrichment(self) -> dict[str, Any]:
        """Enrichment fields that carry a value; absent ones are left out."""
        fields: dict[str, Any] = {}
        if self.sentiment is not None:
            fields["sentiment"] = self.sentiment
        if self.entities:
            fields["entities"] = self.entities
        if self.translation:
            fields["translation"] = self.translation
        return fields

    def merged_with(self, incoming: "Message") -> "Message":
        """Overlay the incoming message's present enrichment fields onto this one."""
        update = incoming.enrichment()
        if not update:
            return self
        return self.model_copy(update=update)

    def to_document(self) -> dict[str, Any]:
        """Store document for append; the store assigns `id`."""
        doc = self.model_dump(mode="json", exclude={"id", "seq"})
        return doc
