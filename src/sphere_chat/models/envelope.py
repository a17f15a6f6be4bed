"""
Push envelope: wraps every Socket.IO event exchanged with the store.
"""

from typing import Any, Optional
from pydantic import BaseModel


class EventSource(BaseModel):
    role: str  # "user" | "store" | "system"
    author: Optional[str] = None
    client_id: Optional[str] = None


class EnvelopeMetadata(BaseModel):
    event_id: str
    request_id: Optional[str] = None
    timestamp: str
    source: EventSource


class EnvelopePayload(BaseModel):
    author: Optional[str] = None
    message_id: Optional[str] = None
    type: Optional[str] = None
    data: Optional[Any] = None


class Envelope(BaseModel):
    metadata: EnvelopeMetadata
    type: str
    payload: EnvelopePayload
