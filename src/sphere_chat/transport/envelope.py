"""
Envelope construction and parsing for the store push channel.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from sphere_chat.models.envelope import Envelope, EnvelopeMetadata, EnvelopePayload, EventSource

logger = logging.getLogger(__name__)


def build_envelope(
    event_type: str,
    data: Any,
    author: str,
    client_id: str,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build an outgoing envelope as a dict ready for Socket.IO emit."""
    envelope = Envelope(
        metadata=EnvelopeMetadata(
            event_id=str(uuid.uuid4()),
            request_id=request_id or str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=EventSource(role="user", author=author, client_id=client_id),
        ),
        type=event_type,
        payload=EnvelopePayload(author=author, type=event_type, data=data),
    )
    return envelope.model_dump()


def parse_envelope(raw: Any) -> Optional[Envelope]:
    """Parse an incoming envelope. Returns None if invalid."""
    try:
        return Envelope.model_validate(raw)
    except ValidationError as e:
        logger.debug("Dropping malformed envelope: %s", e)
        return None
