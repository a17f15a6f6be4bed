"""
Responder orchestrator: asks the responder service for a reply and appends it.

Every request settles exactly once through `on_settled`, whatever happened,
so the shared composing indicator cannot get stuck.
"""

import asyncio
import logging
from typing import Callable, Optional

from sphere_chat.errors import ResponderServiceError, StoreWriteError
from sphere_chat.models.message import Message, Sender
from sphere_chat.notifications import Notifier
from sphere_chat.services import HistoryEntry, ResponderService
from sphere_chat.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_REPLY_TIMEOUT_S = 60.0
PACE_MIN_S = 1.0
PACE_MAX_S = 4.0
PACE_PER_CHAR_S = 0.05


def reply_delay(user_text: str) -> float:
    """Reading delay before replying, scaled to the user's message length."""
    return max(PACE_MIN_S, min(PACE_MAX_S, len(user_text) * PACE_PER_CHAR_S))


class ResponderOrchestrator:
    def __init__(
        self,
        store: MessageStore,
        responder: ResponderService,
        notifier: Notifier,
        author: str,
        on_settled: Callable[[], None],
        timeout: float = DEFAULT_REPLY_TIMEOUT_S,
        pace_replies: bool = False,
    ):
        self._store = store
        self._responder = responder
        self._notifier = notifier
        self._author = author
        self._on_settled = on_settled
        self._timeout = timeout
        self._pace_replies = pace_replies

    async def request_reply(self, user_text: str, history: list[HistoryEntry], language: str) -> Optional[str]:
        """Generate and append a reply. Returns the stored id, or None on failure."""
        try:
            if self._pace_replies:
                await asyncio.sleep(reply_delay(user_text))
            reply = await asyncio.wait_for(
                self._responder.generate(user_text, history, language), timeout=self._timeout,
            )
            message = Message.compose(self._author, reply, sender=Sender.RESPONDER)
            return await asyncio.wait_for(self._store.append(message), timeout=self._timeout)
        except ResponderServiceError as e:
            logger.warning("Reply generation failed: %s", e)
            self._notifier.error("The assistant could not reply. Please try again.", code=e.code)
        except asyncio.TimeoutError:
            logger.warning("Reply timed out after %ss", self._timeout)
            self._notifier.error("The assistant took too long to reply.", code="reply_timeout")
        except StoreWriteError as e:
            logger.warning("Could not store reply: %s", e)
            self._notifier.error("The assistant's reply could not be saved.", code=e.code)
        finally:
            self._on_settled()
        return None
