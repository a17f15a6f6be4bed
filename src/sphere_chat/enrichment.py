"""
Enrichment orchestrator: sentiment, entities and translation per message.

The three analyses run concurrently and independently. Each consults the
analysis cache first and degrades to an absent result on failure or timeout.
Whatever came back is written to the store in one update; the ledger picks
it up from the modification push.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from sphere_chat.cache import AnalysisCache, CacheKey, cache_key
from sphere_chat.errors import AnalysisServiceError, StoreWriteError
from sphere_chat.models.message import Entity, Message, Sentiment
from sphere_chat.notifications import Notifier
from sphere_chat.services import TextAnalysisService
from sphere_chat.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_TIMEOUT_S = 15.0

KIND_SENTIMENT = "sentiment"
KIND_ENTITIES = "entities"
KIND_TRANSLATION = "translation"


class EnrichmentOrchestrator:
    def __init__(
        self,
        store: MessageStore,
        analysis: TextAnalysisService,
        cache: AnalysisCache,
        notifier: Notifier,
        is_pending: Callable[[str], bool],
        lookup: Optional[Callable[[str], Optional[Message]]] = None,
        timeout: float = DEFAULT_ANALYSIS_TIMEOUT_S,
    ):
        self._store = store
        self._analysis = analysis
        self._cache = cache
        self._notifier = notifier
        self._is_pending = is_pending
        self._lookup = lookup
        self._timeout = timeout
        self._analyzing: set[str] = set()

    def is_analyzing(self, message_id: str) -> bool:
        return message_id in self._analyzing

    async def analyze(self, message_id: str, text: str, target_language: str) -> bool:
        """Analyze one confirmed message and write the results back to the store.

        Returns False when the message is still optimistic, already being
        analyzed, or nothing could be analyzed or written.
        """
        if self._is_pending(message_id):
            logger.debug("Not analyzing %s: not confirmed by the store yet", message_id)
            return False
        if message_id in self._analyzing:
            return False
        current = self._lookup(message_id) if self._lookup else None
        if current is not None and current.is_enriched:
            return True

        self._analyzing.add(message_id)
        try:
            sentiment, entities, translation = await asyncio.gather(
                self.sentiment(text),
                self.entities(text),
                self.translate(text, target_language),
            )
            fields: dict[str, Any] = {}
            if sentiment is not None:
                fields["sentiment"] = sentiment
            if entities:
                fields["entities"] = entities
            if translation:
                fields["translation"] = translation

            if not fields:
                self._notifier.warning("Message analysis is unavailable right now.", code="analysis_failed", retryable=True)
                return False

            try:
                await asyncio.wait_for(self._store.update(message_id, fields), timeout=self._timeout)
            except (StoreWriteError, asyncio.TimeoutError) as e:
                logger.warning("Could not save analysis for %s: %s", message_id, e)
                self._notifier.error("Could not save message analysis.", code="store_write_error", retryable=True)
                return False

            if sentiment is not None:
                self._notifier.info(f"Sentiment: Score {sentiment.score}, Magnitude {sentiment.magnitude}", code="sentiment")
            if entities:
                self._notifier.info(f"Entities: {', '.join(e.name for e in entities)}", code="entities")
            return True
        finally:
            self._analyzing.discard(message_id)

    async def sentiment(self, text: str) -> Optional[Sentiment]:
        return await self._cached(
            cache_key(KIND_SENTIMENT, text),
            lambda: self._analysis.sentiment(text),
            encode=lambda s: s.model_dump(),
            decode=Sentiment.model_validate,
        )

    async def entities(self, text: str) -> list[Entity]:
        value = await self._cached(
            cache_key(KIND_ENTITIES, text),
            lambda: self._analysis.entities(text),
            encode=lambda items: [e.model_dump() for e in items],
            decode=lambda items: [Entity.model_validate(e) for e in items],
        )
        return value or []

    async def translate(self, text: str, target_language: str) -> Optional[str]:
        return await self._cached(
            cache_key(KIND_TRANSLATION, text, target_language),
            lambda: self._analysis.translate(text, target_language),
            encode=lambda s: s,
            decode=str,
        )

    async def _cached(
        self,
        key: CacheKey,
        call: Callable[[], Awaitable[Any]],
        encode: Callable[[Any], Any],
        decode: Callable[[Any], Any],
    ) -> Any:
        """Cache hit, or one service call whose non-empty result is cached.

        Returns the decoded result, or None when nothing could be obtained.
        """
        try:
            hit = self._cache.get(key)
            if hit:
                return decode(hit)
        except Exception:
            logger.debug("Analysis cache unusable for %s", key[0], exc_info=True)

        try:
            result = await asyncio.wait_for(call(), timeout=self._timeout)
        except AnalysisServiceError as e:
            logger.info("%s analysis failed: %s", key[0], e)
            return None
        except asyncio.TimeoutError:
            logger.info("%s analysis timed out after %ss", key[0], self._timeout)
            return None
        if not result:
            return None

        try:
            self._cache.put(key, encode(result))
        except Exception:
            logger.debug("Analysis cache write failed for %s", key[0], exc_info=True)
        return result
