"""Enrichment orchestrator: caching, partial failure, re-trigger guards."""

import asyncio

import pytest
from conftest import make_message

from sphere_chat.cache import InMemoryAnalysisCache, cache_key
from sphere_chat.enrichment import EnrichmentOrchestrator
from sphere_chat.models.message import Entity, Sentiment
from sphere_chat.notifications import NoticeLevel, Notifier


def build(store, analysis, pending=(), lookup=None, timeout=1.0):
    notices = []
    notifier = Notifier()
    notifier.add_handler(notices.append)
    cache = InMemoryAnalysisCache()
    orchestrator = EnrichmentOrchestrator(
        store=store,
        analysis=analysis,
        cache=cache,
        notifier=notifier,
        is_pending=lambda message_id: message_id in pending,
        lookup=lookup,
        timeout=timeout,
    )
    return orchestrator, cache, notices


@pytest.mark.asyncio
async def test_sentiment_is_served_from_cache(store, analysis):
    orchestrator, cache, _ = build(store, analysis)
    first = await orchestrator.sentiment("same text")
    second = await orchestrator.sentiment("same text")
    assert first == second == Sentiment(score=0.8, magnitude=0.9)
    assert analysis.calls["sentiment"] == 1
    assert cache.get(cache_key("sentiment", "same text")) == {"score": 0.8, "magnitude": 0.9}


@pytest.mark.asyncio
async def test_translation_cache_is_keyed_by_language(store, analysis):
    orchestrator, _, _ = build(store, analysis)
    assert await orchestrator.translate("hello", "hi") == "[hi] hello"
    assert await orchestrator.translate("hello", "fr") == "[fr] hello"
    assert await orchestrator.translate("hello", "hi") == "[hi] hello"
    assert analysis.calls["translation"] == 2


@pytest.mark.asyncio
async def test_writes_all_results(store, analysis):
    store.docs["m1"] = make_message(1, text="Visit Paris")
    orchestrator, _, notices = build(store, analysis)
    assert await orchestrator.analyze("m1", "Visit Paris", "hi")
    message_id, fields = store.updates[0]
    assert message_id == "m1"
    assert set(fields) == {"sentiment", "entities", "translation"}
    assert fields["entities"] == [Entity(name="Visit", type="OTHER"), Entity(name="Paris", type="OTHER")]
    assert [n.code for n in notices] == ["sentiment", "entities"]
    assert not orchestrator.is_analyzing("m1")


@pytest.mark.asyncio
async def test_partial_failure_writes_the_rest(store, analysis):
    store.docs["m1"] = make_message(1, text="Visit Paris")
    analysis.failing = {"sentiment"}
    orchestrator, _, _ = build(store, analysis)
    assert await orchestrator.analyze("m1", "Visit Paris", "hi")
    _, fields = store.updates[0]
    assert "sentiment" not in fields
    assert fields["translation"] == "[hi] Visit Paris"


@pytest.mark.asyncio
async def test_failed_kind_is_not_cached(store, analysis):
    analysis.failing = {"sentiment"}
    orchestrator, cache, _ = build(store, analysis)
    assert await orchestrator.sentiment("text") is None
    assert cache.get(cache_key("sentiment", "text")) is None
    analysis.failing = set()
    assert await orchestrator.sentiment("text") is not None
    assert analysis.calls["sentiment"] == 2


@pytest.mark.asyncio
async def test_total_failure_reports_and_skips_write(store, analysis):
    analysis.failing = {"sentiment", "entities", "translation"}
    orchestrator, _, notices = build(store, analysis)
    assert not await orchestrator.analyze("m1", "text", "hi")
    assert store.updates == []
    assert notices[-1].level is NoticeLevel.WARNING
    assert notices[-1].retryable


@pytest.mark.asyncio
async def test_timeout_counts_as_failure(store, analysis):
    analysis.delay = 0.2
    orchestrator, _, _ = build(store, analysis, timeout=0.05)
    assert not await orchestrator.analyze("m1", "text", "hi")
    assert store.updates == []


@pytest.mark.asyncio
async def test_rejects_optimistic_message_without_calls(store, analysis):
    orchestrator, _, _ = build(store, analysis, pending={"nonce1"})
    assert not await orchestrator.analyze("nonce1", "text", "hi")
    assert analysis.calls == {"sentiment": 0, "entities": 0, "translation": 0}


@pytest.mark.asyncio
async def test_no_retrigger_while_analyzing(store, analysis):
    store.docs["m1"] = make_message(1, text="Visit Paris")
    analysis.delay = 0.05
    orchestrator, _, _ = build(store, analysis)
    first = asyncio.ensure_future(orchestrator.analyze("m1", "Visit Paris", "hi"))
    await asyncio.sleep(0)
    assert orchestrator.is_analyzing("m1")
    assert not await orchestrator.analyze("m1", "Visit Paris", "hi")
    assert await first
    assert len(store.updates) == 1


@pytest.mark.asyncio
async def test_skips_fully_enriched_message(store, analysis):
    enriched = make_message(
        1,
        sentiment=Sentiment(score=0.1, magnitude=0.2),
        entities=[Entity(name="Paris")],
        translation="x",
    )
    orchestrator, _, _ = build(store, analysis, lookup=lambda message_id: enriched)
    assert await orchestrator.analyze("m1", enriched.text, "hi")
    assert sum(analysis.calls.values()) == 0


@pytest.mark.asyncio
async def test_store_write_failure_is_reported(store, analysis):
    store.fail_updates = True
    orchestrator, _, notices = build(store, analysis)
    assert not await orchestrator.analyze("m1", "Visit Paris", "hi")
    assert notices[-1].code == "store_write_error"
    assert not orchestrator.is_analyzing("m1")


@pytest.mark.asyncio
async def test_broken_cache_does_not_block_analysis(store, analysis):
    class BrokenCache:
        def get(self, key):
            raise OSError("quota")

        def put(self, key, value):
            raise OSError("quota")

    orchestrator = EnrichmentOrchestrator(
        store=store, analysis=analysis, cache=BrokenCache(), notifier=Notifier(),
        is_pending=lambda message_id: False,
    )
    assert await orchestrator.sentiment("text") == Sentiment(score=0.8, magnitude=0.9)
