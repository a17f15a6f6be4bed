"""HTTP analysis and responder clients."""

import json

import httpx
import pytest

from sphere_chat.errors import AnalysisServiceError, ResponderServiceError
from sphere_chat.models.message import Entity, Sentiment
from sphere_chat.services import HttpResponderService, HttpTextAnalysisService
from sphere_chat.transport.http import HttpClient


def mock_http(handler) -> HttpClient:
    http = HttpClient("http://svc.test")
    http._client = httpx.AsyncClient(base_url="http://svc.test", transport=httpx.MockTransport(handler))
    return http


def routes(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    if request.url.path == "/api/google-sentiment":
        return httpx.Response(200, json={"score": 0.3, "magnitude": 0.6})
    if request.url.path == "/api/google-entities":
        return httpx.Response(200, json={"entities": [{"name": "Paris", "type": "LOCATION"}]})
    if request.url.path == "/api/google-translate":
        return httpx.Response(200, json={"translation": f"{body['target']}:{body['text']}"})
    if request.url.path == "/api/respond":
        return httpx.Response(200, json={"reply": f"echo {body['message']} ({len(body['history'])})"})
    return httpx.Response(404)


@pytest.mark.asyncio
async def test_analysis_calls():
    service = HttpTextAnalysisService(mock_http(routes))
    assert await service.sentiment("x") == Sentiment(score=0.3, magnitude=0.6)
    assert await service.entities("x") == [Entity(name="Paris", type="LOCATION")]
    assert await service.translate("hello", "hi") == "hi:hello"


@pytest.mark.asyncio
async def test_analysis_failure_names_kind():
    service = HttpTextAnalysisService(mock_http(lambda r: httpx.Response(503)))
    with pytest.raises(AnalysisServiceError) as exc:
        await service.entities("x")
    assert exc.value.kind == "entities"


@pytest.mark.asyncio
async def test_malformed_sentiment():
    service = HttpTextAnalysisService(mock_http(lambda r: httpx.Response(200, json={"score": "high"})))
    with pytest.raises(AnalysisServiceError):
        await service.sentiment("x")


@pytest.mark.asyncio
async def test_responder_generate():
    service = HttpResponderService(mock_http(routes))
    reply = await service.generate("hi", [{"sender": "user", "text": "before"}], "en")
    assert reply == "echo hi (1)"


@pytest.mark.asyncio
async def test_responder_empty_reply():
    service = HttpResponderService(mock_http(lambda r: httpx.Response(200, json={"reply": "  "})))
    with pytest.raises(ResponderServiceError) as exc:
        await service.generate("hi", [], "en")
    assert exc.value.code == "empty_reply"
