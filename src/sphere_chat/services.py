"""
Text-analysis and responder service contracts, with their HTTP clients.
"""

from typing import Any, Optional, Protocol

from pydantic import ValidationError

from sphere_chat.errors import AnalysisServiceError, ResponderServiceError, SphereChatError
from sphere_chat.models.message import Entity, Sentiment
from sphere_chat.transport.http import HttpClient

SENTIMENT_PATH = "/api/google-sentiment"
ENTITIES_PATH = "/api/google-entities"
TRANSLATE_PATH = "/api/google-translate"
RESPOND_PATH = "/api/respond"

HistoryEntry = dict[str, str]


class TextAnalysisService(Protocol):
    async def sentiment(self, text: str) -> Optional[Sentiment]: ...

    async def entities(self, text: str) -> list[Entity]: ...

    async def translate(self, text: str, target_language: str) -> str: ...


class ResponderService(Protocol):
    async def generate(self, text: str, history: list[HistoryEntry], language: str) -> str: ...


class HttpTextAnalysisService:
    """Raises AnalysisServiceError; callers degrade the result to absent."""

    def __init__(self, http: HttpClient):
        self._http = http

    async def _post(self, kind: str, path: str, body: dict[str, Any]) -> Any:
        try:
            return await self._http.post(path, body)
        except SphereChatError as e:
            raise AnalysisServiceError(kind, f"{kind} request failed: {e}")

    async def sentiment(self, text: str) -> Optional[Sentiment]:
        data = await self._post("sentiment", SENTIMENT_PATH, {"text": text})
        if not data:
            return None
        try:
            return Sentiment.model_validate(data)
        except ValidationError as e:
            raise AnalysisServiceError("sentiment", f"Malformed sentiment response: {e}")

    async def entities(self, text: str) -> list[Entity]:
        data = await self._post("entities", ENTITIES_PATH, {"text": text})
        items = data.get("entities", []) if isinstance(data, dict) else data
        try:
            return [Entity.model_validate(e) for e in items or []]
        except (ValidationError, TypeError) as e:
            raise AnalysisServiceError("entities", f"Malformed entities response: {e}")

    async def translate(self, text: str, target_language: str) -> str:
        data = await self._post("translation", TRANSLATE_PATH, {"text": text, "target": target_language})
        if isinstance(data, dict):
            data = data.get("translation")
        if not isinstance(data, str):
            raise AnalysisServiceError("translation", "Malformed translation response")
        return data


class HttpResponderService:
    def __init__(self, http: HttpClient):
        self._http = http

    async def generate(self, text: str, history: list[HistoryEntry], language: str) -> str:
        try:
            data = await self._http.post(RESPOND_PATH, {"message": text, "history": history, "language": language})
        except SphereChatError as e:
            raise ResponderServiceError(f"Reply generation failed: {e}")
        reply = data.get("reply") if isinstance(data, dict) else data
        if not isinstance(reply, str) or not reply.strip():
            raise ResponderServiceError("Responder returned an empty reply", code="empty_reply")
        return reply
