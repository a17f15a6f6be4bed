"""
REST HTTP client shared by the store and service adapters.
"""

from typing import Any, Optional

import httpx

from sphere_chat.errors import SphereChatError

USER_AGENT = "sphere-chat/0.1.0"


class HttpClient:
    def __init__(self, base_url: str, timeout: float = 30.0, token: Optional[str] = None):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap { "status": "success", "data": <actual_data> } responses."""
        if isinstance(json_data, dict) and "status" in json_data and "data" in json_data:
            return json_data["data"]
        return json_data

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise SphereChatError("transport_error", f"{method} {path} failed: {e}")
        if resp.status_code >= 400:
            raise SphereChatError(
                "http_error", f"HTTP {resp.status_code}: {resp.text[:200]}",
                {"status_code": resp.status_code},
            )
        if not resp.content:
            return None
        try:
            return self._unwrap(resp.json())
        except ValueError:
            raise SphereChatError("http_error", f"{method} {path} returned non-JSON body")

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("POST", path, json=body)

    async def patch(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("PATCH", path, json=body)

    async def close(self) -> None:
        await self._client.aclose()
