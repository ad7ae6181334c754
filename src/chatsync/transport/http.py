"""
REST client for the hosted database: one-shot reads and writes.

Paths are collection paths under /api/db, e.g. GET /api/db/messages.
"""

from typing import Any, Optional

import httpx

from chatsync.errors import StoreError

DEFAULT_BASE_URL = "http://localhost:8080"
USER_AGENT = "chatsync/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: str) -> None:
        self._token = token

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap the standard response: { "status": "success", "data": <actual_data> }"""
        if isinstance(json_data, dict) and "status" in json_data and "data" in json_data:
            return json_data["data"]
        return json_data

    async def _request(self, method: str, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        try:
            resp = await self._client.request(method, path, json=body, headers=self._auth_headers())
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}", code="http_error")
        if resp.status_code >= 400:
            raise StoreError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                code="http_error",
                details={"status": resp.status_code, "path": path},
            )
        if not resp.content:
            return None
        return self._unwrap(resp.json())

    async def get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("POST", path, body)

    async def put(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("PUT", path, body)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def close(self) -> None:
        await self._client.aclose()
