from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx


class PositionsClientError(Exception):
    """A request to the positions API failed or returned something unusable."""


class PositionsClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def list_positions(self) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/api/positions")
        if not isinstance(payload, list):
            raise PositionsClientError("positions response is not a list")
        return payload

    async def create_position(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request_object("POST", "/api/positions", json=fields)

    async def update_position(self, position_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request_object("PUT", f"/api/positions/{quote(position_id, safe='')}", json=fields)

    async def _request_object(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        payload = await self._request(method, path, **kwargs)
        if not isinstance(payload, dict):
            raise PositionsClientError(f"{method} {path} response is not an object")
        return payload

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            raise PositionsClientError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise PositionsClientError(f"{method} {path} returned invalid JSON") from exc
