from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from salon_agenda.services.exceptions import DownstreamServiceError, StoreConflictError

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"


def eq(value: Any) -> str:
    return f"eq.{value}"


def in_(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(str(value) for value in values) + ")"


def ilike(fragment: str) -> str:
    return f"ilike.*{fragment}*"


class DataStoreClient:
    """Async HTTP client for the hosted relational data store's REST API."""

    def __init__(
        self,
        base_url: str | None,
        *,
        api_key: str | None = None,
        timeout: float = 10.0,
        use_mock_data: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = str(base_url).rstrip("/") if base_url else None
        self._timeout = timeout
        self.use_mock_data = use_mock_data or not self._base_url
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_key:
            self._headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        if not self.use_mock_data and self._base_url:
            self._client = self._build_client()

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.use_mock_data or not self._base_url:
            raise RuntimeError("HTTP client requested while running in mock mode")
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def select(
        self,
        table: str,
        *,
        filters: Dict[str, str] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        data = await self._request("GET", table, params=params)
        return list(data or [])

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            table,
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if not data:
            raise DownstreamServiceError(f"Insert into {table} returned no row")
        return data[0]

    async def update(
        self, table: str, values: Dict[str, Any], *, filters: Dict[str, str]
    ) -> List[Dict[str, Any]]:
        data = await self._request(
            "PATCH",
            table,
            params=filters,
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return list(data or [])

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Any:
        if self.use_mock_data:
            raise RuntimeError("Real HTTP call requested while mock mode is enabled")
        client = await self._ensure_client()
        path = f"{REST_PREFIX}/{table}"
        try:
            response = await client.request(
                method, path, params=params, json=json, headers=headers
            )
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 409:
                logger.info("Data store rejected %s %s with a constraint conflict", method, path)
                raise StoreConflictError(
                    "Data store rejected the write with a constraint conflict", cause=exc
                ) from exc
            logger.exception("Data store returned error %s", exc.response.status_code)
            raise DownstreamServiceError(
                "Data store returned an error response",
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.exception("Unable to reach data store: %s", exc)
            raise DownstreamServiceError(
                "Unable to reach data store", status_code=None, cause=exc
            ) from exc

    async def simulate_latency(self) -> None:
        """Allow services to await for latency even when mocking responses."""

        await asyncio.sleep(0)
