"""Async HTTP scope client with retries."""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import httpx
import pydantic
import structlog

from compsync.engines.importer.models import ComponentId, ComponentObject
from compsync.exceptions import NetworkError
from compsync.remote.payload import ComponentPayload

log = structlog.get_logger("compsync.remote")

_RETRY_BASE_DELAY = 1.0  # seconds


class HttpScopeClient:
    """Thin async wrapper around a scope's HTTP API.

    ``GET {base_url}/components/{name}?version=...`` returns the component
    payload; 404 means the component (or that version) was never published.
    Omitting ``version`` asks the scope for its latest version.
    """

    def __init__(
        self,
        scope: str,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        known_scopes: frozenset[str] = frozenset(),
    ) -> None:
        self.scope = scope
        self.known_scopes = known_scopes
        self._max_retries = max_retries
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpScopeClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get(self, cid: ComponentId) -> ComponentObject | None:
        """Fetch one component object; None when the scope does not have it."""
        params: dict[str, Any] = {}
        if cid.version:
            params["version"] = cid.version
        path = f"/components/{quote(cid.name, safe='/')}"
        response = await self._request_with_retry(path, params)
        if response.status_code == 404:
            return None
        try:
            payload = ComponentPayload.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as exc:
            raise NetworkError(
                f"scope {self.scope} returned a malformed object for {cid}: {exc}"
            ) from exc
        obj = payload.to_object(self.known_scopes)
        if obj.id.key != cid.key or (cid.version and obj.id.version != cid.version):
            raise NetworkError(f"scope {self.scope} answered {obj.id} when asked for {cid}")
        return obj

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx, timeout and connection errors."""
        last_exc: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.get(url, params=params)

                if resp.status_code == 404:
                    return resp

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                # 5xx, retry
                log.warning(
                    "scope.server_error",
                    scope=self.scope,
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.HTTPStatusError as exc:
                raise NetworkError(
                    f"scope {self.scope} rejected {url}: HTTP {exc.response.status_code}"
                ) from exc
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                log.warning(
                    "scope.transport_error",
                    scope=self.scope,
                    url=url,
                    error=str(exc),
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_exc = exc

            if attempt < self._max_retries - 1:
                await asyncio.sleep(_RETRY_BASE_DELAY * (2**attempt))

        raise NetworkError(
            f"scope {self.scope} unreachable after {self._max_retries} attempts: {last_exc}"
        ) from last_exc
