"""Async HTTP client for outbound calls to third-party APIs."""

from typing import Any, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient.

    One instance per external service keeps base URL, default headers and
    timeout independently configurable.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        base_url: str = "",
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout, base_url=base_url, headers=headers or {}
        )

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
