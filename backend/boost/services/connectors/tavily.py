from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from tavily import TavilyClient
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .base import BaseConnector, ConnectorError, ConnectorResult
from ..caching import cached_get, make_cache_key
from ...core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_EXTRACT_CHARS = 4000


class TavilyConnector(BaseConnector):
    """
    Tavily web search and page extraction.

    Modes (params["mode"]):
    - "search" (default): `query`, optional `max_results`, `search_depth`.
    - "extract": `url`; returns the page's raw text.

    Results are normalised to
        {"title": ..., "url": ..., "content": ..., "score": ...}
    and cached in Redis. The blocking SDK call runs in a worker thread
    under a hard timeout.
    """

    name = "tavily"

    def __init__(self, client: TavilyClient | None = None) -> None:
        self._client = client

    def _get_client(self) -> TavilyClient:
        if self._client is None:
            if not settings.TAVILY_API_KEY:
                raise ConnectorError("TAVILY_API_KEY is not configured")
            self._client = TavilyClient(api_key=settings.TAVILY_API_KEY)
        return self._client

    @staticmethod
    def _normalise(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        for r in data.get("results") or []:
            url = r.get("url")
            if not url:
                continue
            results.append(
                {
                    "title": r.get("title") or "",
                    "url": url,
                    "content": (r.get("content") or "")[:MAX_EXTRACT_CHARS],
                    "score": r.get("score"),
                }
            )
        return results

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_not_exception_type(ConnectorError),
        reraise=True,
    )
    async def _call(self, fn, **kwargs) -> Dict[str, Any]:
        """Every SDK call goes through here, so search and extract both retry."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, **kwargs),
                timeout=settings.SEARCH_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as exc:
            raise ConnectorError(
                f"Tavily call timed out after {settings.SEARCH_TIMEOUT_SECONDS}s"
            ) from exc

    async def search(
        self,
        query: str,
        max_results: int | None = None,
        search_depth: str = "advanced",
    ) -> List[Dict[str, Any]]:
        max_results = max_results or settings.SEARCH_MAX_RESULTS
        cache_key = make_cache_key("tavily:search", query, max_results, search_depth)
        cached = await cached_get(cache_key)
        if cached is not None:
            return cached

        client = self._get_client()
        data = await self._call(
            client.search,
            query=query,
            search_depth=search_depth,
            max_results=max_results,
        )
        results = self._normalise(data or {})
        await cached_get(cache_key, set_value=results, ttl=settings.SEARCH_CACHE_TTL_SECONDS)
        return results

    async def extract(self, url: str, max_chars: int = MAX_EXTRACT_CHARS) -> str | None:
        client = self._get_client()
        data = await self._call(client.extract, urls=[url])
        items = (data or {}).get("results") or []
        raw = (items[0].get("raw_content") if items else None) or ""
        if not raw:
            return None
        if len(raw) > max_chars:
            return raw[:max_chars] + "\n[Content truncated]"
        return raw

    async def fetch(self, **params: Any) -> ConnectorResult:
        """
        Unified entrypoint used by ConnectorRunner.

        Returns ConnectorResult({"results": [...]}) for searches and
        ConnectorResult({"content": str | None}) for extraction.
        """
        mode = (params.get("mode") or "search").lower()

        if mode == "extract":
            url = params.get("url")
            if not url:
                return ConnectorResult({"content": None})
            return ConnectorResult({"content": await self.extract(url)})

        query = str(params.get("query") or "").strip()
        if not query:
            return ConnectorResult({"results": []})
        results = await self.search(
            query,
            max_results=params.get("max_results"),
            search_depth=params.get("search_depth") or "advanced",
        )
        return ConnectorResult({"results": results})
