from __future__ import annotations
import json
from typing import Any, Optional

import httpx

from .browse import FetchNormalizer
from .config import GatewayConfig
from .errors import GatewayError
from .extractor import MarkdownifyConverter, SimpleHtmlCleaner
from .fetchers import HttpxPageFetcher
from .interfaces import SearchBackend
from .models import (
    EngineFilter,
    FetchOptions,
    FetchResult,
    SearchOptions,
    SearchResponse,
    ToolDescription,
    ToolResult,
)
from .searxng_engine import SearXNGClient

from logging import getLogger

logger = getLogger(__name__)


class SearchGateway:
    """
    hostアプリから呼ばれる入口。search / browse の2操作だけを持つ。
    設定(デフォルト値)は起動時に受け取り、options=None の呼び出しに適用する。
    """

    def __init__(
        self,
        *,
        backend: SearchBackend,
        normalizer: FetchNormalizer,
        config: GatewayConfig = GatewayConfig(),
    ) -> None:
        self._backend = backend
        self._normalizer = normalizer
        self._cfg = config

    @classmethod
    def from_client(
        cls, client: httpx.AsyncClient, config: GatewayConfig = GatewayConfig()
    ) -> "SearchGateway":
        return cls(
            backend=SearXNGClient(
                client, config.base_url, user_agent=config.search.user_agent
            ),
            normalizer=FetchNormalizer(
                fetcher=HttpxPageFetcher(client),
                cleaner=SimpleHtmlCleaner(),
                converter=MarkdownifyConverter(),
            ),
            config=config,
        )

    @property
    def config(self) -> GatewayConfig:
        return self._cfg

    async def search(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> SearchResponse:
        return await self._backend.search(query, options or self._cfg.search)

    async def browse(
        self, url: str, options: Optional[FetchOptions] = None
    ) -> FetchResult:
        return await self._normalizer.fetch(url, options or self._cfg.fetch)

    async def test_connection(self) -> bool:
        return await self._backend.test_connection()

    async def get_engines(
        self, engine_filter: EngineFilter = EngineFilter.ENABLED
    ) -> dict[str, dict]:
        return await self._backend.get_engines(engine_filter)

    async def log_available_engines(self) -> None:
        try:
            engines = await self.get_engines(EngineFilter.ENABLED)
        except GatewayError as e:
            logger.warning(f"Failed to fetch SearXNG engines: {e}")
            return
        logger.info(f"Available SearXNG engines: {', '.join(sorted(engines))}")

    # -----------------------
    # tool surface
    # -----------------------

    def describe_tools(self) -> list[ToolDescription]:
        return [
            ToolDescription(
                name="search",
                description="Perform web search using SearXNG",
                input_schema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "The search query",
                        },
                    },
                    "required": ["query"],
                },
            ),
            ToolDescription(
                name="browse",
                description="Fetch content from a URL as Markdown",
                input_schema={
                    "type": "object",
                    "properties": {
                        "url": {
                            "type": "string",
                            "description": "The URL to browse",
                        },
                    },
                    "required": ["url"],
                },
            ),
        ]

    async def call_tool(
        self, name: str, arguments: Optional[dict[str, Any]] = None
    ) -> ToolResult:
        """
        ツール呼び出し。GatewayError は例外にせず is_error=True の結果で返す。
        """
        args = arguments or {}
        if name == "search":
            query = args.get("query")
            if not isinstance(query, str) or not query.strip():
                return ToolResult("Please provide a non-empty query string", is_error=True)
            try:
                response = await self.search(query)
            except GatewayError as e:
                logger.warning(f"search tool failed: {e}")
                return ToolResult(f"Search failed: {e}", is_error=True)
            return ToolResult(
                json.dumps(response.to_dict(), ensure_ascii=False),
                mime_type="application/json",
            )

        if name == "browse":
            url = args.get("url")
            if not isinstance(url, str) or not url.strip():
                return ToolResult("Please provide a non-empty url string", is_error=True)
            try:
                result = await self.browse(url)
            except GatewayError as e:
                logger.warning(f"browse tool failed: {e}")
                return ToolResult(f"Browse failed: {e}", is_error=True)
            return ToolResult(result.normalized_text, mime_type="text/markdown")

        return ToolResult(f"Unknown tool: {name}", is_error=True)
