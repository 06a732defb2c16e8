from __future__ import annotations
from typing import Protocol
from .models import (
    EngineFilter,
    FetchOptions,
    PageFetchResult,
    SearchOptions,
    SearchResponse,
)


class SearchBackend(Protocol):
    async def search(
        self, query: str, options: SearchOptions = ...
    ) -> SearchResponse: ...

    async def test_connection(self) -> bool: ...

    async def get_engines(
        self, engine_filter: EngineFilter = ...
    ) -> dict[str, dict]: ...


class PageFetcher(Protocol):
    async def fetch(self, url: str, options: FetchOptions = ...) -> PageFetchResult: ...


class HtmlCleaner(Protocol):
    def clean(self, html: str) -> tuple[str, str]:
        """return (title, cleaned_html_fragment)"""
        ...


class HtmlToMarkdownConverter(Protocol):
    def convert(self, html: str) -> str: ...
