from __future__ import annotations

from .extractor import (
    MarkdownifyConverter,
    SimpleHtmlCleaner,
    decode_body,
    is_html,
    normalize_markdown,
)
from .interfaces import HtmlCleaner, HtmlToMarkdownConverter, PageFetcher
from .models import FetchOptions, FetchResult

from logging import getLogger

logger = getLogger(__name__)


class FetchNormalizer:
    """
    URL取得 → (HTMLなら) 掃除 → markdown化。
    HTML以外はデコードしたテキストをそのまま返す。
    """

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        cleaner: HtmlCleaner = SimpleHtmlCleaner(),
        converter: HtmlToMarkdownConverter = MarkdownifyConverter(),
    ) -> None:
        self._fetcher = fetcher
        self._cleaner = cleaner
        self._converter = converter

    async def fetch(self, url: str, options: FetchOptions = FetchOptions()) -> FetchResult:
        page = await self._fetcher.fetch(url, options)

        content_type = page.content_type or ""
        html = is_html(page.content_type, page.body)
        text = decode_body(page.body, page.charset, html)

        if not html:
            logger.info(f"non-html content ({content_type or 'unknown'}): {page.final_url}")
            return FetchResult(
                final_url=page.final_url,
                content_type=content_type,
                normalized_text=text,
            )

        title, cleaned_html = self._cleaner.clean(text)
        md_text = normalize_markdown(self._converter.convert(cleaned_html) or "")
        logger.info(f"converted {len(text)} chars of html to {len(md_text)} chars: {page.final_url}")

        return FetchResult(
            final_url=page.final_url,
            content_type=content_type or "text/html",
            normalized_text=md_text,
            title=title,
        )
