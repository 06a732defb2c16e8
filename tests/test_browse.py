import httpx
import pytest

from search_browse.browse import FetchNormalizer
from search_browse.errors import RedirectNotFollowed
from search_browse.fetchers import HttpxPageFetcher
from search_browse.models import FetchOptions

PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>Example Page</title>
  <style>body { background-color: red; }</style>
  <script>function tracker() { alert('Hello'); }</script>
</head>
<body>
  <h1>Title</h1>
  <p>Content paragraph.</p>
  <!-- do not render -->
  <ul><li>first</li><li>second</li></ul>
  <p>Read <a href="https://example.com/more">more here</a></p>
  <script>console.log('test');</script>
</body>
</html>
"""


def _normalizer(handler) -> tuple[httpx.AsyncClient, FetchNormalizer]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, FetchNormalizer(fetcher=HttpxPageFetcher(client))


@pytest.mark.asyncio
async def test_html_is_normalized_to_markdown():
    def handler(request):
        return httpx.Response(
            200, headers={"content-type": "text/html; charset=utf-8"}, text=PAGE
        )

    client, normalizer = _normalizer(handler)
    async with client:
        result = await normalizer.fetch("https://example.com/page")

    text = result.normalized_text
    assert result.final_url == "https://example.com/page"
    assert result.content_type == "text/html; charset=utf-8"
    assert result.title == "Example Page"
    assert "# Title" in text
    assert "Content paragraph." in text
    assert "- first" in text
    assert "[more here](https://example.com/more)" in text
    assert "alert" not in text
    assert "tracker" not in text
    assert "console.log" not in text
    assert "background-color" not in text
    assert "do not render" not in text


@pytest.mark.asyncio
async def test_plain_text_passes_through_unmodified():
    body = "line one\n   indented <b>not html</b>\n\n\n\ntrailing  \n"

    def handler(request):
        return httpx.Response(
            200, headers={"content-type": "text/plain; charset=utf-8"}, text=body
        )

    client, normalizer = _normalizer(handler)
    async with client:
        result = await normalizer.fetch("https://example.com/notes.txt")

    assert result.normalized_text == body
    assert result.content_type == "text/plain; charset=utf-8"
    assert result.title == ""


@pytest.mark.asyncio
async def test_html_without_content_type_is_sniffed():
    def handler(request):
        return httpx.Response(200, content=b"<html><body><h2>Sniffed</h2></body></html>")

    client, normalizer = _normalizer(handler)
    async with client:
        result = await normalizer.fetch("https://example.com/")

    assert result.normalized_text == "## Sniffed"
    assert result.content_type == "text/html"


@pytest.mark.asyncio
async def test_meta_charset_is_used_when_header_has_none():
    body = b'<html><head><meta charset="windows-1252"></head><body><p>caf\xe9</p></body></html>'

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, content=body)

    client, normalizer = _normalizer(handler)
    async with client:
        result = await normalizer.fetch("https://example.com/")

    assert result.normalized_text == "café"


@pytest.mark.asyncio
async def test_final_url_after_redirect():
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(301, headers={"location": "/new"})
        return httpx.Response(200, headers={"content-type": "text/plain"}, text="moved")

    client, normalizer = _normalizer(handler)
    async with client:
        with pytest.raises(RedirectNotFollowed):
            await normalizer.fetch("https://example.com/old")
        result = await normalizer.fetch(
            "https://example.com/old", FetchOptions(follow_redirects=True)
        )

    assert result.final_url == "https://example.com/new"
    assert result.normalized_text == "moved"
