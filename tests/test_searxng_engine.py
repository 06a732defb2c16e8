import httpx
import pytest

from search_browse.errors import BackendError, InvalidInput, TransportError
from search_browse.models import EngineFilter, SafeSearch, SearchOptions, TimeRange
from search_browse.searxng_engine import SearXNGClient, build_search_params

BASE = "http://searx.test"


def _records(n):
    return [
        {
            "title": f"Result {i}",
            "url": f"https://example.com/{i}",
            "content": f"snippet {i}",
            "score": float(i),
            "engine": "duckduckgo",
            "category": "general",
        }
        for i in range(n)
    ]


class Backend:
    """MockTransport 用のハンドラ。受けたリクエストを記録する。"""

    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        # 同じResponseを使い回さないよう毎回作り直す
        r = self.response
        return httpx.Response(r.status_code, headers=r.headers, content=r.content)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
@pytest.mark.parametrize("n,k", [(7, 3), (3, 10), (5, 5), (4, 0)])
async def test_returns_min_n_k_in_backend_order(n, k):
    backend = Backend(httpx.Response(200, json={"results": _records(n)}))
    async with _client(backend) as client:
        resp = await SearXNGClient(client, BASE).search(
            "python", SearchOptions(max_results=k)
        )

    assert [r.title for r in resp.results] == [f"Result {i}" for i in range(min(n, k))]
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_results_are_not_resorted_by_score():
    records = _records(3)  # score 0, 1, 2 の昇順
    backend = Backend(httpx.Response(200, json={"results": records}))
    async with _client(backend) as client:
        resp = await SearXNGClient(client, BASE).search("q", SearchOptions())

    assert [r.score for r in resp.results] == [0.0, 1.0, 2.0]


@pytest.mark.asyncio
async def test_malformed_records_are_skipped():
    records = [
        {"title": "A", "url": "https://example.com/a"},
        {"title": "no url"},
        {"url": "https://example.com/no-title"},
        {"title": "bad url", "url": "not a url"},
        "not an object",
        {"title": "B", "url": "https://example.com/b", "score": "high"},
    ]
    backend = Backend(httpx.Response(200, json={"results": records}))
    async with _client(backend) as client:
        resp = await SearXNGClient(client, BASE).search("q", SearchOptions())

    assert [r.title for r in resp.results] == ["A", "B"]
    assert resp.results[0].content == ""
    assert resp.results[1].score == 0.0


@pytest.mark.asyncio
async def test_bare_list_body_and_suggestions():
    backend = Backend(httpx.Response(200, json=_records(2)))
    async with _client(backend) as client:
        resp = await SearXNGClient(client, BASE).search("q", SearchOptions())
    assert len(resp.results) == 2
    assert resp.suggestions == []

    backend = Backend(
        httpx.Response(200, json={"results": [], "suggestions": ["python asyncio", 3]})
    )
    async with _client(backend) as client:
        resp = await SearXNGClient(client, BASE).search("q", SearchOptions())
    assert resp.suggestions == ["python asyncio"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", "\n\t"])
async def test_blank_query_is_rejected_without_request(query):
    backend = Backend(httpx.Response(200, json={"results": []}))
    async with _client(backend) as client:
        with pytest.raises(InvalidInput):
            await SearXNGClient(client, BASE).search(query, SearchOptions())
    assert backend.requests == []


@pytest.mark.asyncio
async def test_negative_max_results_is_rejected():
    backend = Backend(httpx.Response(200, json={"results": []}))
    async with _client(backend) as client:
        with pytest.raises(InvalidInput):
            await SearXNGClient(client, BASE).search("q", SearchOptions(max_results=-1))
    assert backend.requests == []


@pytest.mark.asyncio
async def test_non_success_status_is_backend_error():
    backend = Backend(httpx.Response(503, text="upstream down"))
    async with _client(backend) as client:
        with pytest.raises(BackendError) as ei:
            await SearXNGClient(client, BASE).search("q", SearchOptions())
    assert ei.value.status == 503
    assert "upstream down" in ei.value.body


@pytest.mark.asyncio
async def test_malformed_body_is_backend_error():
    backend = Backend(httpx.Response(200, text="<html>not json</html>"))
    async with _client(backend) as client:
        with pytest.raises(BackendError):
            await SearXNGClient(client, BASE).search("q", SearchOptions())

    backend = Backend(httpx.Response(200, json={"results": "nope"}))
    async with _client(backend) as client:
        with pytest.raises(BackendError):
            await SearXNGClient(client, BASE).search("q", SearchOptions())


@pytest.mark.asyncio
async def test_transport_failure_is_transport_error():
    backend = Backend(httpx.ConnectError("connection refused"))
    async with _client(backend) as client:
        with pytest.raises(TransportError):
            await SearXNGClient(client, BASE).search("q", SearchOptions())


@pytest.mark.asyncio
async def test_request_shape():
    backend = Backend(httpx.Response(200, json={"results": []}))
    options = SearchOptions(
        engines=("google", "bing"),
        categories=("general",),
        language="ja",
        safe_search=SafeSearch.STRICT,
        time_range=TimeRange.WEEK,
        page=2,
        user_agent="ua-test/1.0",
    )
    async with _client(backend) as client:
        await SearXNGClient(client, BASE + "/").search("  hello world ", options)

    req = backend.requests[0]
    assert req.method == "GET"
    assert req.url.path == "/search"
    assert req.headers["user-agent"] == "ua-test/1.0"
    params = req.url.params
    assert params["q"] == "hello world"
    assert params["format"] == "json"
    assert params["engines"] == "google,bing"
    assert params["categories"] == "general"
    assert params["language"] == "ja"
    assert params["safesearch"] == "2"
    assert params["time_range"] == "week"
    assert params["pageno"] == "2"


def test_empty_filters_are_omitted():
    params = dict(build_search_params("q", SearchOptions(language="")))
    assert params == {"q": "q", "format": "json", "safesearch": "0"}


@pytest.mark.asyncio
async def test_get_engines_filters():
    config = {
        "engines": [
            {"name": "google", "enabled": True},
            {"name": "bing", "enabled": False},
            {"name": "wikipedia"},
            {"enabled": True},
        ]
    }
    backend = Backend(httpx.Response(200, json=config))
    async with _client(backend) as client:
        searx = SearXNGClient(client, BASE)
        enabled = await searx.get_engines(EngineFilter.ENABLED)
        disabled = await searx.get_engines(EngineFilter.DISABLED)
        every = await searx.get_engines(EngineFilter.ALL)

    assert set(enabled) == {"google"}
    assert set(disabled) == {"bing"}
    assert set(every) == {"google", "bing", "wikipedia"}
    assert backend.requests[0].url.path == "/config"


@pytest.mark.asyncio
async def test_get_engines_unexpected_format():
    backend = Backend(httpx.Response(200, json={"categories": []}))
    async with _client(backend) as client:
        with pytest.raises(BackendError):
            await SearXNGClient(client, BASE).get_engines()


@pytest.mark.asyncio
async def test_connection_check():
    async with _client(Backend(httpx.Response(200, json={}))) as client:
        assert await SearXNGClient(client, BASE).test_connection() is True
    async with _client(Backend(httpx.Response(502))) as client:
        assert await SearXNGClient(client, BASE).test_connection() is False


@pytest.mark.asyncio
async def test_broken_gzip_body_is_transport_error():
    def handler(request):
        # 未読のstreamで返し、client側で展開させる
        return httpx.Response(
            200,
            headers={"content-encoding": "gzip"},
            stream=httpx.ByteStream(b"not gzip"),
        )

    async with _client(handler) as client:
        with pytest.raises(TransportError):
            await SearXNGClient(client, BASE).search("q", SearchOptions())


@pytest.mark.asyncio
@pytest.mark.parametrize("suggestions", [5, "python", {"a": 1}, None])
async def test_non_list_suggestions_are_ignored(suggestions):
    body = {
        "results": [{"title": "a", "url": "https://a.example"}],
        "suggestions": suggestions,
    }
    backend = Backend(httpx.Response(200, json=body))
    async with _client(backend) as client:
        resp = await SearXNGClient(client, BASE).search("q", SearchOptions())

    assert [r.title for r in resp.results] == ["a"]
    assert resp.suggestions == []
