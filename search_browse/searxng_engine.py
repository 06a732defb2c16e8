from __future__ import annotations
from typing import Any, Optional

import httpx

from .errors import BackendError, InvalidInput, TransportError
from .interfaces import SearchBackend
from .models import (
    DEFAULT_USER_AGENT,
    EngineFilter,
    SearchOptions,
    SearchResponse,
    SearchResult,
    TimeRange,
)
from .url_utils import is_well_formed_uri

from logging import getLogger

logger = getLogger(__name__)


def build_search_params(query: str, options: SearchOptions) -> list[tuple[str, str]]:
    params = [("q", query), ("format", "json")]
    # 空のフィルタは送らない → backend側のデフォルトが効く
    if options.categories:
        params.append(("categories", ",".join(options.categories)))
    if options.engines:
        params.append(("engines", ",".join(options.engines)))
    if options.language:
        params.append(("language", options.language))
    if options.page > 1:
        params.append(("pageno", str(options.page)))
    if options.time_range != TimeRange.ANY:
        params.append(("time_range", options.time_range.value))
    params.append(("safesearch", str(int(options.safe_search))))
    return params


def _to_score(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def parse_result(record: Any) -> Optional[SearchResult]:
    """
    1件分のレコードを SearchResult に変換する。
    title / url が欠けている・壊れているレコードは None（呼び出し側でskip）。
    """
    if not isinstance(record, dict):
        return None

    title = record.get("title")
    url = record.get("url")
    if not isinstance(title, str) or not title.strip():
        return None
    if not isinstance(url, str) or not is_well_formed_uri(url):
        return None

    content = record.get("content")
    return SearchResult(
        title=title.strip(),
        url=url.strip(),
        content=content if isinstance(content, str) else "",
        score=_to_score(record.get("score")),
        engine=_optional_str(record.get("engine")),
        category=_optional_str(record.get("category")),
    )


class SearXNGClient(SearchBackend):
    """
    SearXNG の JSON API クライアント。
    1回の search につき1リクエストのみ。リトライはしない（呼び出し側の責務）。
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        # /config 系のリクエスト用。search は options.user_agent を使う
        self._user_agent = user_agent

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get(
        self,
        path: str,
        *,
        user_agent: str,
        timeout_s: float,
        params: Optional[list[tuple[str, str]]] = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            return await self._client.get(
                url,
                params=params,
                headers={"User-Agent": user_agent, "Accept": "application/json"},
                timeout=timeout_s,
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            # 接続失敗・タイムアウト・壊れたgzip・解釈できないLocationなど
            raise TransportError(f"request to {url} failed: {e!r}") from e

    async def search(
        self, query: str, options: SearchOptions = SearchOptions()
    ) -> SearchResponse:
        q = (query or "").strip()
        if not q:
            raise InvalidInput("query must be a non-empty string")
        if options.max_results < 0:
            raise InvalidInput(f"max_results must be >= 0: {options.max_results}")

        r = await self._get(
            "/search",
            params=build_search_params(q, options),
            user_agent=options.user_agent,
            timeout_s=options.timeout_s,
        )
        if not r.is_success:
            raise BackendError(r.status_code, r.text)

        try:
            payload = r.json()
        except ValueError as e:
            raise BackendError(
                r.status_code, r.text, message="malformed search response"
            ) from e

        suggestions: list[str] = []
        if isinstance(payload, dict):
            records = payload.get("results")
            raw_suggestions = payload.get("suggestions")
            if isinstance(raw_suggestions, list):
                suggestions = [s for s in raw_suggestions if isinstance(s, str)]
        else:
            records = payload
        if not isinstance(records, list):
            raise BackendError(
                r.status_code, r.text, message="search response has no result list"
            )

        results: list[SearchResult] = []
        for i, record in enumerate(records):
            item = parse_result(record)
            if item is None:
                logger.debug(f"skip malformed result #{i}: {record!r:.200}")
                continue
            results.append(item)

        # backendの順序(関連度順)を保ったまま切り詰める。並べ替えはしない
        if len(results) > options.max_results:
            logger.info(
                f"Results truncated from {len(results)} to {options.max_results}"
            )
            results = results[: options.max_results]

        logger.info(f"Successfully found {len(results)} results for {q!r}")
        return SearchResponse(query=q, results=results, suggestions=suggestions)

    async def test_connection(self, timeout_s: float = 5.0) -> bool:
        r = await self._get(
            "/config", user_agent=self._user_agent, timeout_s=timeout_s
        )
        return r.is_success

    async def get_engines(
        self,
        engine_filter: EngineFilter = EngineFilter.ENABLED,
        timeout_s: float = 15.0,
    ) -> dict[str, dict]:
        r = await self._get(
            "/config", user_agent=self._user_agent, timeout_s=timeout_s
        )
        if not r.is_success:
            raise BackendError(r.status_code, r.text, message="unable to get engines")
        try:
            config = r.json()
        except ValueError as e:
            raise BackendError(
                r.status_code, r.text, message="malformed config response"
            ) from e

        engines = config.get("engines") if isinstance(config, dict) else None
        if not isinstance(engines, list):
            raise BackendError(r.status_code, message="unexpected config format")

        out: dict[str, dict] = {}
        for engine in engines:
            if not isinstance(engine, dict):
                continue
            name = engine.get("name")
            if not isinstance(name, str):
                continue
            enabled = engine.get("enabled")
            if engine_filter == EngineFilter.ENABLED:
                include = enabled is True
            elif engine_filter == EngineFilter.DISABLED:
                # enabled が無いものは有効扱い
                include = enabled is False
            else:
                include = True
            if include:
                out[name] = engine
        return out
