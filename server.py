from __future__ import annotations

import dataclasses
from typing import Any, Dict, List, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from search_browse.config import load_config
from search_browse.errors import (
    BackendError,
    GatewayError,
    InvalidInput,
    InvalidRedirectTarget,
    RedirectNotFollowed,
    TooManyRedirects,
    TransportError,
)
from search_browse.gateway import SearchGateway
from search_browse.models import SafeSearch, TimeRange

from logging import getLogger, basicConfig

logger = getLogger("search_browse.server")


# -----------------------
# Request / Response
# -----------------------


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)

    # optional filters（未指定なら起動時設定のデフォルト）
    max_results: Optional[int] = Field(default=None, ge=0, le=50)
    engines: Optional[List[str]] = Field(
        default=None, description="SearXNG engine names"
    )
    categories: Optional[List[str]] = Field(
        default=None, description="SearXNG categories"
    )
    language: Optional[str] = Field(default=None, description="e.g. en, ja")
    safe_search: Optional[SafeSearch] = Field(default=None, description="0/1/2")
    time_range: Optional[TimeRange] = Field(
        default=None, description="''/day/week/month/year"
    )
    page: Optional[int] = Field(default=None, ge=1)


class ResultOut(BaseModel):
    title: str
    url: str
    content: str
    score: float
    engine: Optional[str] = None
    category: Optional[str] = None


class SearchResponseOut(BaseModel):
    query: str
    results: List[ResultOut]
    suggestions: List[str]


class BrowseRequest(BaseModel):
    url: str = Field(..., min_length=1)
    follow_redirects: Optional[bool] = None
    max_redirects: Optional[int] = Field(default=None, ge=0)


class BrowseResponseOut(BaseModel):
    final_url: str
    content_type: str
    title: str
    markdown: str


class ToolOut(BaseModel):
    name: str
    description: str
    input_schema: Dict[str, Any]


class ToolResultOut(BaseModel):
    is_error: bool
    text: str
    mime_type: Optional[str] = None


# -----------------------
# App + Lifespan
# -----------------------

app = FastAPI(title="search-browse-server")

# shared singletons
_http_client: httpx.AsyncClient | None = None
_gateway: SearchGateway | None = None


@app.on_event("startup")
async def startup() -> None:
    global _http_client, _gateway

    cfg = load_config()
    basicConfig(level=cfg.log_level, format="%(name)s [%(levelname)s]: %(message)s")

    _http_client = httpx.AsyncClient()
    _gateway = SearchGateway.from_client(_http_client, cfg)
    await _gateway.log_available_engines()


@app.on_event("shutdown")
async def shutdown() -> None:
    global _http_client, _gateway
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    _gateway = None


def _status_for(e: GatewayError) -> int:
    if isinstance(e, InvalidInput):
        return 400
    if isinstance(e, TransportError):
        return 504
    if isinstance(
        e, (BackendError, RedirectNotFollowed, TooManyRedirects, InvalidRedirectTarget)
    ):
        return 502
    return 500


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, e: GatewayError) -> JSONResponse:
    body: Dict[str, Any] = {"error": type(e).__name__, "detail": str(e)}
    if isinstance(e, BackendError):
        body["status"] = e.status
    if isinstance(e, RedirectNotFollowed):
        body["status"] = e.status
        body["location"] = e.location
    logger.warning(f"{request.url.path}: {body['error']}: {e}")
    return JSONResponse(status_code=_status_for(e), content=body)


def _get_gateway() -> SearchGateway:
    assert _gateway is not None
    return _gateway


@app.post("/search", response_model=SearchResponseOut)
async def search(req: SearchRequest) -> SearchResponseOut:
    """
    POST /search
    body: { "query": "...", "max_results": 5, ... }
    """
    gateway = _get_gateway()

    # 指定されたものだけ起動時デフォルトを上書き
    overrides: Dict[str, Any] = {}
    if req.max_results is not None:
        overrides["max_results"] = req.max_results
    if req.engines is not None:
        overrides["engines"] = tuple(req.engines)
    if req.categories is not None:
        overrides["categories"] = tuple(req.categories)
    if req.language is not None:
        overrides["language"] = req.language
    if req.safe_search is not None:
        overrides["safe_search"] = req.safe_search
    if req.time_range is not None:
        overrides["time_range"] = req.time_range
    if req.page is not None:
        overrides["page"] = req.page
    options = dataclasses.replace(gateway.config.search, **overrides)

    resp = await gateway.search(req.query, options)
    return SearchResponseOut(
        query=resp.query,
        results=[ResultOut(**dataclasses.asdict(r)) for r in resp.results],
        suggestions=resp.suggestions,
    )


@app.post("/browse", response_model=BrowseResponseOut)
async def browse(req: BrowseRequest) -> BrowseResponseOut:
    gateway = _get_gateway()

    overrides: Dict[str, Any] = {}
    if req.follow_redirects is not None:
        overrides["follow_redirects"] = req.follow_redirects
    if req.max_redirects is not None:
        overrides["max_redirects"] = req.max_redirects
    options = dataclasses.replace(gateway.config.fetch, **overrides)

    result = await gateway.browse(req.url, options)
    return BrowseResponseOut(
        final_url=result.final_url,
        content_type=result.content_type,
        title=result.title,
        markdown=result.normalized_text,
    )


@app.get("/tools", response_model=List[ToolOut])
async def list_tools() -> List[ToolOut]:
    gateway = _get_gateway()
    return [ToolOut(**dataclasses.asdict(t)) for t in gateway.describe_tools()]


@app.post("/tools/{name}", response_model=ToolResultOut)
async def call_tool(name: str, arguments: Dict[str, Any]) -> ToolResultOut:
    gateway = _get_gateway()
    result = await gateway.call_tool(name, arguments)
    return ToolResultOut(
        is_error=result.is_error, text=result.text, mime_type=result.mime_type
    )


@app.get("/health")
async def health() -> Dict[str, Any]:
    gateway = _get_gateway()
    try:
        ok = await gateway.test_connection()
    except TransportError as e:
        logger.warning(f"health check failed: {e}")
        ok = False
    return {"ok": ok, "backend": gateway.config.base_url}
