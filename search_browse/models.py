from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional

from .url_utils import UrlSafetyPolicy

VERSION = "0.1.0"
DEFAULT_USER_AGENT = f"search-browse/{VERSION}"


class SafeSearch(IntEnum):
    NONE = 0
    MODERATE = 1
    STRICT = 2


class TimeRange(str, Enum):
    # SearXNGのtime_range相当。ANYはパラメータ自体を送らない
    ANY = ""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class EngineFilter(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    ALL = "all"


@dataclass(frozen=True)
class SearchOptions:
    # 空tupleならbackend側のデフォルトに任せる
    engines: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    language: str = "en"
    safe_search: SafeSearch = SafeSearch.NONE
    max_results: int = 5
    user_agent: str = DEFAULT_USER_AGENT
    time_range: TimeRange = TimeRange.ANY
    page: int = 1
    timeout_s: float = 15.0


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    content: str = ""
    # backendの並び順の参考値。ローカルで並べ替えには使わない
    score: float = 0.0
    engine: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class SearchResponse:
    query: str
    results: list[SearchResult] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "results": [
                {
                    "title": r.title,
                    "url": r.url,
                    "content": r.content,
                    "category": r.category,
                }
                for r in self.results
            ],
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class FetchOptions:
    follow_redirects: bool = False
    # follow_redirects=False のときは無視される
    max_redirects: int = 10
    user_agent: str = DEFAULT_USER_AGENT
    timeout_s: float = 20.0
    # Noneなら宛先チェックなし（hostアプリ側のsandboxに任せる）
    safety: Optional[UrlSafetyPolicy] = None


@dataclass(frozen=True)
class PageFetchResult:
    requested_url: str
    final_url: str
    status_code: int
    content_type: Optional[str]
    body: bytes
    # Content-Typeヘッダのcharset（なければNone）
    charset: Optional[str] = None


@dataclass(frozen=True)
class FetchResult:
    final_url: str
    content_type: str
    normalized_text: str
    title: str = ""


@dataclass(frozen=True)
class ToolDescription:
    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool = False
    mime_type: Optional[str] = None
