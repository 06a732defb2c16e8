from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .models import (
    DEFAULT_USER_AGENT,
    FetchOptions,
    SafeSearch,
    SearchOptions,
)
from .url_utils import UrlSafetyPolicy

from logging import getLogger, getLevelName

logger = getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080"


@dataclass(frozen=True)
class GatewayConfig:
    """起動時に一度だけ作り、各コンポーネントに渡す。呼び出しごとに環境変数は読まない。"""

    base_url: str = DEFAULT_BASE_URL
    search: SearchOptions = SearchOptions()
    fetch: FetchOptions = FetchOptions()
    log_level: str = "INFO"


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    v = env.get(name)
    return default if v is None else v


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    v = env.get(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        logger.warning(f"{name}={v!r} is not an integer, using {default}")
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    v = env.get(name)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        logger.warning(f"{name}={v!r} is not a number, using {default}")
        return default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    v = env.get(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _env_log_level(env: Mapping[str, str], name: str, default: str) -> str:
    v = env.get(name)
    if v is None:
        return default
    level = v.strip().upper()
    # 既知のレベル名なら getLevelName は int を返す
    if not isinstance(getLevelName(level), int):
        logger.warning(f"{name}={v!r} is not a log level, using {default}")
        return default
    return level


def split_csv(value: str) -> tuple[str, ...]:
    return tuple(s.strip() for s in value.split(",") if s.strip())


def parse_safe_search(value: str) -> SafeSearch:
    # "0" → none, "2" → strict, それ以外は moderate
    v = value.strip()
    if v == "0":
        return SafeSearch.NONE
    if v == "2":
        return SafeSearch.STRICT
    return SafeSearch.MODERATE


def load_config(env: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    env = os.environ if env is None else env

    user_agent = _env_str(env, "SEARXNG_USER_AGENT", DEFAULT_USER_AGENT)
    search = SearchOptions(
        engines=split_csv(_env_str(env, "SEARXNG_DEFAULT_ENGINES", "")),
        categories=split_csv(_env_str(env, "SEARXNG_DEFAULT_CATEGORIES", "")),
        language=_env_str(env, "SEARXNG_DEFAULT_LANGUAGE", "en"),
        safe_search=parse_safe_search(_env_str(env, "SEARXNG_SAFE_SEARCH", "0")),
        max_results=max(0, _env_int(env, "SEARXNG_NUM_RESULTS", 5)),
        user_agent=user_agent,
        timeout_s=_env_float(env, "SEARXNG_TIMEOUT_S", 15.0),
    )

    block_private = _env_bool(env, "BROWSE_BLOCK_PRIVATE_NETWORKS", False)
    fetch = FetchOptions(
        follow_redirects=_env_bool(env, "BROWSE_FOLLOW_REDIRECTS", False),
        max_redirects=max(0, _env_int(env, "BROWSE_MAX_REDIRECTS", 10)),
        user_agent=_env_str(env, "BROWSE_USER_AGENT", user_agent),
        timeout_s=_env_float(env, "BROWSE_TIMEOUT_S", 20.0),
        safety=UrlSafetyPolicy() if block_private else None,
    )

    cfg = GatewayConfig(
        base_url=_env_str(env, "SEARXNG_BASE_URL", DEFAULT_BASE_URL),
        search=search,
        fetch=fetch,
        log_level=_env_log_level(env, "LOG_LEVEL", "INFO"),
    )
    log_config(cfg)
    return cfg


def log_config(cfg: GatewayConfig) -> None:
    logger.info(f"SearXNG base_url: {cfg.base_url}")
    logger.info(f"SearXNG default_engines: {list(cfg.search.engines)}")
    logger.info(f"SearXNG default_categories: {list(cfg.search.categories)}")
    logger.info(f"SearXNG language: {cfg.search.language}")
    logger.info(f"SearXNG safe_search: {cfg.search.safe_search.name}")
    logger.info(f"SearXNG num_results: {cfg.search.max_results}")
    logger.info(f"SearXNG user_agent: {cfg.search.user_agent}")
    logger.info(
        f"browse follow_redirects: {cfg.fetch.follow_redirects} "
        f"(max {cfg.fetch.max_redirects}), "
        f"block_private_networks: {cfg.fetch.safety is not None}"
    )
