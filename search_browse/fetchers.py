from __future__ import annotations
import asyncio
import socket
import urllib.parse
import ipaddress

import httpx

from .errors import (
    BackendError,
    InvalidInput,
    InvalidRedirectTarget,
    RedirectNotFollowed,
    TooManyRedirects,
    TransportError,
    UrlSafetyError,
)
from .interfaces import PageFetcher
from .models import FetchOptions, PageFetchResult
from .url_utils import (
    UrlSafetyPolicy,
    is_absolute_http_url,
    is_ip_literal,
    is_localhost,
    ip_is_blocked,
    resolve_location,
)

from logging import getLogger

logger = getLogger(__name__)


async def _resolve_host_ips(
    host: str,
) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    # asyncio.getaddrinfo でDNS解決（テストでモックしやすい）
    infos = await asyncio.get_running_loop().getaddrinfo(
        host, None, type=socket.SOCK_STREAM
    )
    ips: list[ipaddress.IPv4Address | ipaddress.IPv6Address] = []
    for fam, _, _, _, sockaddr in infos:
        if fam in (socket.AF_INET, socket.AF_INET6):
            ips.append(ipaddress.ip_address(sockaddr[0]))
    return ips


async def validate_url_safe(url: str, policy: UrlSafetyPolicy) -> None:
    u = urllib.parse.urlsplit(url)
    scheme = (u.scheme or "").lower()
    if scheme not in policy.allowed_schemes:
        raise UrlSafetyError(f"scheme not allowed: {scheme}")

    host = u.hostname or ""
    if not host:
        raise UrlSafetyError("missing host")

    # localhost / IP直打ち拒否
    if is_localhost(host):
        raise UrlSafetyError("localhost is blocked")

    if is_ip_literal(host):
        raise UrlSafetyError("IP literal is blocked")

    # DNS解決後のIPレンジ拒否
    try:
        ips = await _resolve_host_ips(host)
    except OSError as e:
        raise TransportError(f"DNS resolution failed for {host}: {e}") from e
    if not ips:
        raise UrlSafetyError("DNS resolution failed")

    for ip in ips:
        if ip_is_blocked(ip, policy):
            raise UrlSafetyError(f"resolved IP is blocked: {ip}")


# 生のLocationを request.extensions に残すためのキー
_RAW_REDIRECT_KEY = "search_browse.raw_redirect"


async def _remember_redirect(response: httpx.Response) -> None:
    # httpxはfollow_redirects=Falseでも next_request を作るためにLocationを解釈し、
    # 解釈できないLocationだと get() 自体が例外になる。その前に生の値を残しておく
    if response.has_redirect_location:
        response.request.extensions[_RAW_REDIRECT_KEY] = (
            response.status_code,
            response.headers["location"],
        )


def _parses_as_httpx_url(url: str) -> bool:
    try:
        httpx.URL(url)
    except httpx.InvalidURL:
        return False
    return True


class HttpxPageFetcher(PageFetcher):
    """
    1 URL を GET する。リダイレクトは httpx に任せず、ここで1ホップずつ辿る。
    - follow_redirects=False: 3xx は RedirectNotFollowed
    - follow_redirects=True: max_redirects ホップまで。超えたら TooManyRedirects
    最終レスポンスが2xx以外なら BackendError。
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        hooks = client.event_hooks["response"]
        if _remember_redirect not in hooks:
            hooks.append(_remember_redirect)

    def _headers(self, options: FetchOptions) -> dict[str, str]:
        return {
            "User-Agent": options.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }

    def _next_hop(
        self,
        status: int,
        location: str,
        current_url: str,
        hops: int,
        options: FetchOptions,
    ) -> str:
        """リダイレクトポリシーを適用して次のURLを返す。辿れなければ例外。"""
        if not options.follow_redirects:
            raise RedirectNotFollowed(status, location)
        if hops > options.max_redirects:
            raise TooManyRedirects(options.max_redirects, current_url)

        next_url = resolve_location(current_url, location)
        if next_url is None or not _parses_as_httpx_url(next_url):
            raise InvalidRedirectTarget(location)
        logger.info(f"redirect {status}: {current_url} -> {next_url}")
        return next_url

    async def fetch(
        self, url: str, options: FetchOptions = FetchOptions()
    ) -> PageFetchResult:
        url = (url or "").strip()
        # urlsplitは通るがhttpxが受け付けないURL（hostに空白など）もここで弾く
        if not is_absolute_http_url(url) or not _parses_as_httpx_url(url):
            raise InvalidInput(f"not an absolute http(s) URL: {url!r}")
        if options.follow_redirects and options.max_redirects < 0:
            raise InvalidInput(
                f"max_redirects must be >= 0: {options.max_redirects}"
            )

        current_url = url
        hops = 0
        while True:
            if options.safety is not None:
                await validate_url_safe(current_url, options.safety)

            logger.info(f"Browsing: {current_url}")
            request = self._client.build_request(
                "GET",
                current_url,
                headers=self._headers(options),
                timeout=options.timeout_s,
            )
            try:
                r = await self._client.send(request, follow_redirects=False)
            except (httpx.InvalidURL, httpx.RemoteProtocolError) as e:
                raw = request.extensions.get(_RAW_REDIRECT_KEY)
                if raw is None:
                    raise TransportError(
                        f"request to {current_url} failed: {e!r}"
                    ) from e
                # current_url は検証済みなので、原因はレスポンスのLocation
                status, location = raw
                hops += 1
                self._next_hop(status, location, current_url, hops, options)
                raise InvalidRedirectTarget(location) from e
            except httpx.RequestError as e:
                # 接続失敗・タイムアウト・壊れたgzipなど
                raise TransportError(f"request to {current_url} failed: {e!r}") from e

            if r.has_redirect_location:
                hops += 1
                current_url = self._next_hop(
                    r.status_code, r.headers["location"], current_url, hops, options
                )
                continue

            if not r.is_success:
                raise BackendError(r.status_code, r.text)

            return PageFetchResult(
                requested_url=url,
                final_url=current_url,
                status_code=r.status_code,
                content_type=r.headers.get("content-type"),
                body=r.content,
                charset=r.charset_encoding,
            )
