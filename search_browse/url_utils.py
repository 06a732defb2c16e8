from __future__ import annotations
import ipaddress
import urllib.parse
from dataclasses import dataclass
from typing import Optional, Tuple

HTTP_SCHEMES = ("http", "https")


def is_ip_literal(host: str) -> bool:
    h = host.strip("[]")
    try:
        ipaddress.ip_address(h)
        return True
    except ValueError:
        return False


def is_absolute_http_url(url: str) -> bool:
    """
    http/https のスキームとhostを持つ絶対URLかどうか。
    - 相対URL、mailto:, javascript: などは False
    - ポート番号が壊れているものも False
    """
    try:
        u = urllib.parse.urlsplit(url.strip())
        u.port  # 不正なポートはここで ValueError
    except ValueError:
        return False
    return (u.scheme or "").lower() in HTTP_SCHEMES and bool(u.hostname)


def is_well_formed_uri(url: str) -> bool:
    # 検索結果のURL用。スキームが何であれ scheme + netloc が揃っていればよい
    try:
        u = urllib.parse.urlsplit(url.strip())
    except ValueError:
        return False
    return bool(u.scheme) and bool(u.netloc)


def resolve_location(current_url: str, location: str) -> Optional[str]:
    """
    リダイレクト先(Location)を現在のURL基準で解決する。
    解決結果がhttp/httpsの絶対URLにならなければ None。
    """
    location = location.strip()
    if not location:
        return None
    try:
        resolved = urllib.parse.urljoin(current_url, location)
    except ValueError:
        return None
    return resolved if is_absolute_http_url(resolved) else None


def is_localhost(host: str) -> bool:
    h = host.lower().strip("[]")
    return h in {"localhost", "localhost.localdomain"} or h.endswith(".localhost")


@dataclass(frozen=True)
class UrlSafetyPolicy:
    allowed_schemes: Tuple[str, ...] = HTTP_SCHEMES
    block_private_ips: bool = True
    block_link_local: bool = True
    block_loopback: bool = True
    block_multicast: bool = True
    block_reserved: bool = True


def ip_is_blocked(
    ip: ipaddress.IPv4Address | ipaddress.IPv6Address, policy: UrlSafetyPolicy
) -> bool:
    if policy.block_loopback and ip.is_loopback:
        return True
    if policy.block_private_ips and ip.is_private:
        return True
    if policy.block_link_local and ip.is_link_local:
        return True
    if policy.block_multicast and ip.is_multicast:
        return True
    if policy.block_reserved and ip.is_reserved:
        return True
    # “unspecified” も実質危険
    if ip.is_unspecified:
        return True
    return False
