from __future__ import annotations
from typing import Optional

# エラー本文は長くなりがちなので先頭だけ保持する
BODY_EXCERPT_CHARS = 200


def body_excerpt(text: str, limit: int = BODY_EXCERPT_CHARS) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class GatewayError(RuntimeError):
    """search / browse が呼び出し元に返すエラーの基底クラス。内部リトライはしない。"""


class InvalidInput(GatewayError):
    pass


class UrlSafetyError(InvalidInput):
    pass


class TransportError(GatewayError):
    pass


class BackendError(GatewayError):
    def __init__(self, status: int, body: str = "", message: Optional[str] = None):
        self.status = status
        self.body = body_excerpt(body)
        detail = message or f"HTTP {status}"
        if self.body:
            detail = f"{detail} - {self.body}"
        super().__init__(detail)


class RedirectNotFollowed(GatewayError):
    def __init__(self, status: int, location: str):
        self.status = status
        self.location = location
        super().__init__(f"redirect not followed ({status}): {location}")


class TooManyRedirects(GatewayError):
    def __init__(self, max_redirects: int, url: str):
        self.max_redirects = max_redirects
        self.url = url
        super().__init__(f"too many redirects (max {max_redirects}) at {url}")


class InvalidRedirectTarget(GatewayError):
    def __init__(self, location: str):
        self.location = location
        super().__init__(f"invalid redirect target: {location!r}")
