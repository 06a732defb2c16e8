from __future__ import annotations
import re
from typing import Optional

from bs4 import BeautifulSoup, Comment
from bs4.dammit import EncodingDetector
from markdownify import markdownify as md

from .interfaces import HtmlCleaner, HtmlToMarkdownConverter


# 中身ごと捨てるタグ
_NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

# strip_boilerplate=True のときだけ落とす（過剰に消すと本文も消えるので既定はoff）
_BOILERPLATE_SELECTORS = [
    "nav",
    "footer",
    "aside",
    # cookieバナーっぽいもの
    "[id*='cookie']",
    "[class*='cookie']",
    "[id*='consent']",
    "[class*='consent']",
    "[aria-label*='cookie']",
    "[aria-label*='consent']",
    "[role='dialog']",
]

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
_HTML_SNIFF_RE = re.compile(rb"^\s*(<!--.*?-->\s*)*<(!doctype\s+html|html)", re.I | re.S)


def _strip_non_content(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(_NON_CONTENT_TAGS):
        # 親ごと消えたもの(noscript内のscriptなど)はスキップ
        if not tag.decomposed:
            tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()


def _strip_boilerplate(soup: BeautifulSoup) -> None:
    for sel in _BOILERPLATE_SELECTORS:
        for tag in soup.select(sel):
            if not tag.decomposed:
                tag.decompose()


class SimpleHtmlCleaner(HtmlCleaner):
    """
    script/style/コメントを除去し、body（なければ文書全体）を返す。
    リンク(aタグ)は残す → markdown上で [text](href) として残る。
    """

    def __init__(self, strip_boilerplate: bool = False) -> None:
        self._strip_boilerplate = strip_boilerplate

    def clean(self, html: str) -> tuple[str, str]:
        soup = BeautifulSoup(html, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else ""

        _strip_non_content(soup)
        if self._strip_boilerplate:
            _strip_boilerplate(soup)

        # titleは別に返すので本文からは外す。headも本文にならない
        if soup.title:
            soup.title.decompose()
        if soup.head:
            soup.head.decompose()

        main = soup.body or soup
        return title, str(main)


class MarkdownifyConverter(HtmlToMarkdownConverter):
    def convert(self, html: str) -> str:
        return md(html, heading_style="ATX", bullets="-")


def normalize_markdown(text: str) -> str:
    text = text.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def is_html(content_type: Optional[str], body: bytes = b"") -> bool:
    ct = (content_type or "").lower()
    if ct:
        return any(t in ct for t in _HTML_CONTENT_TYPES)
    # Content-Typeが無いときだけ中身で判定
    return bool(_HTML_SNIFF_RE.match(body[:1024]))


def decode_body(body: bytes, charset: Optional[str], html: bool) -> str:
    """
    charsetの優先順位: Content-Type の charset → (HTMLなら) <meta charset> → UTF-8。
    デコードできないバイトは置換文字にする。
    """
    candidates: list[str] = []
    if charset:
        candidates.append(charset)
    if html:
        declared = EncodingDetector.find_declared_encoding(body, is_html=True)
        if declared:
            candidates.append(declared)

    for enc in candidates:
        try:
            return body.decode(enc)
        except (LookupError, UnicodeDecodeError):
            continue
    return body.decode("utf-8", errors="replace")
