from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from brief_coverage.scrapers.fetcher_config import HTML_ACCEPT, DetailFetcherConfig
from brief_coverage.utils import clean_text, parse_datetime_utc, to_iso

logger = logging.getLogger(__name__)

_BAD_MARKERS = [
    "enable javascript",
    "please enable cookies",
    "subscribe to continue",
    "sign in to continue",
    "access denied",
]

_JS_MARKERS = ["(function", "function(", "var ", "const ", "window.", "document.", "=>"]


@dataclass(frozen=True)
class DetailError:
    kind: str
    message: str
    url: str

    def to_note(self) -> str:
        safe = (self.message or "").replace("\n", " ").replace("|", " ").strip()
        return f"detail_error:{self.kind}:{safe}" if safe else f"detail_error:{self.kind}"


@dataclass(frozen=True)
class DetailResult:
    requested_url: str
    final_url: str = ""
    status: int = 0
    content: str = ""
    image_url: str = ""
    published_at: str = ""
    canonical_url: str = ""
    notes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400 and not any(n.startswith(("detail_error", "non_html")) for n in self.notes)


def is_html_content_type(content_type: str) -> bool:
    ct = (content_type or "").lower()
    if not ct:
        return True
    return "text/html" in ct or "application/xhtml+xml" in ct


def extract_canonical_url(soup: BeautifulSoup, base_url: str) -> str:
    link = soup.find("link", rel="canonical")
    if link and link.get("href"):
        return urljoin(base_url, link.get("href"))
    og = soup.find("meta", property="og:url")
    if og and og.get("content"):
        return urljoin(base_url, og.get("content"))
    return ""


def extract_image_url(soup: BeautifulSoup, base_url: str) -> str:
    for attrs in ({"property": "og:image"}, {"name": "twitter:image"}, {"property": "og:image:url"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return urljoin(base_url, tag.get("content").strip())
    return ""


def extract_published_at(soup: BeautifulSoup) -> str:
    for attrs in (
        {"property": "article:published_time"},
        {"name": "pubdate"},
        {"name": "date"},
        {"itemprop": "datePublished"},
    ):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            dt = parse_datetime_utc(tag.get("content"))
            if dt:
                return to_iso(dt)
    time_tag = soup.find("time", datetime=True)
    if time_tag:
        dt = parse_datetime_utc(time_tag.get("datetime") or "")
        if dt:
            return to_iso(dt)
    return ""


def text_quality_score(tag) -> float:
    text = clean_text(tag.get_text(" "))
    length = len(text)
    if length < 120:
        return -1.0

    link_text_len = sum(len(clean_text(a.get_text(" "))) for a in tag.find_all("a"))
    link_ratio = link_text_len / max(1, length)
    punct = sum(text.count(c) for c in [".", "?", "!"])
    punct_density = punct / max(1, length)

    score = math.log(length)
    score += min(0.8, punct_density * 50)
    score -= link_ratio * 3.5
    if link_ratio > 0.35:
        score -= 2.0
    return score


def extract_main_text(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript", "iframe", "form"]):
        tag.decompose()
    for tag in soup.find_all(["header", "nav", "footer", "aside"]):
        tag.decompose()

    candidates = []
    for tag_name in ["article", "main", "section", "div"]:
        for tag in soup.find_all(tag_name):
            score = text_quality_score(tag)
            if score > 0:
                candidates.append((score, tag))
    if candidates:
        candidates.sort(key=lambda x: x[0], reverse=True)
        return clean_text(candidates[0][1].get_text(" "))

    body = soup.body or soup
    return clean_text(body.get_text(" "))


def looks_like_article_text(text: str, min_chars: int = 80) -> bool:
    t = clean_text(text)
    if len(t) < min_chars:
        return False
    if sum(1 for m in _JS_MARKERS if m in t) >= 3:
        return False
    lowered = t.lower()
    return not any(m in lowered for m in _BAD_MARKERS)


def parse_article_html(html: str, base_url: str, *, max_chars: int, min_text_chars: int) -> dict[str, str]:
    soup = BeautifulSoup(html or "", "html.parser")
    out = {
        "canonical_url": extract_canonical_url(soup, base_url),
        "image_url": extract_image_url(soup, base_url),
        "published_at": extract_published_at(soup),
    }
    text = extract_main_text(soup)
    out["content"] = text[:max_chars] if looks_like_article_text(text, min_text_chars) else ""
    return out


class ArticleDetailFetcher:
    """Fetch one publisher page and pull text, image and publish date out of it."""

    def __init__(self, *, client: httpx.AsyncClient, config: Optional[DetailFetcherConfig] = None) -> None:
        self._client = client
        self._config = config or DetailFetcherConfig()

    async def fetch(self, url: str) -> DetailResult:
        try:
            resp = await self._client.get(
                url,
                headers={"User-Agent": self._config.user_agent, "Accept": HTML_ACCEPT},
                timeout=self._config.timeout_sec,
                follow_redirects=True,
            )
        except Exception as e:
            err = DetailError(type(e).__name__, str(e), url)
            logger.warning("detail_fetch_error: url=%s error=%s", url, err.kind)
            return DetailResult(requested_url=url, notes=[err.to_note()])

        final_url = str(resp.url)
        status = resp.status_code
        if status >= 400:
            logger.info("detail_fetch_http_error: url=%s status=%s", url, status)
            return DetailResult(requested_url=url, final_url=final_url, status=status, notes=[f"http_error:{status}"])

        content_type = resp.headers.get("content-type", "")
        if not is_html_content_type(content_type):
            return DetailResult(
                requested_url=url,
                final_url=final_url,
                status=status,
                notes=[f"non_html_content_type:{content_type}"],
            )

        try:
            parsed = parse_article_html(
                resp.text,
                final_url,
                max_chars=self._config.max_chars,
                min_text_chars=self._config.min_text_chars,
            )
        except Exception as e:
            err = DetailError("parse_error", str(e), url)
            logger.warning("detail_parse_error: url=%s", url)
            return DetailResult(requested_url=url, final_url=final_url, status=status, notes=[err.to_note()])

        notes = [] if parsed["content"] else ["short_or_blocked_text"]
        logger.debug("detail_fetch_done: url=%s len=%s", url, len(parsed["content"]))
        return DetailResult(
            requested_url=url,
            final_url=final_url,
            status=status,
            content=parsed["content"],
            image_url=parsed["image_url"],
            published_at=parsed["published_at"],
            canonical_url=parsed["canonical_url"],
            notes=notes,
        )
