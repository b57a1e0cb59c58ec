"""Citation and factuality checks for generated briefs."""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence

from brief_coverage.utils import clean_text, dedupe_keep_order, source_url

MIN_CITED_URLS = 5
TITLE_MIN_CHARS = 10
TITLE_MAX_CHARS = 150
SUMMARY_MIN_CHARS = 20
BODY_MIN_CHARS = 200

_MARKDOWN_LINK_RE = re.compile(r"\[[^\]]*\]\((https?://[^)\s]+)\)")
_RAW_URL_RE = re.compile(r"https?://[^\s)\]>\"'<]+")
_URL_TRAILING = ".,;:!?"

_SOURCE_TAG_RE = re.compile(r"\(source:\s*(?:articleIndex\s*)?(\d+)\)\s*\.?\s*$", re.IGNORECASE)
_ANALYSIS_TAG_RE = re.compile(r"\(analysis\)\s*\.?\s*$", re.IGNORECASE)
_BRACKET_CITATION_RE = re.compile(r"\s*\[\d+\]\s*")
_NUMERIC_TOKEN_RE = re.compile(
    r"\bQ[1-4]\s?\d{4}\b"
    r"|[$€£¥]\s?\d[\d,]*(?:\.\d+)?"
    r"|\d[\d,]*(?:\.\d+)?\s?%"
    r"|\b\d+(?:\.\d+)?\s?(?:million|billion|trillion|bpd|mmbtu|bbl|tcf|bcf|tons?|tonnes?|mw|gw)\b"
    r"|\b(?:19|20)\d{2}\b",
    re.IGNORECASE,
)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z\"'(\[])")
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+")


class BriefValidationError(ValueError):
    """Raised when a brief must not be published. `issues` lists every reason."""

    def __init__(self, issues: Sequence[str]) -> None:
        self.issues = list(issues)
        super().__init__("; ".join(self.issues) or "brief_invalid")


def normalize_url(url: str) -> str:
    return (url or "").strip().rstrip("/").lower()


def extract_urls(text: str) -> list[str]:
    """URLs from markdown links and bare links, in order of appearance, deduped."""
    if not text:
        return []
    found: list[tuple[int, str]] = []
    for m in _MARKDOWN_LINK_RE.finditer(text):
        found.append((m.start(1), m.group(1)))
    for m in _RAW_URL_RE.finditer(text):
        found.append((m.start(), m.group(0)))
    found.sort(key=lambda x: x[0])
    urls = [u.rstrip(_URL_TRAILING) for _, u in found]
    return dedupe_keep_order([u for u in urls if u])


def _strip_links(text: str) -> str:
    text = _MARKDOWN_LINK_RE.sub(" ", text)
    return _RAW_URL_RE.sub(" ", text)


def numeric_tokens(text: str) -> list[str]:
    stripped = _SOURCE_TAG_RE.sub("", _BRACKET_CITATION_RE.sub(" ", _strip_links(text or "")))
    stripped = _ANALYSIS_TAG_RE.sub("", stripped)
    return dedupe_keep_order([m.group(0).strip() for m in _NUMERIC_TOKEN_RE.finditer(stripped)])


def claim_sentences(body: str) -> list[str]:
    """Prose sentences of a markdown body. Headings, quotes and table rows are skipped."""
    sentences: list[str] = []
    for raw in (body or "").splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ">", "|")):
            continue
        line = _LIST_MARKER_RE.sub("", line)
        for part in _SENTENCE_SPLIT_RE.split(line):
            part = clean_text(part)
            if part:
                sentences.append(part)
    return sentences


def _normalize_for_match(text: str) -> str:
    return re.sub(r"[\s,]+", "", (text or "").lower())


def content_supports(tokens: Iterable[str], content: str) -> bool:
    """True when every numeric token appears in `content`, ignoring case, commas and spacing."""
    haystack = _normalize_for_match(content)
    return all(_normalize_for_match(token) in haystack for token in tokens)


def _article_contents(source_articles: Sequence[Mapping[str, Any]]) -> list[str]:
    return [str(article.get("content") or "") for article in source_articles]


def _check_claims(body: str, contents: Sequence[str]) -> list[str]:
    issues: list[str] = []
    for sentence in claim_sentences(body):
        tokens = numeric_tokens(sentence)
        if not tokens:
            continue
        if _ANALYSIS_TAG_RE.search(sentence):
            continue
        tag = _SOURCE_TAG_RE.search(sentence)
        if tag is None:
            issues.append(f"FACTCHECK: unsupported claim ({', '.join(tokens)}): {sentence[:120]}")
            continue
        index = int(tag.group(1))
        if not 1 <= index <= len(contents):
            issues.append(f"FACTCHECK: claim cites articleIndex {index} outside 1..{len(contents)}: {sentence[:120]}")
        elif not content_supports(tokens, contents[index - 1]):
            issues.append(
                f"FACTCHECK: claim ({', '.join(tokens)}) not found in articleIndex {index} content: {sentence[:120]}"
            )
    return issues


def _selected_article_texts(article: Mapping[str, Any]) -> list[tuple[str, str]]:
    texts = [(name, article.get(name)) for name in ("briefContent", "categoryImportance")]
    texts.extend((f"keyMetrics[{n}]", metric) for n, metric in enumerate(article.get("keyMetrics") or []))
    return [(name, value) for name, value in texts if isinstance(value, str) and value.strip()]


def _check_selected_articles(entries: Iterable[Any], contents: Sequence[str]) -> list[str]:
    """Numbers in selected-article fields must appear in the article they are anchored to.

    A trailing source tag wins over the entry's sourceIndex. Text with neither
    anchor is read as interpretation and left alone.
    """
    issues: list[str] = []
    for pos, entry in enumerate(entries or []):
        if not isinstance(entry, Mapping):
            continue
        anchor = entry.get("sourceIndex")
        for name, text in _selected_article_texts(entry):
            tokens = numeric_tokens(text)
            if not tokens or _ANALYSIS_TAG_RE.search(text):
                continue
            tag = _SOURCE_TAG_RE.search(text)
            index = int(tag.group(1)) if tag else anchor
            if not isinstance(index, int) or isinstance(index, bool):
                continue
            content = contents[index - 1] if 1 <= index <= len(contents) else ""
            if not content_supports(tokens, content):
                issues.append(
                    f"FACTCHECK: selectedArticles[{pos}].{name} ({', '.join(tokens)}) "
                    f"not found in articleIndex {index} content"
                )
    return issues


def validate(brief: Mapping[str, Any], source_articles: Sequence[Mapping[str, Any]]) -> list[str]:
    """Issues found in a generated brief. An empty list means it passes."""
    body = str(brief.get("bodyMarkdown") or "")
    issues: list[str] = []

    body_urls = {normalize_url(u) for u in extract_urls(body)}
    for source in brief.get("sources") or []:
        url = source_url(source)
        if url and normalize_url(url) not in body_urls:
            issues.append(f"source_not_in_body: {url}")

    if len(body_urls) < MIN_CITED_URLS:
        issues.append(f"too_few_citations: found={len(body_urls)} required={MIN_CITED_URLS}")

    contents = _article_contents(source_articles)
    issues.extend(_check_claims(body, contents))
    issues.extend(_check_selected_articles(brief.get("selectedArticles") or [], contents))
    return issues


def _index_issues(entries: Iterable[Any], field: str, count: int) -> list[str]:
    issues: list[str] = []
    for pos, entry in enumerate(entries or []):
        if not isinstance(entry, Mapping) or "sourceIndex" not in entry:
            continue
        raw = entry.get("sourceIndex")
        if not isinstance(raw, int) or isinstance(raw, bool) or not 1 <= raw <= count:
            issues.append(f"{field}[{pos}].sourceIndex out of range: {raw!r} not in 1..{count}")
    return issues


def assert_valid(brief: Mapping[str, Any], source_articles: Sequence[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Return `brief` unchanged, or raise BriefValidationError with every issue found."""
    issues = validate(brief, source_articles)
    count = len(source_articles)
    issues.extend(_index_issues(brief.get("selectedArticles") or [], "selectedArticles", count))
    issues.extend(_index_issues(brief.get("marketIndicators") or [], "marketIndicators", count))
    if issues:
        raise BriefValidationError(issues)
    return brief


def quick_validate(brief: Mapping[str, Any], allowed_urls: Iterable[str]) -> list[str]:
    """Shape checks that need no source content."""
    issues: list[str] = []
    title = clean_text(str(brief.get("title") or ""))
    if not TITLE_MIN_CHARS <= len(title) <= TITLE_MAX_CHARS:
        issues.append(f"title_length: {len(title)} not in {TITLE_MIN_CHARS}..{TITLE_MAX_CHARS}")
    summary = clean_text(str(brief.get("summary") or ""))
    if len(summary) < SUMMARY_MIN_CHARS:
        issues.append(f"summary_too_short: {len(summary)}")
    body = str(brief.get("bodyMarkdown") or "")
    if len(body.strip()) < BODY_MIN_CHARS:
        issues.append(f"body_too_short: {len(body.strip())}")

    sources = [source_url(s) for s in brief.get("sources") or []]
    normalized = [normalize_url(u) for u in sources if u]
    if len(set(normalized)) != len(normalized):
        issues.append("duplicate_sources")

    allowed = {normalize_url(u) for u in allowed_urls}
    for article in brief.get("selectedArticles") or []:
        url = str(article.get("url") or "") if isinstance(article, Mapping) else ""
        if url and normalize_url(url) not in allowed:
            issues.append(f"selected_url_not_allowed: {url}")

    body_urls = {normalize_url(u) for u in extract_urls(body)}
    for url in sources:
        if url and normalize_url(url) not in body_urls:
            issues.append(f"source_not_in_body: {url}")
    return issues
