from __future__ import annotations

from urllib.parse import parse_qsl, unquote_plus, urlsplit, urlunsplit

_AGGREGATOR_HOSTS = {
    "news.google.com",
    "www.news.google.com",
    "google.com",
    "www.google.com",
}

_TARGET_PARAMS = ("url", "u", "q", "target")  # embedded direct-target parameters, in priority order
_TRACKING_PARAMS = {"gclid", "fbclid", "mc_cid", "mc_eid"}


def is_aggregator_host(host: str) -> bool:
    h = (host or "").lower().split(":")[0]
    return h in _AGGREGATOR_HOSTS or h.endswith(".google.com")


def _is_tracking_param(name: str) -> bool:
    key = unquote_plus(name or "").strip().lower()
    return key.startswith("utm_") or key in _TRACKING_PARAMS


def _embedded_target(query: str) -> str:
    params = dict(parse_qsl(query or "", keep_blank_values=False))
    for name in _TARGET_PARAMS:
        value = (params.get(name) or "").strip()
        if value.lower().startswith(("http://", "https://")):
            return value
    return ""


def _strip_tracking(query: str) -> str:
    if not query:
        return ""
    kept = [part for part in query.split("&") if part and not _is_tracking_param(part.split("=", 1)[0])]
    return "&".join(kept)


def _canonicalize(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url

    netloc = parts.netloc.lower()
    if is_aggregator_host(parts.hostname or ""):
        target = _embedded_target(parts.query)
        if target:
            return _canonicalize(target.strip())
    elif netloc.startswith("www."):
        netloc = netloc[4:]

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit(
        (
            parts.scheme.lower(),
            netloc,
            path,
            _strip_tracking(parts.query),
            "",
        )
    )


def canonicalize(url: str) -> str:
    """Stable dedupe key for a URL. Never raises; unparseable input comes back trimmed."""
    trimmed = (url or "").strip()
    if not trimmed:
        return ""
    try:
        return _canonicalize(trimmed)
    except Exception:
        return trimmed
