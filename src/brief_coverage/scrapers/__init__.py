"""Feed retrieval, redirect resolution and article detail extraction."""

__all__ = [
    "article_details",
    "feed_fetcher",
    "fetcher_config",
    "redirects",
    "url_canonical",
]
