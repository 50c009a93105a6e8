from typing import Optional
from urllib.parse import urlencode

from feedreader.core.config import settings


def resolve_fetch_url(origin_url: str, max_items: int, proxy_url: Optional[str] = None) -> str:
    """
    Build the URL actually retrieved for a feed.

    The origin URL is routed through the full-text extraction proxy, asking
    for at most max_items entries and preserving links. This is a pure
    string transformation, so the result can always be recomputed from the
    origin URL and size hint.

    Args:
        origin_url: Feed URL as supplied by the subscriber
        max_items: Window-size hint passed to the proxy
        proxy_url: Proxy endpoint; defaults to settings.FULLTEXT_PROXY_URL.
                   An empty value disables the proxy.

    Returns:
        The resolved fetch URL
    """
    if proxy_url is None:
        proxy_url = settings.FULLTEXT_PROXY_URL

    if not proxy_url:
        return origin_url

    query = urlencode({
        "url": origin_url,
        "max": str(max_items),
        "links": "preserve",
    })
    separator = "&" if "?" in proxy_url else "?"
    return f"{proxy_url}{separator}{query}"
