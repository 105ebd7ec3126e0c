# hatsu/feeds/discovery.py
"""
Feed discovery.

A handle is the domain of the site being bridged. Its home page is fetched
and the <link rel="alternate"> elements are read to find the JSON Feed, Atom
and RSS URLs.
"""

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..errors import NotFoundError
from .fetch import Fetch
from .model import FeedDescriptor, is_valid_url

logger = logging.getLogger(__name__)

LINK_TYPES = {
    "application/feed+json": "json",
    "application/json": "json",
    "application/atom+xml": "atom",
    "application/rss+xml": "rss",
}


def find_feed_links(html: bytes | str, page_url: str) -> FeedDescriptor:
    """Extract feed URLs from an HTML page. The first link of each type wins."""
    soup = BeautifulSoup(html, "html.parser")
    found = {}

    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "alternate" not in [r.lower() for r in rel]:
            continue

        kind = LINK_TYPES.get((link.get("type") or "").split(";")[0].strip().lower())
        href = link.get("href")
        if kind is None or not href or kind in found:
            continue

        url = urljoin(page_url, href.strip())
        if is_valid_url(url):
            found[kind] = url

    return FeedDescriptor(**found)


def discover_feed(handle: str, fetch: Fetch) -> FeedDescriptor:
    """
    Discover the feeds published by the site `handle`.

    Raises:
        TransportError: the home page could not be fetched
        NotFoundError: the page advertises no feed
    """
    page_url = f"https://{handle}/"
    body = fetch(page_url, accept="text/html")
    feed = find_feed_links(body, page_url)

    logger.info(
        f"User Feed: {feed.json or 'null'}, {feed.atom or 'null'}, {feed.rss or 'null'}"
    )

    if feed.is_empty:
        raise NotFoundError("Feed Url", handle)
    return feed
