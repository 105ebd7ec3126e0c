# hatsu/feeds/xml_feed.py
"""
Atom and RSS parser.

The body is parsed with feedparser and mapped onto the canonical model:
- entry id -> item id (falls back to the entry link)
- entry url is left unset
- categories -> tags, preferring the display label over the term
- published/updated -> ISO-8601, second precision, UTC
"""

import io
import logging
import time
from typing import Any, List, Optional

import feedparser

from ..errors import ParseError
from .fetch import Fetch
from .model import CanonicalFeed, CanonicalFeedItem, ensure_uri, ensure_url

logger = logging.getLogger(__name__)

ACCEPT = "application/atom+xml, application/rss+xml, application/xml;q=0.9, text/xml;q=0.8"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _format_time(parsed: Optional[time.struct_time]) -> Optional[str]:
    # feedparser normalizes *_parsed tuples to UTC
    if parsed is None:
        return None
    return time.strftime(TIMESTAMP_FORMAT, parsed)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _tags(entry) -> List[Optional[str]]:
    tags = []
    for category in entry.get("tags") or []:
        label = category.get("label")
        tags.append(label if label else category.get("term"))
    return tags


def _entry_to_item(entry, index: int) -> CanonicalFeedItem:
    item_id = entry.get("id") or entry.get("link")
    if not item_id:
        raise ParseError(f"Feed entry {index} has no identifier")

    return CanonicalFeedItem(
        id=item_id,
        url=None,
        title=_text(entry.get("title")),
        summary=_text(entry.get("summary")),
        language=None,
        tags=_tags(entry),
        date_published=_format_time(dict.get(entry, "published_parsed")),
        # FeedParserDict.get aliases a missing "updated" to "published"
        date_modified=_format_time(dict.get(entry, "updated_parsed")),
    )


def parse_xml_feed_bytes(body: bytes, source_url: str) -> CanonicalFeed:
    """Parse an Atom or RSS body fetched from `source_url`."""
    parsed = feedparser.parse(io.BytesIO(body))

    if not parsed.get("version"):
        reason = parsed.get("bozo_exception") or "not a syndication feed"
        raise ParseError(f"Invalid feed at {source_url}: {reason}")
    if parsed.get("bozo"):
        logger.debug(f"Feed at {source_url} is not well-formed: {parsed.get('bozo_exception')}")

    feed = parsed.feed

    # RSS channels have no id element; their link identifies them
    feed_url = feed.get("id") or feed.get("link")
    ensure_uri(feed_url, "Feed id")

    title = feed.get("title")
    if not title:
        raise ParseError(f"Feed at {source_url} has no title")

    icon = feed.get("icon")
    if icon is not None:
        ensure_url(icon, "Feed icon")

    return CanonicalFeed(
        feed_url=feed_url,
        title=title,
        next_url=None,
        description=_text(feed.get("subtitle")),
        icon=icon,
        language=feed.get("language") or None,
        items=[_entry_to_item(entry, i) for i, entry in enumerate(parsed.entries)],
    )


def parse_xml_feed(url: str, fetch: Fetch) -> CanonicalFeed:
    """Fetch and parse an Atom or RSS feed."""
    return parse_xml_feed_bytes(fetch(url, accept=ACCEPT), url)
