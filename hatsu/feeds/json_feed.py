# hatsu/feeds/json_feed.py
"""JSON Feed parser. The wire format already matches the canonical shape."""

import json

from ..errors import ParseError
from .fetch import Fetch
from .model import CanonicalFeed

ACCEPT = "application/feed+json, application/json;q=0.9"


def parse_json_feed_bytes(body: bytes, source_url: str) -> CanonicalFeed:
    """Decode a JSON Feed body fetched from `source_url`."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Invalid JSON Feed at {source_url}: {e}") from e
    return CanonicalFeed.from_dict(data, source_url=source_url)


def parse_json_feed(url: str, fetch: Fetch) -> CanonicalFeed:
    """Fetch and parse a JSON Feed."""
    return parse_json_feed_bytes(fetch(url, accept=ACCEPT), url)
