# hatsu/feeds/model.py
"""
Canonical feed model.

Every source format (JSON Feed, Atom, RSS) is normalized into these types.
The dict shape produced by to_dict() uses JSON Feed field names, so a JSON
Feed document decodes directly and snapshots persist in the same shape.
"""

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..errors import ParseError


def is_valid_url(value: Any) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(value, str) or not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def ensure_url(value: Any, what: str, error: type = ParseError) -> str:
    """Return value if it is a valid URL, raise `error` otherwise."""
    if not is_valid_url(value):
        raise error(f"{what} is not a valid URL: {value!r}")
    return value


_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


def is_absolute_uri(value: Any) -> bool:
    """True for any absolute URI (http, urn:uuid, tag, ...). Feed ids need not be fetchable."""
    if not isinstance(value, str) or any(c.isspace() for c in value):
        return False
    match = _URI_SCHEME.match(value)
    return match is not None and len(value) > match.end()


def ensure_uri(value: Any, what: str, error: type = ParseError) -> str:
    """Return value if it is an absolute URI, raise `error` otherwise."""
    if not is_absolute_uri(value):
        raise error(f"{what} is not a valid URI: {value!r}")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ParseError(f"Field {key!r} must be a string, got {type(value).__name__}")
    return value


@dataclass
class FeedDescriptor:
    """Candidate feed URLs for one actor. Any subset may be absent."""
    json: Optional[str] = None
    atom: Optional[str] = None
    rss: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.json or self.atom or self.rss)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"json": self.json, "atom": self.atom, "rss": self.rss}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedDescriptor":
        return cls(json=data.get("json"), atom=data.get("atom"), rss=data.get("rss"))


@dataclass
class CanonicalFeedItem:
    """
    One feed entry, independent of source format.

    The id is the only key used to match an item across polls. Timestamps
    are ISO-8601 strings with second precision in UTC ("2024-01-15T10:30:00Z").
    """
    id: str
    url: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    language: Optional[str] = None
    tags: List[Optional[str]] = field(default_factory=list)
    date_published: Optional[str] = None
    date_modified: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "language": self.language,
            "tags": list(self.tags),
            "date_published": self.date_published,
            "date_modified": self.date_modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanonicalFeedItem":
        if not isinstance(data, dict):
            raise ParseError(f"Feed item must be an object, got {type(data).__name__}")

        item_id = data.get("id")
        if isinstance(item_id, int) and not isinstance(item_id, bool):
            item_id = str(item_id)
        if not isinstance(item_id, str) or not item_id:
            raise ParseError(f"Feed item without an id: {data!r}")

        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(t is None or isinstance(t, str) for t in tags):
            raise ParseError(f"Tags of item {item_id} must be a list of strings")

        return cls(
            id=item_id,
            url=_optional_str(data, "url"),
            title=_optional_str(data, "title"),
            summary=_optional_str(data, "summary"),
            language=_optional_str(data, "language"),
            tags=list(tags),
            date_published=_optional_str(data, "date_published"),
            date_modified=_optional_str(data, "date_modified"),
        )

    @property
    def content_hash(self) -> str:
        """SHA3-256 of the canonical item, stable across processes."""
        json_str = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha3_256(json_str.encode()).hexdigest()


@dataclass
class CanonicalFeed:
    """
    A normalized feed.

    Attributes:
        feed_url: The feed's self identifier
        title: Feed title (mandatory)
        next_url: Next page for paginated feeds
        description: Feed description
        icon: Icon URL
        language: Feed language
        items: Entries in source order (not sorted by date)
    """
    feed_url: str
    title: str
    next_url: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    language: Optional[str] = None
    items: List[CanonicalFeedItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feed_url": self.feed_url,
            "next_url": self.next_url,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "language": self.language,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_url: Optional[str] = None) -> "CanonicalFeed":
        """
        Decode a canonical (JSON Feed shaped) document.

        Args:
            data: Decoded JSON object
            source_url: URL the document was fetched from, used when the
                document does not name its own feed_url

        Raises:
            ParseError: if the shape is wrong or a mandatory field is missing
        """
        if not isinstance(data, dict):
            raise ParseError(f"Feed document must be an object, got {type(data).__name__}")

        title = data.get("title")
        if not isinstance(title, str) or not title:
            raise ParseError("Feed has no title")

        feed_url = data.get("feed_url") or source_url
        ensure_uri(feed_url, "Feed url")

        next_url = _optional_str(data, "next_url")
        icon = _optional_str(data, "icon")
        if icon is not None:
            ensure_url(icon, "Feed icon")

        items = data.get("items")
        if items is None:
            items = []
        if not isinstance(items, list):
            raise ParseError("Feed items must be a list")

        return cls(
            feed_url=feed_url,
            title=title,
            next_url=next_url,
            description=_optional_str(data, "description"),
            icon=icon,
            language=_optional_str(data, "language"),
            items=[CanonicalFeedItem.from_dict(item) for item in items],
        )

    def item_ids(self) -> List[str]:
        return [item.id for item in self.items]
