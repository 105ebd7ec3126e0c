# hatsu/feeds/__init__.py
"""
Feed acquisition and normalization.

JSON Feed, Atom and RSS documents are normalized into CanonicalFeed and
compared across polls by the diff engine.
"""

from .model import CanonicalFeed, CanonicalFeedItem, FeedDescriptor
from .fetch import HttpFetcher
from .acquire import acquire
from .discovery import discover_feed
from .diff import ChangeKind, diff, new_items

__all__ = [
    "CanonicalFeed",
    "CanonicalFeedItem",
    "FeedDescriptor",
    "HttpFetcher",
    "acquire",
    "discover_feed",
    "ChangeKind",
    "diff",
    "new_items",
]
