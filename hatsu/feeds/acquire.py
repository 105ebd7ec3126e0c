# hatsu/feeds/acquire.py
"""
Feed acquisition dispatcher.

Exactly one representation of a feed is trusted at a time: JSON Feed first,
then Atom, then RSS. A failure of the chosen parser propagates unchanged;
lower priority URLs are never tried as a fallback.
"""

import logging

from ..errors import NotFoundError
from .fetch import Fetch
from .json_feed import parse_json_feed
from .model import CanonicalFeed, FeedDescriptor
from .xml_feed import parse_xml_feed

logger = logging.getLogger(__name__)


def select_url(descriptor: FeedDescriptor) -> tuple[str, str] | None:
    """Return (format, url) for the highest priority URL, or None."""
    if descriptor.json:
        return "json", descriptor.json
    if descriptor.atom:
        return "atom", descriptor.atom
    if descriptor.rss:
        return "rss", descriptor.rss
    return None


def acquire(descriptor: FeedDescriptor, label: str, fetch: Fetch) -> CanonicalFeed:
    """
    Acquire and normalize the feed described by `descriptor`.

    Args:
        descriptor: Candidate feed URLs
        label: Name used in the NotFound error (usually the actor handle)
        fetch: URL-to-bytes callable

    Raises:
        NotFoundError: no URL is present (no network call is made)
        TransportError, ParseError: from the chosen parser
    """
    selected = select_url(descriptor)
    if selected is None:
        raise NotFoundError("Feed Url", label)

    kind, url = selected
    logger.debug(f"Acquiring {kind} feed for {label}: {url}")
    if kind == "json":
        return parse_json_feed(url, fetch)
    return parse_xml_feed(url, fetch)
