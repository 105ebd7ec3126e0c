# hatsu/feeds/diff.py
"""
Feed diff engine.

Classifies each item of a freshly acquired feed against the previous
snapshot. Item identity is the id alone. Items that disappeared from the
feed are not reported.
"""

from enum import Enum
from typing import List, Tuple

from .model import CanonicalFeed, CanonicalFeedItem


class ChangeKind(Enum):
    NEW = "new"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


def diff(
    previous: CanonicalFeed,
    current: CanonicalFeed,
    track_changes: bool = False,
) -> List[Tuple[CanonicalFeedItem, ChangeKind]]:
    """
    Classify the items of `current` against `previous`.

    Args:
        previous: Last committed snapshot
        current: Freshly acquired feed
        track_changes: Classify known ids with different content as CHANGED
            instead of UNCHANGED

    Returns:
        (item, kind) pairs in the order of `current`. Empty when both item
        sequences are equal.
    """
    if previous.items == current.items:
        return []

    known = {item.id: item for item in previous.items}
    result = []
    for item in current.items:
        old = known.get(item.id)
        if old is None:
            kind = ChangeKind.NEW
        elif track_changes and old.content_hash != item.content_hash:
            kind = ChangeKind.CHANGED
        else:
            kind = ChangeKind.UNCHANGED
        result.append((item, kind))
    return result


def new_items(previous: CanonicalFeed, current: CanonicalFeed) -> List[CanonicalFeedItem]:
    """Items of `current` whose id is not in `previous`."""
    return [item for item, kind in diff(previous, current) if kind is ChangeKind.NEW]
