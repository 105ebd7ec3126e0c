# hatsu/store.py
"""
Persistent storage for actors, their feed descriptors and feed snapshots.

Structure:
    store_dir/
        actors.json               # Index of all actors and feed descriptors
        snapshots/
            <sha3(actor id)>.json # Last committed CanonicalFeed per actor

Every file is replaced atomically (temp file + os.replace), so a crash
leaves either the old or the new content, never a mix.
"""

import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .activitypub.actor import Actor, format_timestamp, parse_timestamp
from .errors import DataIntegrityFault, HatsuError, NotFoundError
from .feeds.model import CanonicalFeed, FeedDescriptor
from .fileio import write_json_atomic

logger = logging.getLogger(__name__)


def _snapshot_name(actor_id: str) -> str:
    return hashlib.sha3_256(actor_id.encode()).hexdigest() + ".json"


class ActorStore:
    """
    Actor records keyed by canonical id.

    The index is guarded by one lock. Feed synchronization and delete() take
    the per-actor lock returned by lock(), so actors never wait on each other.
    Per-actor locks are always taken before the index lock.
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._snapshot_dir().mkdir(exist_ok=True)
        self._actors: Dict[str, Actor] = {}
        self._feeds: Dict[str, FeedDescriptor] = {}
        self._lock = threading.RLock()
        self._actor_locks: Dict[str, threading.Lock] = {}
        self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "actors.json"

    def _snapshot_dir(self) -> Path:
        return self.store_dir / "snapshots"

    def _snapshot_path(self, actor_id: str) -> Path:
        return self._snapshot_dir() / _snapshot_name(actor_id)

    def _load(self):
        """Load actors from disk."""
        index_path = self._index_path()
        if not index_path.exists():
            return
        try:
            with open(index_path) as f:
                data = json.load(f)
            actors = {
                actor_id: Actor.from_dict(actor_data)
                for actor_id, actor_data in data.get("actors", {}).items()
            }
            feeds = {
                actor_id: FeedDescriptor.from_dict(feed_data)
                for actor_id, feed_data in data.get("feeds", {}).items()
            }
        except (json.JSONDecodeError, AttributeError) as e:
            raise DataIntegrityFault(f"Unreadable actor index {index_path}: {e}") from e
        self._actors = actors
        self._feeds = feeds

    def _save(self):
        """Save actors to disk."""
        data = {
            "version": "1.0",
            "actors": {actor_id: actor.to_dict() for actor_id, actor in self._actors.items()},
            "feeds": {actor_id: feed.to_dict() for actor_id, feed in self._feeds.items()},
        }
        write_json_atomic(self._index_path(), data)

    def lock(self, actor_id: str) -> threading.Lock:
        """Per-actor lock for read-modify-write cycles on one actor."""
        with self._lock:
            return self._actor_locks.setdefault(actor_id, threading.Lock())

    def save(self, actor: Actor, feed: Optional[FeedDescriptor] = None) -> Actor:
        """
        Insert or replace an actor record.

        Args:
            actor: The record to store
            feed: Feed descriptor to store with it (kept unchanged if None)

        Raises:
            DataIntegrityFault: the record violates an actor invariant
        """
        actor.validate()
        with self._lock:
            self._actors[actor.id] = actor
            if feed is not None:
                self._feeds[actor.id] = feed
            self._save()
        return actor

    def get(self, actor_id: str) -> Optional[Actor]:
        """Get an actor by exact id."""
        with self._lock:
            return self._actors.get(actor_id)

    def delete(self, actor_id: str) -> bool:
        """
        Remove an actor and its snapshot. Returns False if it did not exist.

        Waits for an in-flight sync of the actor, which holds lock(actor_id),
        so a sync can never commit a snapshot for a deleted actor.
        """
        with self.lock(actor_id):
            with self._lock:
                if actor_id not in self._actors:
                    return False
                del self._actors[actor_id]
                self._feeds.pop(actor_id, None)
                self._save()

            snapshot = self._snapshot_path(actor_id)
            if snapshot.exists():
                snapshot.unlink()
        return True

    def list(self, local: Optional[bool] = None) -> List[Actor]:
        """List actors ordered by id, optionally only local or remote ones."""
        with self._lock:
            actors = [
                a for a in self._actors.values()
                if local is None or a.local == local
            ]
        return sorted(actors, key=lambda a: a.id)

    def get_feed(self, actor_id: str) -> Optional[FeedDescriptor]:
        with self._lock:
            return self._feeds.get(actor_id)

    def set_feed(self, actor_id: str, feed: FeedDescriptor) -> None:
        with self._lock:
            if actor_id not in self._actors:
                raise NotFoundError("Actor", actor_id)
            self._feeds[actor_id] = feed
            self._save()

    def touch(self, actor_id: str, timestamp: Optional[str] = None) -> None:
        """Update an actor's refresh timestamp."""
        timestamp = timestamp or format_timestamp()
        parse_timestamp(timestamp)
        with self._lock:
            actor = self._actors.get(actor_id)
            if actor is None:
                raise NotFoundError("Actor", actor_id)
            actor.last_refreshed_at = timestamp
            self._save()

    def load_snapshot(self, actor_id: str) -> Optional[CanonicalFeed]:
        """Load the last committed feed snapshot, or None before the first sync."""
        path = self._snapshot_path(actor_id)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
            return CanonicalFeed.from_dict(data)
        except (json.JSONDecodeError, HatsuError) as e:
            raise DataIntegrityFault(f"Unreadable snapshot for {actor_id}: {e}") from e

    def save_snapshot(self, actor_id: str, feed: CanonicalFeed) -> None:
        """Atomically replace an actor's snapshot."""
        write_json_atomic(self._snapshot_path(actor_id), feed.to_dict())
        logger.debug(f"Snapshot committed for {actor_id} ({len(feed.items)} items)")

    def __contains__(self, actor_id: str) -> bool:
        with self._lock:
            return actor_id in self._actors

    def __len__(self) -> int:
        with self._lock:
            return len(self._actors)
