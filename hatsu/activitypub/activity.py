# hatsu/activitypub/activity.py
"""
Outgoing activities for new feed items.

New items become Create activities wrapping a Note; edited items (when
change tracking is on) become Update activities. Activity ids are derived
from the actor id, the item id and the kind, so replaying a sync cycle
after a crash never records the same activity twice.

Delivery to remote inboxes is not handled here.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..feeds.diff import ChangeKind
from ..feeds.model import CanonicalFeedItem
from ..fileio import write_json_atomic
from .actor import Actor

logger = logging.getLogger(__name__)

PUBLIC = "https://www.w3.org/ns/activitystreams#Public"


def _activity_digest(*parts: str) -> str:
    return hashlib.sha3_256("\n".join(parts).encode()).hexdigest()


@dataclass
class Activity:
    """
    An outgoing ActivityPub activity.

    Attributes:
        activity_id: Full activity id (URL)
        activity_type: Create or Update
        actor_id: ID of the actor performing the activity
        object_data: The Note being created or updated
        published: ISO timestamp
    """
    activity_id: str
    activity_type: str
    actor_id: str
    object_data: Dict[str, Any]
    published: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))

    def to_activitypub(self) -> Dict[str, Any]:
        """Return ActivityPub JSON-LD representation."""
        return {
            "@context": "https://www.w3.org/ns/activitystreams",
            "type": self.activity_type,
            "id": self.activity_id,
            "actor": self.actor_id,
            "object": self.object_data,
            "published": self.published,
            "to": [PUBLIC],
            "cc": [f"{self.actor_id}/followers"],
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        return {
            "activity_id": self.activity_id,
            "activity_type": self.activity_type,
            "actor_id": self.actor_id,
            "object_data": self.object_data,
            "published": self.published,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Activity":
        """Deserialize from storage."""
        return cls(
            activity_id=data["activity_id"],
            activity_type=data["activity_type"],
            actor_id=data["actor_id"],
            object_data=data["object_data"],
            published=data.get("published", ""),
        )

    @classmethod
    def for_item(cls, actor: Actor, item: CanonicalFeedItem, kind: ChangeKind) -> "Activity":
        """
        Build the activity announcing a feed item.

        Args:
            actor: Local actor owning the feed
            item: The new or changed item
            kind: NEW -> Create, CHANGED -> Update
        """
        if kind is ChangeKind.NEW:
            activity_type = "Create"
            digest = _activity_digest(actor.id, item.id, activity_type)
        elif kind is ChangeKind.CHANGED:
            activity_type = "Update"
            digest = _activity_digest(actor.id, item.id, activity_type, item.content_hash)
        else:
            raise ValueError(f"No activity for {kind.value} items")

        note_id = f"{actor.id}/items/{_activity_digest(actor.id, item.id)}"
        note = {
            "type": "Note",
            "id": note_id,
            "attributedTo": actor.id,
            "name": item.title,
            "summary": item.summary,
            "url": item.url,
            "published": item.date_published,
            "updated": item.date_modified,
            "tag": [{"type": "Hashtag", "name": f"#{t}"} for t in item.tags if t],
            "source": {"feedItemId": item.id},
        }
        if item.language:
            note["contentMap"] = {item.language: item.summary or item.title or ""}

        return cls(
            activity_id=f"{actor.id}/activities/{digest}",
            activity_type=activity_type,
            actor_id=actor.id,
            object_data={k: v for k, v in note.items() if v not in (None, [])},
        )


class ActivityStore:
    """
    Persistent storage for activities.

    Activities are stored as an append-only log. Adding an activity whose
    id is already recorded is a no-op.
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._activities: List[Activity] = []
        self._ids = set()
        self._lock = threading.Lock()
        self._load()

    def _log_path(self) -> Path:
        return self.store_dir / "activities.json"

    def _load(self):
        """Load activities from disk."""
        log_path = self._log_path()
        if log_path.exists():
            with open(log_path) as f:
                data = json.load(f)
            self._activities = [
                Activity.from_dict(a) for a in data.get("activities", [])
            ]
            self._ids = {a.activity_id for a in self._activities}

    def _save(self):
        """Save activities to disk."""
        data = {
            "version": "1.0",
            "activities": [a.to_dict() for a in self._activities],
        }
        write_json_atomic(self._log_path(), data)

    def add(self, activity: Activity) -> bool:
        """Append an activity. Returns False if it was already recorded."""
        with self._lock:
            if activity.activity_id in self._ids:
                return False
            self._activities.append(activity)
            self._ids.add(activity.activity_id)
            self._save()
        return True

    def get(self, activity_id: str) -> Optional[Activity]:
        """Get an activity by ID."""
        with self._lock:
            for a in self._activities:
                if a.activity_id == activity_id:
                    return a
        return None

    def list(self) -> List[Activity]:
        """List all activities."""
        with self._lock:
            return list(self._activities)

    def find_by_actor(self, actor_id: str) -> List[Activity]:
        """Find activities by actor."""
        with self._lock:
            return [a for a in self._activities if a.actor_id == actor_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._activities)


class OutboxPublisher:
    """
    Records an activity for every new (or changed) feed item.

    This is the publisher the scheduler hands items to. It is idempotent:
    publishing the same item twice records one activity.
    """

    def __init__(self, activity_store: ActivityStore):
        self.activities = activity_store

    def publish(self, actor: Actor, item: CanonicalFeedItem, kind: ChangeKind) -> Activity:
        activity = Activity.for_item(actor, item, kind)
        if self.activities.add(activity):
            logger.info(f"{activity.activity_type} {activity.activity_id} for item {item.id}")
        else:
            logger.debug(f"Activity {activity.activity_id} already recorded")
        return activity
