# hatsu/activitypub/__init__.py
"""
ActivityPub side of the bridge.

Core concepts:
- Actor: a persisted identity (local feeds, remote followers)
- Person: the actor object exchanged with other servers
- ActorBridge: converts between the two and guards admission of remote actors
- Provisioner: creates the local actor for a website
- Activity: what a new feed item turns into
"""

from .actor import Actor, Person, generate_keypair
from .bridge import ActorBridge
from .provision import Provisioner
from .activity import Activity, ActivityStore, OutboxPublisher

__all__ = [
    "Actor",
    "Person",
    "generate_keypair",
    "ActorBridge",
    "Provisioner",
    "Activity",
    "ActivityStore",
    "OutboxPublisher",
]
