# hatsu - bridge non-federated web feeds into ActivityPub actors
#
# Each bridged website is represented as a local actor. Its JSON Feed, Atom
# or RSS feed is polled, normalized and diffed against the last snapshot,
# and new items are turned into outgoing activities.
#
# Core concepts:
# - CanonicalFeed: the format-independent feed model all parsers produce
# - ActorStore: persisted actors, feed descriptors and snapshots
# - ActorBridge: actor records <-> ActivityPub actor objects
# - Provisioner: creates the local actor for a website
# - Scheduler: runs synchronization cycles over all local actors

from .errors import (
    HatsuError,
    NotFoundError,
    TransportError,
    ParseError,
    DomainVerificationError,
    DataIntegrityFault,
    AlreadyExistsError,
    ConfigError,
    CycleCancelled,
)
from .config import Config
from .feeds import (
    CanonicalFeed,
    CanonicalFeedItem,
    FeedDescriptor,
    HttpFetcher,
    ChangeKind,
    acquire,
    diff,
    discover_feed,
)
from .activitypub import Actor, Person, ActorBridge, Provisioner, ActivityStore, OutboxPublisher
from .store import ActorStore
from .sync import Scheduler, CycleReport, ActorSyncResult

__all__ = [
    # Errors
    "HatsuError",
    "NotFoundError",
    "TransportError",
    "ParseError",
    "DomainVerificationError",
    "DataIntegrityFault",
    "AlreadyExistsError",
    "ConfigError",
    "CycleCancelled",
    # Config
    "Config",
    # Feeds
    "CanonicalFeed",
    "CanonicalFeedItem",
    "FeedDescriptor",
    "HttpFetcher",
    "ChangeKind",
    "acquire",
    "diff",
    "discover_feed",
    # Actors
    "Actor",
    "Person",
    "ActorBridge",
    "Provisioner",
    "ActivityStore",
    "OutboxPublisher",
    "ActorStore",
    # Sync
    "Scheduler",
    "CycleReport",
    "ActorSyncResult",
]

__version__ = "0.1.0"
