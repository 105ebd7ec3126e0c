# hatsu/activitypub/provision.py
"""
Local actor provisioning.

A local actor bridges one website. Its handle is the site's domain and its
URLs live under /u/{handle} on the configured domain.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from ..config import Config
from ..errors import AlreadyExistsError
from ..feeds.model import FeedDescriptor
from .actor import Actor, format_timestamp, generate_keypair

if TYPE_CHECKING:
    from ..store import ActorStore

logger = logging.getLogger(__name__)

KeypairFn = Callable[[], tuple[str, str]]
DiscoverFn = Callable[[str], FeedDescriptor]

_FORBIDDEN = set("/?#@") | {" ", "\t", "\n", "\r"}


def actor_urls(config: Config, handle: str) -> tuple[str, str, str]:
    """Return (id, inbox, outbox) for a local handle."""
    actor_id = f"{config.base_url}/u/{handle}"
    return actor_id, f"{actor_id}/inbox", f"{actor_id}/outbox"


def validate_handle(handle: str) -> str:
    if not handle or any(c in _FORBIDDEN for c in handle):
        raise ValueError(f"Invalid handle: {handle!r}")
    return handle


class Provisioner:
    """
    Creates local actors.

    Args:
        config: Bridge configuration
        store: Where the new record is persisted
        discover: handle -> FeedDescriptor; failures abort provisioning
        keypair: Returns a fresh (private_pem, public_pem) pair
    """

    def __init__(
        self,
        config: Config,
        store: "ActorStore",
        discover: DiscoverFn,
        keypair: KeypairFn = generate_keypair,
    ):
        self.config = config
        self.store = store
        self.discover = discover
        self.keypair = keypair

    def provision(self, handle: str, display_name: Optional[str] = None) -> Actor:
        """
        Create and store a new local actor with its feed descriptor.

        Raises:
            ValueError: the handle cannot be used in a URL path
            AlreadyExistsError: the handle is already provisioned
            NotFoundError, TransportError: feed discovery failed
        """
        validate_handle(handle)
        actor_id, inbox, outbox = actor_urls(self.config, handle)
        if actor_id in self.store:
            raise AlreadyExistsError(f"Actor {actor_id} already exists")

        feed = self.discover(handle)
        private_pem, public_pem = self.keypair()

        actor = Actor(
            id=actor_id,
            name=display_name or handle,
            preferred_username=handle,
            inbox=inbox,
            outbox=outbox,
            public_key=public_pem,
            private_key=private_pem,
            local=True,
            last_refreshed_at=format_timestamp(),
        )
        self.store.save(actor, feed=feed)
        logger.info(f"Provisioned local actor {actor.id}")
        return actor
