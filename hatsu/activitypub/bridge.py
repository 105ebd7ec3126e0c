# hatsu/activitypub/bridge.py
"""
Actor record bridge.

Maps between persisted actor records and ActivityPub actor objects:
- resolve_by_id: exact lookup of a persisted record
- to_protocol_object: record -> Person (never exposes the private key)
- verify_origin: the claimed id must live on the expected domain
- from_protocol_object: Person -> remote record, admitted into storage
- delete: idempotent removal
"""

import json
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import urlparse

from ..config import Config
from ..errors import DataIntegrityFault, DomainVerificationError, ParseError
from ..feeds.model import ensure_url
from .actor import Actor, Person, format_timestamp, parse_timestamp

if TYPE_CHECKING:
    from ..feeds.fetch import Fetch
    from ..store import ActorStore

logger = logging.getLogger(__name__)

ACTIVITY_JSON = "application/activity+json"
ACCEPT = f'{ACTIVITY_JSON}, application/ld+json; profile="https://www.w3.org/ns/activitystreams"'


def _host(value: str) -> Optional[str]:
    value = value.strip()
    if "://" not in value:
        value = "//" + value
    return urlparse(value).hostname


def _authority(url: str) -> str:
    """host[:port] of a URL, without user info."""
    return urlparse(url).netloc.rsplit("@", 1)[-1].lower()


class ActorBridge:
    """
    The actor-as-protocol-object contract, implemented once for Actor.

    Args:
        config: Bridge configuration (the local domain is taken from it)
        store: Persistent actor storage
    """

    def __init__(self, config: Config, store: "ActorStore"):
        self.config = config
        self.store = store

    def resolve_by_id(self, actor_id: str) -> Optional[Actor]:
        """Exact-match lookup by canonical id."""
        return self.store.get(str(actor_id))

    def to_protocol_object(self, actor: Actor) -> Person:
        """
        Build the wire-level actor object.

        Raises:
            DataIntegrityFault: a stored URL field is not a valid URL
        """
        for what, value in (("id", actor.id), ("inbox", actor.inbox), ("outbox", actor.outbox)):
            ensure_url(value, f"Stored {what} of actor {actor.id!r}", DataIntegrityFault)

        return Person(
            id=actor.id,
            preferred_username=actor.preferred_username,
            inbox=actor.inbox,
            outbox=actor.outbox,
            public_key_pem=actor.public_key,
            name=actor.name,
            key_id=actor.key_id,
        )

    def verify_origin(self, person: Person, expected_domain: str) -> None:
        """
        Require the object's id to be on `expected_domain`.

        Args:
            person: Inbound actor object
            expected_domain: A bare host or any URL on the expected host

        Raises:
            DomainVerificationError: the domains do not match
        """
        claimed = urlparse(person.id).hostname
        expected = _host(expected_domain)
        if claimed is None or claimed != expected:
            raise DomainVerificationError(
                f"Domains do not match: {person.id} is not on {expected_domain}"
            )

    def from_protocol_object(self, person: Person) -> Actor:
        """
        Build and persist a remote actor record from an inbound object.

        An existing remote record with the same id is refreshed in place.

        Raises:
            ParseError: a URL field of the object is invalid
            DomainVerificationError: the object claims an id on the local domain
        """
        for what, value in (("id", person.id), ("inbox", person.inbox), ("outbox", person.outbox)):
            ensure_url(value, f"Actor {what}")

        existing = self.store.get(person.id)
        if _authority(person.id) == self.config.domain.lower() or (existing is not None and existing.local):
            raise DomainVerificationError(
                f"Remote actor object claims a local id: {person.id}"
            )

        actor = Actor(
            id=person.id,
            name=person.name or person.preferred_username,
            preferred_username=person.preferred_username,
            inbox=person.inbox,
            outbox=person.outbox,
            public_key=person.public_key_pem,
            private_key=None,
            local=False,
            last_refreshed_at=format_timestamp(),
        )
        self.store.save(actor)
        logger.info(f"Stored remote actor {actor.id}")
        return actor

    def admit(self, data: Dict[str, Any], expected_domain: str) -> Actor:
        """Parse, verify and persist an inbound actor object, in that order."""
        person = Person.from_activitypub(data)
        self.verify_origin(person, expected_domain)
        return self.from_protocol_object(person)

    def fetch_remote(self, url: str, fetch: "Fetch") -> Actor:
        """
        Dereference a remote actor URL and admit or refresh its record.

        Raises:
            TransportError: the URL could not be fetched
            ParseError: the body is not an actor object
            DomainVerificationError: the object is not on the URL's domain
        """
        ensure_url(url, "Actor url")
        body = fetch(url, accept=ACCEPT)
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Invalid actor document at {url}: {e}") from e
        return self.admit(data, url)

    def delete(self, actor: Actor) -> bool:
        """Remove the record. Deleting an unknown actor is a no-op returning False."""
        removed = self.store.delete(actor.id)
        if not removed:
            logger.debug(f"Delete of unknown actor {actor.id} ignored")
        return removed

    def last_refreshed_at(self, actor: Actor) -> datetime:
        """
        Parse the stored refresh timestamp.

        Raises:
            DataIntegrityFault: the stored value is not "YYYY-MM-DD HH:MM:SS"
        """
        return parse_timestamp(actor.last_refreshed_at)

    def is_stale(self, actor: Actor, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        """True if the record was last refreshed more than `max_age` ago."""
        now = now or datetime.now()
        return now - self.last_refreshed_at(actor) > max_age
