# hatsu/activitypub/actor.py
"""
ActivityPub Actor records.

An Actor is a federated identity with:
- Canonical id (URL), inbox and outbox
- RSA key pair (the private half only for local actors)
- A refresh timestamp stored as "YYYY-MM-DD HH:MM:SS" local time

Person is the wire-level JSON-LD object exchanged with other servers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import DataIntegrityFault, ParseError

REFRESHED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"

ACTIVITYSTREAMS_CONTEXT = [
    "https://www.w3.org/ns/activitystreams",
    "https://w3id.org/security/v1",
]

ACTOR_TYPES = ("Person", "Service", "Application", "Group", "Organization")


def generate_keypair() -> tuple[str, str]:
    """Generate an RSA key pair, returned as (private_pem, public_pem)."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode("utf-8"), public_pem.decode("utf-8")


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a refresh timestamp (defaults to now, local time)."""
    return (moment or datetime.now()).strftime(REFRESHED_AT_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored refresh timestamp."""
    try:
        return datetime.strptime(value, REFRESHED_AT_FORMAT)
    except (TypeError, ValueError) as e:
        raise DataIntegrityFault(f"Invalid refresh timestamp {value!r}") from e


@dataclass
class Actor:
    """
    A persisted actor, local or remote.

    Attributes:
        id: Canonical identifier URL, unique and stable
        name: Display name
        preferred_username: Handle
        inbox: Inbox URL
        outbox: Outbox URL
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key, present iff local
        local: True for actors owned by this server
        last_refreshed_at: "YYYY-MM-DD HH:MM:SS"
    """
    id: str
    name: str
    preferred_username: str
    inbox: str
    outbox: str
    public_key: str
    private_key: Optional[str] = None
    local: bool = False
    last_refreshed_at: str = field(default_factory=format_timestamp)

    @property
    def domain(self) -> str:
        return urlparse(self.id).hostname or ""

    @property
    def handle(self) -> str:
        """Fediverse handle."""
        return f"@{self.preferred_username}@{self.domain}"

    @property
    def key_id(self) -> str:
        """Key ID for HTTP Signatures."""
        return f"{self.id}#main-key"

    def validate(self) -> None:
        """Check the invariants every persisted record must hold."""
        if self.local != (self.private_key is not None):
            raise DataIntegrityFault(
                f"Actor {self.id}: private key must be present iff the actor is local"
            )
        parse_timestamp(self.last_refreshed_at)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        return {
            "id": self.id,
            "name": self.name,
            "preferred_username": self.preferred_username,
            "inbox": self.inbox,
            "outbox": self.outbox,
            "public_key": self.public_key,
            "private_key": self.private_key,
            "local": self.local,
            "last_refreshed_at": self.last_refreshed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Actor":
        """Deserialize from storage."""
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                preferred_username=data["preferred_username"],
                inbox=data["inbox"],
                outbox=data["outbox"],
                public_key=data["public_key"],
                private_key=data.get("private_key"),
                local=bool(data.get("local", False)),
                last_refreshed_at=data["last_refreshed_at"],
            )
        except (KeyError, TypeError) as e:
            raise DataIntegrityFault(f"Malformed actor record: missing {e}") from e


@dataclass
class Person:
    """The ActivityPub actor object as exchanged on the wire."""
    id: str
    preferred_username: str
    inbox: str
    outbox: str
    public_key_pem: str
    name: Optional[str] = None
    key_id: Optional[str] = None
    kind: str = "Person"

    def to_activitypub(self) -> Dict[str, Any]:
        """Return ActivityPub JSON-LD representation."""
        data = {
            "@context": ACTIVITYSTREAMS_CONTEXT,
            "type": self.kind,
            "id": self.id,
            "preferredUsername": self.preferred_username,
            "inbox": self.inbox,
            "outbox": self.outbox,
            "publicKey": {
                "id": self.key_id or f"{self.id}#main-key",
                "owner": self.id,
                "publicKeyPem": self.public_key_pem,
            },
        }
        if self.name is not None:
            data["name"] = self.name
        return data

    @classmethod
    def from_activitypub(cls, data: Dict[str, Any]) -> "Person":
        """
        Parse an inbound actor object.

        Raises:
            ParseError: a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ParseError("Actor object must be a JSON object")

        kind = data.get("type")
        if kind not in ACTOR_TYPES:
            raise ParseError(f"Unsupported actor type: {kind!r}")

        public_key = data.get("publicKey")
        if not isinstance(public_key, dict):
            raise ParseError("Actor object has no publicKey")

        required = {
            "id": data.get("id"),
            "preferredUsername": data.get("preferredUsername"),
            "inbox": data.get("inbox"),
            "outbox": data.get("outbox"),
            "publicKey.publicKeyPem": public_key.get("publicKeyPem"),
        }
        for key, value in required.items():
            if not isinstance(value, str) or not value:
                raise ParseError(f"Actor object is missing {key}")

        name = data.get("name")
        return cls(
            id=data["id"],
            preferred_username=data["preferredUsername"],
            inbox=data["inbox"],
            outbox=data["outbox"],
            public_key_pem=public_key["publicKeyPem"],
            name=name if isinstance(name, str) else None,
            key_id=public_key.get("id"),
            kind=kind,
        )
