# hatsu/errors.py
"""
Error taxonomy for the feed bridge.

Every failure in feed acquisition, diffing and actor bridging is raised as
a subclass of HatsuError so callers can decide between log-and-skip and
abort without catching unrelated exceptions.
"""


class HatsuError(Exception):
    """Base class for all bridge errors."""


class NotFoundError(HatsuError):
    """A required resource (feed url, actor, ...) does not exist."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Unable to find {kind} named {name}")


class TransportError(HatsuError):
    """Network fetch failed: timeout, DNS, refused connection or non-2xx."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ParseError(HatsuError):
    """A fetched document is malformed or misses a mandatory field."""


class DomainVerificationError(HatsuError):
    """A protocol object's identifier is not on the expected domain."""


class DataIntegrityFault(HatsuError):
    """A persisted record violates an invariant enforced at write time."""


class AlreadyExistsError(HatsuError):
    """A local actor with the same identifier is already provisioned."""


class ConfigError(HatsuError):
    """Invalid or missing configuration."""


class CycleCancelled(HatsuError):
    """An actor's synchronization was cancelled before it committed."""
