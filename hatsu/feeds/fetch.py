# hatsu/feeds/fetch.py
"""
HTTP fetching for feeds and remote actors.

The rest of the package only depends on the `fetch(url, accept=None) -> bytes`
call shape, so tests substitute a plain function and never hit the network.
"""

import logging
from typing import Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..config import Config, DEFAULT_USER_AGENT
from ..errors import TransportError

logger = logging.getLogger(__name__)

Fetch = Callable[..., bytes]


class HttpFetcher:
    """
    Fetch a URL and return the response body.

    Args:
        timeout: Request timeout in seconds
        user_agent: User-Agent header value
    """

    def __init__(self, timeout: float = 30.0, user_agent: str = DEFAULT_USER_AGENT):
        self.timeout = timeout
        self.user_agent = user_agent

    @classmethod
    def from_config(cls, config: Config) -> "HttpFetcher":
        return cls(timeout=config.fetch_timeout, user_agent=config.user_agent)

    def __call__(self, url: str, accept: Optional[str] = None) -> bytes:
        headers = {"User-Agent": self.user_agent}
        if accept:
            headers["Accept"] = accept

        logger.debug(f"GET {url}")
        try:
            req = Request(url, headers=headers, method="GET")
            with urlopen(req, timeout=self.timeout) as response:
                return response.read()
        except HTTPError as e:
            raise TransportError(url, f"HTTP {e.code}") from e
        except URLError as e:
            raise TransportError(url, str(e.reason)) from e
        except (TimeoutError, OSError, ValueError) as e:
            raise TransportError(url, str(e) or type(e).__name__) from e
