# hatsu/config.py
"""
Runtime configuration.

A Config is built once (from the environment, a YAML file or a dict) and
passed explicitly to the components that need it.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

ENV_PREFIX = "HATSU_"
DEFAULT_USER_AGENT = "hatsu/0.1.0"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class Config:
    """
    Bridge configuration.

    Attributes:
        domain: Public domain actors are served from (e.g. "example.com")
        data_dir: Directory holding the actor index and feed snapshots
        fetch_timeout: Seconds before a feed or actor fetch is abandoned
        user_agent: User-Agent header sent with every fetch
        max_workers: Number of actors synchronized concurrently
        sync_interval: Seconds between scheduled synchronization cycles
        track_changes: Report edited items (same id, new content) as Changed
    """
    domain: str
    data_dir: Path = Path("./hatsu-data")
    fetch_timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    max_workers: int = 4
    sync_interval: float = 300.0
    track_changes: bool = False

    def __post_init__(self):
        if not self.domain or not str(self.domain).strip():
            raise ConfigError("domain is required")
        if "/" in self.domain or "://" in self.domain:
            raise ConfigError(f"domain must be a bare host name, got {self.domain!r}")
        self.data_dir = Path(self.data_dir)
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout must be positive, got {self.fetch_timeout}")
        if self.sync_interval <= 0:
            raise ConfigError(f"sync_interval must be positive, got {self.sync_interval}")

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """Build a config from a mapping, converting values to field types."""
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            if value is None:
                continue
            kwargs[name] = _convert(name, value)

        if "domain" not in kwargs:
            raise ConfigError("domain is required")
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a config from HATSU_* environment variables."""
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key in environ:
                data[f.name] = environ[key]
        return cls.from_dict(data)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "Config":
        """Parse config from a YAML mapping."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML config: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path | str) -> "Config":
        """Load config from a YAML file."""
        with open(path, "r") as f:
            return cls.from_yaml(f.read())


def _convert(name: str, value: Any) -> Any:
    try:
        if name in ("fetch_timeout", "sync_interval"):
            return float(value)
        if name == "max_workers":
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if name == "track_changes":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(value)
        if name == "data_dir":
            return Path(value)
        return str(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}")
