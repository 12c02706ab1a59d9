# env vars + constants
import os
from dataclasses import dataclass
from typing import Dict, Optional

SERVICES = ("voter", "poll", "votes")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORTS: Dict[str, int] = {"voter": 1080, "poll": 2080, "votes": 3080}
DEFAULT_VOTER_API_URL = "http://localhost:1080"
DEFAULT_POLL_API_URL = "http://localhost:2080"
DEFAULT_HTTP_TIMEOUT = 1.5

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "console")


def env_or_default(name: str, default: str) -> str:
    """Environment value when set and non-empty, otherwise ``default``."""
    value = os.getenv(name, "")
    return value if value else default


@dataclass
class Settings:
    service: str
    host: str = DEFAULT_HOST
    port: int = 0
    # empty cache_url selects the in-memory store
    cache_url: str = ""
    voter_api_url: str = DEFAULT_VOTER_API_URL
    poll_api_url: str = DEFAULT_POLL_API_URL
    # voter service looks polls up through the votes service when set
    votes_api_url: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self) -> None:
        if self.service not in SERVICES:
            raise ValueError(f"unknown service {self.service!r}")
        if not self.port:
            self.port = DEFAULT_PORTS[self.service]


def load_settings(
    service: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    cache_url: Optional[str] = None,
    voter_api_url: Optional[str] = None,
    poll_api_url: Optional[str] = None,
    votes_api_url: Optional[str] = None,
    http_timeout: Optional[float] = None,
) -> Settings:
    """Build settings from command-line values, letting environment variables win."""
    defaults = Settings(service=service)

    port_value = env_or_default("PORT", str(port or defaults.port))
    try:
        resolved_port = int(port_value)
    except ValueError:
        resolved_port = port or defaults.port

    timeout_value = env_or_default(
        "HTTP_TIMEOUT", str(http_timeout or defaults.http_timeout)
    )
    try:
        resolved_timeout = float(timeout_value)
    except ValueError:
        resolved_timeout = http_timeout or defaults.http_timeout

    return Settings(
        service=service,
        host=env_or_default("HOST", host or defaults.host),
        port=resolved_port,
        cache_url=env_or_default("CACHE_URL", cache_url or defaults.cache_url),
        voter_api_url=env_or_default(
            "VOTER_API_URL", voter_api_url or defaults.voter_api_url
        ),
        poll_api_url=env_or_default(
            "POLL_API_URL", poll_api_url or defaults.poll_api_url
        ),
        votes_api_url=env_or_default(
            "VOTES_API_URL", votes_api_url or defaults.votes_api_url
        ),
        http_timeout=resolved_timeout,
    )
