"""
Data models for the feed aggregator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import urlparse


def host_from_link(link: str) -> str:
    """
    Returns the network authority (domain and optional port) of a link.

    Raises ValueError if the link does not parse as a URL or has no host.
    """
    netloc = urlparse(link).netloc
    # Drop any "user:pass@" prefix, keep host[:port]
    host = netloc.rpartition("@")[2]
    if not host:
        raise ValueError(f"Link has no host: {link!r}")
    return host


@dataclass(frozen=True)
class Post:
    """A normalized feed entry."""

    link: str
    title: str
    published: datetime
    host: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "host", host_from_link(self.link))
