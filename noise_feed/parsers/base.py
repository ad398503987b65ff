"""
Base classes and interfaces for feed parsers.

This module defines the contract that all feed parsers must follow.
"""

from datetime import datetime
from typing import Protocol, List

from noise_feed.deadline import Deadline
from noise_feed.models import Post


class FeedParser(Protocol):
    """
    Protocol for feed parsers.

    Classes implementing this protocol fetch a feed before the given deadline
    and return the entries published at or after the cutoff as Post objects.
    Implementations log endpoint failures and return an empty list instead of
    raising.
    """

    def fetch(self, url: str, deadline: Deadline, cutoff: datetime) -> List[Post]:
        """Fetches and parses a feed."""
