"""
RSS/Atom feed parser implementation.

This module provides the RSSParser class for fetching a single feed, filtering
its entries by recency and normalizing them into Post objects.
"""

import calendar
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional
import logging

import requests
import feedparser  # type: ignore
from noise_feed.deadline import Deadline, DeadlineExceeded
from noise_feed.models import Post
from noise_feed.parsers.base import FeedParser

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "NoiseFeedBot/1.0"
CHUNK_SIZE = 64 * 1024
# requests rejects a zero timeout
MIN_TIMEOUT = 0.01


class FeedParseError(Exception):
    """Raised when a retrieved document cannot be read as a feed."""


class MalformedEntryError(Exception):
    """Raised when a single feed entry cannot be normalized."""


def _to_datetime(parsed: Any) -> datetime:
    """Converts a feedparser UTC struct_time into an aware datetime."""
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


class RSSParser(FeedParser):
    """Parses standard RSS and Atom feeds."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ):
        self.user_agent = user_agent
        # Called once per fetch; sessions are not shared between worker threads
        self.session_factory = session_factory or requests.Session

    def _retrieve(self, url: str, deadline: Deadline) -> bytes:
        """Downloads the feed body, giving up once the deadline passes."""
        deadline.check(f"connecting to {url}")
        with self.session_factory() as session:
            resp = session.get(
                url,
                timeout=max(deadline.remaining(), MIN_TIMEOUT),
                headers={"User-Agent": self.user_agent},
                stream=True,
            )
            try:
                resp.raise_for_status()
                chunks = []
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    deadline.check(f"reading {url}")
                    chunks.append(chunk)
                return b"".join(chunks)
            finally:
                resp.close()

    def _parse(self, url: str, content: bytes) -> Any:
        feed = feedparser.parse(content)
        if feed.entries:
            return feed
        if feed.bozo:
            raise FeedParseError(f"Malformed feed {url}: {feed.get('bozo_exception')}")
        if not feed.version:
            raise FeedParseError(f"Not an RSS or Atom document: {url}")
        return feed

    def _to_post(self, entry: Any, cutoff: datetime) -> Optional[Post]:
        """
        Normalizes one entry.

        Returns None for entries older than the cutoff. Raises
        MalformedEntryError when the entry has no usable timestamp and
        ValueError when its link has no host.
        """
        parsed = entry.get("published_parsed") or entry.get("updated_parsed")
        if not parsed:
            raise MalformedEntryError("entry has neither published nor updated time")
        published = _to_datetime(parsed)
        if published < cutoff:
            return None
        return Post(
            link=entry.get("link", ""),
            title=entry.get("title", ""),
            published=published,
        )

    def fetch(self, url: str, deadline: Deadline, cutoff: datetime) -> List[Post]:
        """Fetches and parses a single feed."""
        try:
            content = self._retrieve(url, deadline)
            feed = self._parse(url, content)
        except requests.RequestException as req_err:
            logger.error("Network error fetching %s: %s", url, req_err)
            return []
        except (FeedParseError, DeadlineExceeded) as e:
            logger.error("Error fetching %s: %s", url, e)
            return []

        posts = []
        skipped_old = 0
        for entry in feed.entries:
            try:
                post = self._to_post(entry, cutoff)
            except (MalformedEntryError, ValueError) as e:
                logger.warning(
                    "Skipping entry %r from %s: %s", entry.get("title", ""), url, e
                )
                continue
            if post is None:
                skipped_old += 1
                continue
            posts.append(post)

        if deadline.expired():
            logger.error("Deadline exceeded while parsing %s; dropping it", url)
            return []

        logger.debug(
            "%s: %d relevant entries, %d older than cutoff",
            url,
            len(posts),
            skipped_old,
        )
        return posts
