"""
Concurrent feed aggregation.

This module provides the aggregate function, which fetches every configured
feed in parallel against one shared deadline and merges the results into a
single list sorted newest first.
"""

import concurrent.futures
from datetime import datetime
import logging
import threading
from typing import Iterable, List, Optional, Sequence

from noise_feed.deadline import Deadline
from noise_feed.models import Post
from noise_feed.parsers.base import FeedParser
from noise_feed.parsers.rss import RSSParser

logger = logging.getLogger(__name__)


class PostCollector:
    """Append-only merge point shared by the fetch workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._posts: List[Post] = []
        self._closed = False

    def emit(self, posts: Iterable[Post]) -> bool:
        """Adds posts in one step. Returns False once the collector is closed."""
        with self._lock:
            if self._closed:
                return False
            self._posts.extend(posts)
            return True

    def close(self) -> List[Post]:
        """Refuses further emissions and returns everything collected."""
        with self._lock:
            self._closed = True
            return list(self._posts)


def sort_posts(posts: Iterable[Post]) -> List[Post]:
    """Sorts posts newest first, ties ordered by link."""
    by_link = sorted(posts, key=lambda p: p.link)
    # sorted() is stable, so equal timestamps keep the link order
    return sorted(by_link, key=lambda p: p.published, reverse=True)


def _fetch_into(
    parser: FeedParser,
    url: str,
    deadline: Deadline,
    cutoff: datetime,
    collector: PostCollector,
) -> int:
    posts = parser.fetch(url, deadline, cutoff)
    if deadline.expired():
        logger.error("Deadline exceeded before %s finished; dropping it", url)
        return 0
    if not collector.emit(posts):
        logger.error("Results for %s arrived after aggregation closed", url)
        return 0
    return len(posts)


def aggregate(
    endpoints: Sequence[str],
    deadline: Deadline,
    cutoff: datetime,
    parser: Optional[FeedParser] = None,
) -> List[Post]:
    """Fetches all feeds in parallel and returns their posts, newest first."""
    if not endpoints:
        logger.warning("No feeds configured.")
        return []

    parser = parser or RSSParser()
    collector = PostCollector()
    logger.info("--- Fetching %d feeds ---", len(endpoints))

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=len(endpoints), thread_name_prefix="fetch"
    )
    try:
        future_to_url = {
            executor.submit(_fetch_into, parser, url, deadline, cutoff, collector): url
            for url in endpoints
        }
        done, not_done = concurrent.futures.wait(
            future_to_url, timeout=deadline.remaining()
        )
    finally:
        # Stragglers are abandoned, not joined
        executor.shutdown(wait=False, cancel_futures=True)

    posts = collector.close()

    for future in not_done:
        logger.error("Timed out fetching %s", future_to_url[future])

    failed = 0
    for future in done:
        exc = future.exception()
        if exc is not None:
            failed += 1
            logger.error("%s generated an exception: %s", future_to_url[future], exc)

    logger.info(
        "Fetched %d feeds (%d timed out, %d crashed): %d posts.",
        len(endpoints),
        len(not_done),
        failed,
        len(posts),
    )
    return sort_posts(posts)
