"""Unit tests for the concurrent aggregator."""

import datetime
import threading
import unittest

from noise_feed.deadline import Deadline
from noise_feed.models import Post
from noise_feed.services.aggregator import PostCollector, aggregate, sort_posts

NOW = datetime.datetime.now(datetime.timezone.utc)
CUTOFF = NOW - datetime.timedelta(days=60)


def make_post(link, age_hours=0.0, title="T"):
    return Post(
        link=link, title=title, published=NOW - datetime.timedelta(hours=age_hours)
    )


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now=0.0):
        self.now = now
        self.read = threading.Event()

    def __call__(self):
        self.read.set()
        return self.now


class FakeParser:
    """Returns canned posts per URL; URLs in `blocking` wait on an event."""

    def __init__(self, results, blocking=(), failing=()):
        self.results = results
        self.blocking = set(blocking)
        self.failing = set(failing)
        self.release = threading.Event()
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, url, deadline, cutoff):
        with self._lock:
            self.calls.append((url, deadline, cutoff))
        if url in self.failing:
            raise RuntimeError("parser bug")
        if url in self.blocking:
            self.release.wait(5)
        return list(self.results.get(url, []))


class TestAggregate(unittest.TestCase):
    def test_merges_and_sorts_newest_first(self):
        parser = FakeParser(
            {
                "https://feed-b.test": [make_post("https://b.test/2", age_hours=1)],
                "https://feed-a.test": [make_post("https://a.test/1")],
            }
        )
        posts = aggregate(
            ["https://feed-a.test", "https://feed-b.test"], Deadline(5), CUTOFF, parser
        )

        self.assertEqual([p.link for p in posts], ["https://a.test/1", "https://b.test/2"])
        self.assertEqual([p.host for p in posts], ["a.test", "b.test"])

    def test_every_feed_gets_shared_deadline_and_cutoff(self):
        parser = FakeParser({})
        deadline = Deadline(5)
        aggregate(["u1", "u2", "u3"], deadline, CUTOFF, parser)

        self.assertEqual(sorted(c[0] for c in parser.calls), ["u1", "u2", "u3"])
        for _, d, c in parser.calls:
            self.assertIs(d, deadline)
            self.assertEqual(c, CUTOFF)

    def test_output_is_non_increasing(self):
        results = {
            f"feed{i}": [make_post(f"https://h{i}.test/{j}", age_hours=(i * 7 + j * 3) % 11) for j in range(5)]
            for i in range(6)
        }
        posts = aggregate(list(results), Deadline(5), CUTOFF, FakeParser(results))

        self.assertEqual(len(posts), 30)
        for newer, older in zip(posts, posts[1:]):
            self.assertGreaterEqual(newer.published, older.published)

    def test_no_deduplication_across_feeds(self):
        shared = "https://same.test/post"
        parser = FakeParser({"f1": [make_post(shared)], "f2": [make_post(shared, 2)]})
        posts = aggregate(["f1", "f2"], Deadline(5), CUTOFF, parser)
        self.assertEqual([p.link for p in posts], [shared, shared])

    def test_all_feeds_failing_returns_empty(self):
        parser = FakeParser({}, failing=["f1", "f2"])
        with self.assertLogs("noise_feed.services.aggregator", level="ERROR"):
            posts = aggregate(["f1", "f2"], Deadline(5), CUTOFF, parser)
        self.assertEqual(posts, [])

    def test_no_feeds_returns_empty(self):
        self.assertEqual(aggregate([], Deadline(5), CUTOFF, FakeParser({})), [])

    def test_crashing_parser_is_isolated(self):
        parser = FakeParser({"good": [make_post("https://g.test/1")]}, failing=["bad"])
        with self.assertLogs("noise_feed.services.aggregator", level="ERROR") as logs:
            posts = aggregate(["bad", "good"], Deadline(5), CUTOFF, parser)

        self.assertEqual([p.link for p in posts], ["https://g.test/1"])
        self.assertTrue(any("parser bug" in line for line in logs.output))

    def test_timed_out_feed_contributes_nothing(self):
        parser = FakeParser(
            {
                "slow": [make_post("https://slow.test/1")],
                "fast": [
                    make_post("https://b.test/older", age_hours=2),
                    make_post("https://b.test/newer", age_hours=1),
                ],
            },
            blocking=["slow"],
        )
        try:
            with self.assertLogs("noise_feed.services.aggregator", level="ERROR") as logs:
                posts = aggregate(["slow", "fast"], Deadline(0.3), CUTOFF, parser)
        finally:
            parser.release.set()

        self.assertEqual(
            [p.link for p in posts], ["https://b.test/newer", "https://b.test/older"]
        )
        self.assertTrue(any("Timed out fetching slow" in line for line in logs.output))

    def test_feed_finishing_after_deadline_contributes_nothing(self):
        clock = FakeClock()
        deadline = Deadline(10, clock=clock)
        clock.read.clear()

        class LateParser(FakeParser):
            def fetch(self, url, deadline, cutoff):
                posts = super().fetch(url, deadline, cutoff)
                # Finish only after aggregate has taken its wait timeout
                clock.read.wait(5)
                clock.now = 100.0
                return posts

        parser = LateParser({"late": [make_post("https://late.test/1")]})
        with self.assertLogs("noise_feed.services.aggregator", level="ERROR") as logs:
            posts = aggregate(["late"], deadline, CUTOFF, parser)

        self.assertEqual(posts, [])
        self.assertTrue(
            any("Deadline exceeded before late finished" in line for line in logs.output)
        )


class TestPostCollector(unittest.TestCase):
    def test_emit_refused_after_close(self):
        collector = PostCollector()
        self.assertTrue(collector.emit([make_post("https://a.test/1")]))
        collected = collector.close()
        self.assertFalse(collector.emit([make_post("https://a.test/2")]))
        self.assertEqual([p.link for p in collected], ["https://a.test/1"])

    def test_concurrent_emission(self):
        collector = PostCollector()
        batches = [[make_post(f"https://t{i}.test/{j}") for j in range(50)] for i in range(8)]
        threads = [threading.Thread(target=collector.emit, args=(b,)) for b in batches]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(collector.close()), 400)


class TestSortPosts(unittest.TestCase):
    def test_ties_broken_by_link(self):
        posts = [
            make_post("https://c.test/"),
            make_post("https://a.test/"),
            make_post("https://b.test/", age_hours=-1),
        ]
        ordered = sort_posts(posts)
        self.assertEqual(
            [p.link for p in ordered],
            ["https://b.test/", "https://a.test/", "https://c.test/"],
        )


if __name__ == "__main__":
    unittest.main()
