"""
Unit tests for the Scheduler worker pool.

Run with: pytest tests/unit/test_scheduler.py -v
"""

import asyncio
import random
import time

import pytest

from pathfuzz.core.context import RunContext
from pathfuzz.core.matcher import Matcher
from pathfuzz.core.models import Outcome
from pathfuzz.core.rate_limiter import RateLimiter, RetryPolicy
from pathfuzz.core.scheduler import Scheduler
from pathfuzz.core.sink import ResultSink
from pathfuzz.crawler import Crawler, Frontier
from pathfuzz.errors import NetworkError
from pathfuzz.sources import CandidateSource, Origin, wordlist_candidates

NO_BACKOFF = RetryPolicy(max_retries=2, base_delay=0.0, max_delay=0.0)


def _scheduler(transport, words, threads=4, context=None, **kwargs):
    context = context or RunContext()
    source = CandidateSource(
        {Origin.WORDLIST: wordlist_candidates("http://x/FUZZ", words)},
        frontier=kwargs.pop("frontier", None),
        context=context,
        poll_interval=0.05,
    )
    sink = ResultSink()
    scheduler = Scheduler(
        source=source,
        transport=transport,
        matcher=Matcher(kwargs.pop("matcher", {200})),
        sink=sink,
        context=context,
        threads=threads,
        retry_policy=kwargs.pop("retry_policy", NO_BACKOFF),
        **kwargs,
    )
    return scheduler, sink, context


class TestScheduler:
    """Test suite for Scheduler"""

    def test_threads_must_be_positive(self, fake_transport):
        with pytest.raises(ValueError):
            _scheduler(fake_transport(), [], threads=0)

    @pytest.mark.asyncio
    async def test_accepts_only_matching_status(self, fake_transport):
        transport = fake_transport(routes={"http://x/a": (200, "hello", "text/plain")})
        scheduler, sink, context = _scheduler(transport, ["a", "b"])

        await scheduler.run()

        assert [(r.url, r.status) for r in sink.accepted()] == [("http://x/a", 200)]
        assert context.stats.dispatched == 2

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_threads(self, fake_transport):
        """Test in-flight requests stay at or below the worker count"""
        rng = random.Random(5)

        class JitteryTransport(fake_transport):
            async def fetch(self, url):
                self.latency = rng.uniform(0.0, 0.02)
                return await super().fetch(url)

        transport = JitteryTransport()
        scheduler, _, context = _scheduler(transport, [f"w{i}" for i in range(120)], threads=7)

        await scheduler.run()

        assert len(transport.calls) == 120
        assert transport.peak_in_flight <= 7
        assert context.stats.peak_in_flight <= 7

    @pytest.mark.asyncio
    async def test_duplicate_words_dispatched_once(self, fake_transport):
        transport = fake_transport()
        scheduler, _, _ = _scheduler(transport, ["a", "a", "b", "a"])

        await scheduler.run()

        assert sorted(transport.calls) == ["http://x/a", "http://x/b"]

    @pytest.mark.asyncio
    async def test_connection_refused_retried_then_recorded(self, fake_transport):
        """Test retries=2 means exactly three attempts and a NetworkError outcome"""
        transport = fake_transport(failures={"http://x/down": None})
        scheduler, sink, context = _scheduler(transport, ["down"])

        await scheduler.run()

        assert transport.count("http://x/down") == 3
        [record] = sink.records()
        assert record.outcome == Outcome.NETWORK_ERROR.value
        assert record.attempts == 3
        assert record.status is None
        assert context.stats.retries == 2

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, fake_transport, timeout_error):
        transport = fake_transport(
            routes={"http://x/a": (200, "ok", "text/plain")},
            failures={"http://x/a": 1},
            failure=timeout_error,
        )
        scheduler, sink, _ = _scheduler(transport, ["a"])

        await scheduler.run()

        [record] = sink.records()
        assert record.accepted
        assert record.attempts == 2

    @pytest.mark.asyncio
    async def test_deadline_turns_hang_into_timeout(self, fake_transport):
        transport = fake_transport(hang={"http://x/slow"})
        scheduler, sink, _ = _scheduler(
            transport, ["slow"], timeout=0.05, retry_policy=RetryPolicy(max_retries=0),
        )

        await scheduler.run()

        [record] = sink.records()
        assert record.outcome == "timeout"
        assert record.attempts == 1

    @pytest.mark.asyncio
    async def test_rate_limit_on_single_worker(self, fake_transport):
        """Test K dispatches on one worker take at least (K-1) x interval"""
        transport = fake_transport()
        stamps = []

        original = transport.fetch

        async def stamped(url):
            stamps.append(time.monotonic())
            return await original(url)

        transport.fetch = stamped
        scheduler, _, _ = _scheduler(
            transport, ["a", "b", "c", "d"], threads=1, rate_limiter=RateLimiter(interval_ms=40),
        )

        await scheduler.run()

        assert len(stamps) == 4
        assert stamps[-1] - stamps[0] >= 3 * 0.04 - 0.01

    @pytest.mark.asyncio
    async def test_cancel_drains_without_new_dispatches(self, fake_transport):
        transport = fake_transport(latency=0.02)
        context = RunContext()
        scheduler, sink, _ = _scheduler(
            transport, [f"w{i}" for i in range(500)], threads=2, context=context,
        )

        async def cancel_soon():
            await asyncio.sleep(0.05)
            context.cancel("test")

        await asyncio.gather(scheduler.run(), cancel_soon())

        assert context.cancelled
        assert len(transport.calls) < 500
        assert transport.in_flight == 0

    @pytest.mark.asyncio
    async def test_crawl_discovery_feeds_back(self, fake_transport):
        """Test a link found on an accepted page is dispatched with origin crawl"""
        transport = fake_transport(routes={
            "http://x/": (200, '<a href="/secret">s</a><a href="/a">a</a>', "text/html"),
            "http://x/a": (200, "plain", "text/plain"),
            "http://x/secret": (200, "hidden", "text/plain"),
        })
        frontier = Frontier(max_depth=2)
        crawler = Crawler(frontier)
        crawler.seed("http://x/")
        scheduler, sink, _ = _scheduler(transport, ["a"], frontier=frontier, crawler=crawler)

        await scheduler.run()

        by_url = {r.url: r for r in sink.records()}
        assert by_url["http://x/secret"].origin == "crawl"
        assert by_url["http://x/secret"].depth == 1
        # "/a" came from both the wordlist and the crawl but is fetched once
        assert transport.count("http://x/a") == 1

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_issues_no_new_attempt(self, fake_transport):
        """Test a cancel that lands in the retry sleep stops further attempts"""
        transport = fake_transport(failures={"http://x/down": None})
        context = RunContext()
        scheduler, sink, _ = _scheduler(
            transport,
            ["down"],
            threads=1,
            context=context,
            retry_policy=RetryPolicy(max_retries=2, base_delay=0.2, max_delay=0.2),
        )

        async def cancel_during_backoff():
            await asyncio.sleep(0.05)
            context.cancel("test")

        await asyncio.gather(scheduler.run(), cancel_during_backoff())

        assert transport.count("http://x/down") == 1
        [record] = sink.records()
        assert record.outcome == Outcome.NETWORK_ERROR.value
        assert record.attempts == 1

    @pytest.mark.asyncio
    async def test_non_transient_failure_not_retried(self, fake_transport):
        transport = fake_transport(
            failures={"http://x/bad": None},
            failure=lambda url: NetworkError("invalid URL", url, transient=False),
        )
        scheduler, sink, context = _scheduler(transport, ["bad"])

        await scheduler.run()

        assert transport.count("http://x/bad") == 1
        [record] = sink.records()
        assert record.outcome == Outcome.NETWORK_ERROR.value
        assert record.attempts == 1
        assert context.stats.retries == 0

    @pytest.mark.asyncio
    async def test_malformed_link_does_not_stop_the_run(self, fake_transport):
        """Test an unparsable href is skipped and the valid link is still crawled"""
        transport = fake_transport(routes={
            "http://x/": (200, '<a href="http://[broken/">b</a><a href="/secret">s</a>', "text/html"),
            "http://x/secret": (200, "hidden", "text/plain"),
        })
        frontier = Frontier(max_depth=2)
        crawler = Crawler(frontier)
        crawler.seed("http://x/")
        scheduler, sink, context = _scheduler(transport, [], frontier=frontier, crawler=crawler)

        await scheduler.run()

        urls = {r.url for r in sink.records()}
        assert "http://x/secret" in urls
        assert context.stats.worker_errors == 0

    @pytest.mark.asyncio
    async def test_handler_error_is_logged_and_pool_keeps_going(self, fake_transport):
        """Test an unexpected error for one result does not cancel other workers"""

        class BrokenCrawler:
            async def on_result(self, result, decision):
                if result.candidate.target_url == "http://x/a":
                    raise RuntimeError("parser exploded")
                return 0

        transport = fake_transport()
        scheduler, sink, context = _scheduler(
            transport, ["a", "b", "c"], threads=2, crawler=BrokenCrawler(),
        )

        await scheduler.run()

        assert sorted(transport.calls) == ["http://x/a", "http://x/b", "http://x/c"]
        assert len(sink.records()) == 3
        assert context.stats.worker_errors == 1
