"""
Scheduler - Bounded worker pool running the probe pipeline.

Each worker loops: pull a candidate, pass the rate gate, issue the
request with a per-request deadline, retry transient failures with
capped exponential backoff, then classify, record and crawl the result
before pulling the next one. Exactly ``threads`` workers run, so there
are never more than ``threads`` requests in flight.

Design Pattern: Producer-Consumer (CandidateSource -> workers -> ResultSink)
"""

import asyncio
import time
from typing import Optional

import structlog

from ..errors import NetworkError, RequestTimeout
from .context import RunContext
from .matcher import Matcher
from .models import Outcome, ProbeResult
from .rate_limiter import RateLimiter, RetryPolicy
from .sink import ResultSink


class Scheduler:
    """
    Fixed-size async worker pool.

    Example:
        >>> scheduler = Scheduler(source, transport, matcher, sink, threads=40)
        >>> await scheduler.run()
    """

    def __init__(
        self,
        source,
        transport,
        matcher: Matcher,
        sink: ResultSink,
        crawler=None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        context: Optional[RunContext] = None,
        threads: int = 40,
        timeout: float = 10.0,
    ):
        """
        Initialize the scheduler.

        Args:
            source: CandidateSource providing ``next()``/``task_done()``
            transport: Object with ``async fetch(url) -> HttpResponse``
            matcher: Result classifier
            sink: Result collector
            crawler: Crawler fed with classified results (None = no crawl)
            rate_limiter: Shared dispatch gate (None = unlimited)
            retry_policy: Retry/backoff policy for transient failures
            context: Shared run context (cancellation, statistics)
            threads: Number of concurrent workers
            timeout: Per-request deadline in seconds
        """
        if threads < 1:
            raise ValueError("threads must be >= 1")

        self.source = source
        self.transport = transport
        self.matcher = matcher
        self.sink = sink
        self.crawler = crawler
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.context = context or RunContext()
        self.threads = threads
        self.timeout = timeout

        self.logger = structlog.get_logger(__name__)

    async def run(self):
        """Run all workers until the source is exhausted or the run is cancelled"""
        self.logger.info(
            "scheduler_started",
            threads=self.threads,
            timeout=self.timeout,
            max_retries=self.retry_policy.max_retries,
        )
        started = time.monotonic()

        async with asyncio.TaskGroup() as tg:
            for i in range(self.threads):
                tg.create_task(self._worker(i))

        self.logger.info(
            "scheduler_finished",
            duration=f"{time.monotonic() - started:.2f}s",
            **self.context.get_stats(),
        )

    async def _worker(self, worker_id: int):
        """
        Pull-dispatch-classify loop of one worker.

        Args:
            worker_id: Worker identifier
        """
        self.logger.debug("worker_started", worker_id=worker_id)

        while not self.context.cancelled:
            candidate = await self.source.next()
            if candidate is None:
                break

            try:
                result = await self.probe(candidate)
                await self._handle(result)
            except Exception as e:
                # Failures are per result; the worker keeps pulling
                self.logger.error(
                    "worker_error",
                    worker_id=worker_id,
                    url=candidate.target_url,
                    error=str(e) or type(e).__name__,
                )
                self.context.stats.worker_errors += 1
            finally:
                await self.source.task_done()

        self.logger.debug("worker_stopped", worker_id=worker_id)

    async def probe(self, candidate) -> ProbeResult:
        """
        Dispatch one candidate with retries.

        Never raises for network problems; the failure kind is returned
        as the result outcome.
        """
        started = time.monotonic()
        attempts = 0
        outcome = Outcome.CANCELLED
        error: Optional[str] = None

        while True:
            await self.rate_limiter.acquire()
            if self.context.cancelled:
                # Keep the last real outcome, if any attempt was issued
                break

            attempts += 1
            self.context.request_started()
            try:
                response = await asyncio.wait_for(
                    self.transport.fetch(candidate.target_url),
                    self.timeout,
                )
            except (RequestTimeout, asyncio.TimeoutError) as e:
                outcome, error = Outcome.TIMEOUT, str(e) or "timed out"
            except NetworkError as e:
                outcome, error = Outcome.NETWORK_ERROR, str(e)
                if not e.transient:
                    break
            else:
                body = response.text
                return ProbeResult(
                    candidate=candidate,
                    outcome=Outcome.SUCCESS,
                    attempt_count=attempts,
                    elapsed=time.monotonic() - started,
                    status_code=response.status,
                    body_length=response.length,
                    content_type=response.content_type,
                    body=body,
                )
            finally:
                self.context.request_finished()

            if attempts >= self.retry_policy.max_attempts or self.context.cancelled:
                break

            delay = self.retry_policy.backoff(attempts)
            self.context.stats.retries += 1
            self.logger.debug(
                "probe_retry",
                url=candidate.target_url,
                attempt=attempts,
                outcome=outcome.value,
                backoff=f"{delay:.2f}s",
            )
            await asyncio.sleep(delay)
            if self.context.cancelled:
                break

        return ProbeResult(
            candidate=candidate,
            outcome=outcome,
            attempt_count=attempts,
            elapsed=time.monotonic() - started,
            error=error,
        )

    async def _handle(self, result: ProbeResult):
        """Classify, record and crawl one result"""
        stats = self.context.stats
        stats.by_outcome[result.outcome.value] += 1

        if result.outcome is Outcome.CANCELLED:
            stats.cancelled += 1
            return

        stats.dispatched += 1
        decision = self.matcher.evaluate(result)

        if decision.accepted:
            stats.accepted += 1
        if decision.anomalous:
            stats.anomalous += 1
        if result.errored:
            stats.errored += 1
            self.logger.warning(
                "probe_failed",
                url=result.candidate.target_url,
                outcome=result.outcome.value,
                attempts=result.attempt_count,
                error=result.error,
            )

        self.sink.record(result, decision)

        if self.crawler is not None:
            await self.crawler.on_result(result, decision)
