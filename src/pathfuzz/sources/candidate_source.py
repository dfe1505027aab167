"""
Candidate Source - One deduplicated stream over every origin.

Static origins (wordlist, mutation, OpenAPI) are lazy iterators; the
crawl origin is the crawler's frontier, which keeps growing while
results land. Origins are served round-robin so none of them starves.

Termination needs a quiescence check: the stream is done only when
every static origin is exhausted, the frontier is empty and no handed-out
candidate is still being processed (it might still queue crawl links).
Workers report the end of processing through ``task_done()``.
"""

import asyncio
from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional, Set

import structlog

from .candidate import Candidate, Origin

ORIGIN_ORDER = (Origin.WORDLIST, Origin.MUTATION, Origin.OPENAPI, Origin.CRAWL)


class CandidateSource:
    """
    Fair-merge, dedup-on-pull candidate stream shared by all workers.

    Example:
        >>> source = CandidateSource({Origin.WORDLIST: iter(candidates)})
        >>> candidate = await source.next()   # None when done
        >>> await source.task_done()
    """

    def __init__(
        self,
        origins: Dict[Origin, Iterable[Candidate]],
        frontier=None,
        context=None,
        poll_interval: float = 0.25,
    ):
        """
        Initialize the candidate source.

        Args:
            origins: Static origin -> iterable of candidates
            frontier: Crawl frontier providing ``pop()`` (None = crawl disabled)
            context: RunContext whose cancellation ends the stream
            poll_interval: How often waiting workers re-check cancellation
        """
        self._static: Dict[Origin, Iterator[Candidate]] = {
            origin: iter(origins[origin])
            for origin in ORIGIN_ORDER
            if origin in origins and origin is not Origin.CRAWL
        }
        self.frontier = frontier
        self.context = context
        self.poll_interval = poll_interval

        self._rotation: List[Origin] = list(self._static)
        if frontier is not None:
            self._rotation.append(Origin.CRAWL)
        self._cursor = 0

        self._dispatched: Set[str] = set()
        self._in_flight = 0
        self._done = False
        self._cond = asyncio.Condition()

        # Statistics
        self.handed_out: Counter = Counter()
        self.duplicates: Counter = Counter()

        self.logger = structlog.get_logger(__name__)

    async def next(self) -> Optional[Candidate]:
        """
        Pull the next undispatched candidate.

        Waits while the only possible source of new work is a candidate
        still in flight. Returns None when the run is done or cancelled.
        """
        async with self._cond:
            while True:
                if self._cancelled():
                    self._finish()
                    return None

                candidate = self._pull()
                if candidate is not None:
                    self._in_flight += 1
                    self.handed_out[candidate.origin.value] += 1
                    return candidate

                # Only an in-flight crawl-enabled candidate can still add work
                if self._done or self.frontier is None or self._in_flight == 0:
                    self._finish()
                    return None

                try:
                    await asyncio.wait_for(self._cond.wait(), self.poll_interval)
                except asyncio.TimeoutError:
                    pass

    async def task_done(self):
        """Report that a candidate handed out by ``next()`` is fully processed"""
        async with self._cond:
            if self._in_flight <= 0:
                raise ValueError("task_done() called more times than next() returned candidates")
            self._in_flight -= 1
            self._cond.notify_all()

    def _cancelled(self) -> bool:
        return self.context is not None and self.context.cancelled

    def _finish(self):
        if not self._done:
            self._done = True
            self.logger.info(
                "candidate_source_exhausted",
                handed_out=dict(self.handed_out),
                duplicates=dict(self.duplicates),
            )
        self._cond.notify_all()

    def _pull(self) -> Optional[Candidate]:
        """
        Round-robin over the origins, skipping already-dispatched URLs.

        Called with the condition lock held; the dedup check-and-insert
        happens here, before the candidate is handed to a worker.
        """
        while self._rotation:
            origin = self._rotation[self._cursor % len(self._rotation)]
            candidate = self._take(origin)

            if candidate is None:
                if origin is not Origin.CRAWL:
                    continue  # exhausted and removed, cursor already on the next origin
                if len(self._rotation) == 1:
                    return None  # frontier empty for now
                self._cursor += 1
                continue

            if candidate.identity in self._dispatched:
                self.duplicates[origin.value] += 1
                continue

            self._dispatched.add(candidate.identity)
            self._cursor += 1
            return candidate
        return None

    def _take(self, origin: Origin) -> Optional[Candidate]:
        if origin is Origin.CRAWL:
            return self.frontier.pop()

        try:
            return next(self._static[origin])
        except StopIteration:
            del self._static[origin]
            index = self._rotation.index(origin)
            self._rotation.remove(origin)
            self._cursor = index
            self.logger.debug("origin_exhausted", origin=origin.value)
            return None

    def was_dispatched(self, url_identity: str) -> bool:
        return url_identity in self._dispatched

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def get_statistics(self) -> dict:
        return {
            "handed_out": dict(self.handed_out),
            "duplicates_dropped": dict(self.duplicates),
            "dispatched": len(self._dispatched),
            "in_flight": self._in_flight,
            "active_origins": [o.value for o in self._rotation],
        }
