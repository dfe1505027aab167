"""
Frontier - The crawler's visited set and pending queue.

Both fields are guarded by one mutex so that the visited check and the
pending insert happen as a single step. A URL enters ``visited`` when it
is admitted to the queue, not when its probe completes, so the same page
is never queued twice while an earlier copy is in flight.
"""

import threading
from collections import Counter, deque
from enum import Enum
from typing import Deque, Dict, Optional, Set

import structlog

from ..sources.candidate import Candidate, Origin, normalize_url


class CrawlState(Enum):
    """Lifecycle of a crawl-discovered URL"""
    DISCOVERED = "discovered"
    QUEUED = "queued"
    DISPATCHED = "dispatched"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERRORED = "errored"


class AdmitStatus(Enum):
    """Why a discovered URL was or was not queued"""
    QUEUED = "queued"
    DUPLICATE = "duplicate"
    TOO_DEEP = "too_deep"
    SATURATED = "saturated"
    PAGE_LIMIT = "page_limit"


class Frontier:
    """
    Bounded crawl queue with backpressure.

    Example:
        >>> frontier = Frontier(max_depth=2, max_pending=100)
        >>> frontier.offer("http://x/secret", depth=1)
        <AdmitStatus.QUEUED: 'queued'>
    """

    def __init__(
        self,
        max_depth: int = 2,
        max_pages: int = 1000,
        max_pending: int = 10000,
    ):
        """
        Initialize the frontier.

        Args:
            max_depth: Deepest depth a queued candidate may have
            max_pages: Total URLs admitted over the whole run
            max_pending: Queue size above which discoveries are dropped
        """
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.max_pending = max_pending

        self._visited: Set[str] = set()
        self._pending: Deque[Candidate] = deque()
        self._states: Dict[str, CrawlState] = {}
        self._lock = threading.Lock()

        self.saturated = False
        self.page_limit_reached = False
        self.dropped: Counter = Counter()

        self.logger = structlog.get_logger(__name__)

    def offer(
        self,
        url: str,
        depth: int,
        payload_tag: Optional[str] = None,
    ) -> AdmitStatus:
        """
        Admit a discovered URL if it is new and within bounds.

        Args:
            url: Absolute URL
            depth: Depth the new candidate would have

        Returns:
            AdmitStatus describing the decision
        """
        identity = normalize_url(url)

        with self._lock:
            if identity in self._visited:
                status = AdmitStatus.DUPLICATE
            elif depth > self.max_depth:
                status = AdmitStatus.TOO_DEEP
            elif len(self._visited) >= self.max_pages:
                self.page_limit_reached = True
                status = AdmitStatus.PAGE_LIMIT
            elif len(self._pending) >= self.max_pending:
                self.saturated = True
                status = AdmitStatus.SATURATED
            else:
                self._visited.add(identity)
                self._states[identity] = CrawlState.QUEUED
                self._pending.append(
                    Candidate(
                        target_url=url,
                        origin=Origin.CRAWL,
                        depth=depth,
                        payload_tag=payload_tag,
                    )
                )
                return AdmitStatus.QUEUED

            self.dropped[status.value] += 1

        if status is AdmitStatus.SATURATED:
            self.logger.debug("frontier_saturated", url=url, pending=self.max_pending)
        return status

    def pop(self) -> Optional[Candidate]:
        """Take the oldest pending candidate, or None if the queue is empty"""
        with self._lock:
            if not self._pending:
                return None
            candidate = self._pending.popleft()
            self._states[candidate.identity] = CrawlState.DISPATCHED
            return candidate

    def set_state(self, url: str, state: CrawlState):
        identity = normalize_url(url)
        with self._lock:
            if identity in self._states:
                self._states[identity] = state

    def state_of(self, url: str) -> Optional[CrawlState]:
        with self._lock:
            return self._states.get(normalize_url(url))

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return normalize_url(url) in self._visited

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def clear(self):
        """Tear down the frontier at the end of a run"""
        with self._lock:
            self._pending.clear()
            self._visited.clear()
            self._states.clear()

    def get_statistics(self) -> dict:
        with self._lock:
            states = Counter(s.value for s in self._states.values())
            return {
                "visited": len(self._visited),
                "pending": len(self._pending),
                "saturated": self.saturated,
                "page_limit_reached": self.page_limit_reached,
                "dropped": dict(self.dropped),
                "states": dict(states),
            }

    def __len__(self) -> int:
        return self.pending_count
