"""
Crawler - Feeds links from accepted pages back into the candidate source.

Discovered URLs move through Discovered -> Queued -> Dispatched ->
{Accepted, Rejected, Errored}. Admission is bounded by depth, by a total
page budget and by the pending-queue size; discoveries beyond those
bounds are dropped and counted, never raised.
"""

import asyncio
from typing import Callable, FrozenSet, List, Optional

import structlog

from ..core.matcher import MatchDecision
from ..core.models import ProbeResult
from ..sources.candidate import Origin
from .frontier import AdmitStatus, CrawlState, Frontier
from .link_extractor import extract_links

LinkExtractor = Callable[[str, str], List[str]]

# Mutation payloads are injection strings, their responses are not crawled
CRAWLABLE_ORIGINS: FrozenSet[Origin] = frozenset({Origin.WORDLIST, Origin.OPENAPI, Origin.CRAWL})


class Crawler:
    """
    Link-following stage of the pipeline.

    Example:
        >>> crawler = Crawler(Frontier(max_depth=2))
        >>> crawler.seed("http://example.com/")
        >>> await crawler.on_result(result, decision)
    """

    def __init__(
        self,
        frontier: Frontier,
        link_extractor: Optional[LinkExtractor] = None,
        crawlable_origins: FrozenSet[Origin] = CRAWLABLE_ORIGINS,
    ):
        """
        Initialize the crawler.

        Args:
            frontier: Visited set + pending queue shared with the candidate source
            link_extractor: ``(page_url, html) -> [absolute urls]``
            crawlable_origins: Origins whose accepted pages are parsed
        """
        self.frontier = frontier
        self.link_extractor = link_extractor or extract_links
        self.crawlable_origins = crawlable_origins

        # Statistics
        self.pages_parsed = 0
        self.links_discovered = 0
        self.links_queued = 0

        self.logger = structlog.get_logger(__name__)

    def seed(self, url: str) -> AdmitStatus:
        """Queue a start page at depth 0"""
        status = self.frontier.offer(url, depth=0)
        self.logger.info("crawl_seeded", url=url, status=status.value)
        return status

    async def on_result(self, result: ProbeResult, decision: MatchDecision) -> int:
        """
        Process a classified result.

        Args:
            result: Completed probe
            decision: Matcher decision for it

        Returns:
            Number of new candidates queued
        """
        candidate = result.candidate

        if candidate.origin is Origin.CRAWL:
            if result.errored:
                state = CrawlState.ERRORED
            elif decision.accepted:
                state = CrawlState.ACCEPTED
            else:
                state = CrawlState.REJECTED
            self.frontier.set_state(candidate.target_url, state)

        if not self._should_parse(result, decision):
            return 0

        # Parsing is CPU work; keep it off the event loop and outside any lock
        links = await asyncio.to_thread(self.link_extractor, candidate.target_url, result.body)
        self.pages_parsed += 1
        self.links_discovered += len(links)

        queued = 0
        for link in links:
            status = self.frontier.offer(link, depth=candidate.depth + 1)
            if status is AdmitStatus.QUEUED:
                queued += 1

        self.links_queued += queued
        if links:
            self.logger.debug(
                "links_extracted",
                page=candidate.target_url,
                found=len(links),
                queued=queued,
                depth=candidate.depth + 1,
            )
        return queued

    def _should_parse(self, result: ProbeResult, decision: MatchDecision) -> bool:
        candidate = result.candidate
        if not decision.accepted or not result.body:
            return False
        if candidate.origin not in self.crawlable_origins:
            return False
        # Children of a page at max depth would be rejected anyway
        if candidate.depth >= self.frontier.max_depth:
            return False

        content_type = (result.content_type or "").lower()
        if content_type:
            return "html" in content_type
        return "<" in result.body[:1024]

    def get_statistics(self) -> dict:
        stats = self.frontier.get_statistics()
        stats.update(
            {
                "pages_parsed": self.pages_parsed,
                "links_discovered": self.links_discovered,
                "links_queued": self.links_queued,
            }
        )
        return stats
