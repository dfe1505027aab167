"""
Fuzz Engine - Wires every component into one run.

Phases:
1. Setup: load wordlists and payloads, build the candidate origins
2. OpenAPI: turn the document into candidates (optional)
3. Calibration: baseline body length for anomaly detection (optional)
4. Dispatch: run the worker pool until the source is quiescent
5. Teardown: snapshot statistics, drop the crawl frontier

Usage:
    engine = FuzzEngine(config)
    report = await engine.run()
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

import structlog

from ..config import FuzzConfig
from ..crawler import Crawler, Frontier
from ..errors import ConfigError, SpecError
from ..sources import (
    Candidate,
    CandidateSource,
    MutationEngine,
    OpenAPIAdapter,
    Origin,
    ensure_placeholder,
    expand_template,
    load_openapi_document,
    load_wordlist,
    wordlist_candidates,
)
from ..sources.candidate import template_root
from .context import RunContext
from .matcher import Matcher
from .models import ExportRecord, Outcome
from .rate_limiter import RateLimiter, RetryPolicy
from .scheduler import Scheduler
from .sink import ResultSink
from .transport import HttpTransport


@dataclass
class RunReport:
    """Everything a finished run leaves behind"""
    scan_id: str
    target: str
    records: Tuple[ExportRecord, ...]
    statistics: Dict[str, Any]
    duration: float
    cancelled: bool = False
    warnings: List[str] = field(default_factory=list)

    def accepted(self) -> List[ExportRecord]:
        return [r for r in self.records if r.accepted]

    def errored(self) -> List[ExportRecord]:
        return [r for r in self.records if r.outcome in ("timeout", "network_error")]

    def export_records(self, include_errors: bool = False) -> List[ExportRecord]:
        return [
            r for r in self.records
            if r.accepted or r.anomalous or (include_errors and r.outcome != "success")
        ]

    def get_results(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "target": self.target,
            "timestamp": datetime.now().isoformat(),
            "duration": round(self.duration, 3),
            "cancelled": self.cancelled,
            "statistics": self.statistics,
            "warnings": self.warnings,
            "results": [r.to_dict() for r in self.export_records(include_errors=True)],
        }


class FuzzEngine:
    """
    Main fuzzing pipeline.

    Example:
        >>> engine = FuzzEngine(FuzzConfig(url="http://x/FUZZ", wordlist="words.txt"))
        >>> report = await engine.run()
        >>> print(f"Found {len(report.accepted())} paths")
    """

    def __init__(
        self,
        config: FuzzConfig,
        transport=None,
        link_extractor=None,
        context: Optional[RunContext] = None,
        sink: Optional[ResultSink] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Resolved run configuration
            transport: Object with ``async fetch(url)``; an HttpTransport
                built from the config is used when omitted
            link_extractor: Override for crawl link extraction
            context: Shared run context (cancellation, statistics)
            sink: Result sink, e.g. with console observers attached
        """
        if config.url is None:
            raise ConfigError("A target URL is required to run the fuzzer")

        self.config = config
        self.template = ensure_placeholder(config.url)
        self.root_url = template_root(self.template)
        self._transport = transport
        self.link_extractor = link_extractor
        self.context = context or RunContext()
        self.sink = sink or ResultSink()

        self.matcher = Matcher(
            status_codes=config.matcher,
            anomaly_threshold=config.anomaly_threshold if config.mutate else None,
        )
        self.frontier: Optional[Frontier] = None
        self.crawler: Optional[Crawler] = None
        self.source: Optional[CandidateSource] = None
        self.warnings: List[str] = []

        self.logger = structlog.get_logger(__name__)
        self.scan_id = f"scan_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    async def run(self) -> RunReport:
        """
        Run the complete pipeline.

        Returns:
            RunReport with records in completion order

        Raises:
            ConfigError: If no usable candidate origin is configured
            SpecError: If OpenAPI is the only origin and its document is unusable
        """
        self.logger.info(
            "scan_started",
            scan_id=self.scan_id,
            target=self.template,
            threads=self.config.threads,
            matcher=sorted(self.config.matcher),
        )
        started = time.monotonic()

        words = self._phase_setup()

        if self._transport is not None:
            report = await self._run_with(self._transport, words)
        else:
            async with self._build_transport() as transport:
                report = await self._run_with(transport, words)

        report.duration = time.monotonic() - started
        self.logger.info(
            "scan_complete",
            scan_id=self.scan_id,
            accepted=len(report.accepted()),
            errored=len(report.errored()),
            duration=f"{report.duration:.2f}s",
            cancelled=report.cancelled,
        )
        return report

    def _build_transport(self) -> HttpTransport:
        return HttpTransport(
            timeout=self.config.timeout,
            headers=self.config.headers,
            cookies=self.config.cookies,
            auth_token=self.config.auth_token,
            proxy=self.config.proxy,
            connection_limit=max(self.config.threads, 10),
        )

    def _phase_setup(self) -> List[str]:
        """Phase 1: Load wordlist and payloads (ConfigError if unreadable)"""
        words = load_wordlist(self.config.wordlist) if self.config.wordlist else []
        payloads = load_wordlist(self.config.payloads) if self.config.payloads else []

        if not (self.config.wordlist or self.config.payloads or self.config.openapi or self.config.crawl):
            raise ConfigError(
                "Nothing to fuzz: provide a wordlist, payloads, an OpenAPI document or enable crawling"
            )
        if self.config.crawl and self.root_url is None:
            raise ConfigError("Crawling needs FUZZ in the path or query, not in the host")

        if self.config.mutate and not (words or payloads):
            self.logger.warning("mutation_without_seeds", message="no wordlist or payload entries to mutate")

        return words + payloads

    async def _run_with(self, transport, words: List[str]) -> RunReport:
        origins: Dict[Origin, Iterable[Candidate]] = {}

        if words:
            origins[Origin.WORDLIST] = wordlist_candidates(self.template, words)

        if self.config.mutate and words:
            engine = MutationEngine(seed=self.config.mutation_seed)
            origins[Origin.MUTATION] = wordlist_candidates(
                self.template,
                engine.mutate_all(words, self.config.mutations_per_seed),
                origin=Origin.MUTATION,
            )

        if self.config.openapi:
            openapi_candidates = await self._phase_openapi(transport, sole_origin=not origins and not self.config.crawl)
            if openapi_candidates:
                origins[Origin.OPENAPI] = openapi_candidates

        if self.config.crawl:
            self.frontier = Frontier(
                max_depth=self.config.max_depth,
                max_pages=self.config.max_pages,
                max_pending=self.config.max_pending,
            )
            self.crawler = Crawler(self.frontier, link_extractor=self.link_extractor)
            self.crawler.seed(self.root_url)

        self.source = CandidateSource(origins, frontier=self.frontier, context=self.context)

        scheduler = Scheduler(
            source=self.source,
            transport=transport,
            matcher=self.matcher,
            sink=self.sink,
            crawler=self.crawler,
            rate_limiter=RateLimiter(self.config.rate_limit or None),
            retry_policy=RetryPolicy(
                max_retries=self.config.retries,
                base_delay=self.config.backoff_base,
                max_delay=self.config.backoff_cap,
            ),
            context=self.context,
            threads=self.config.threads,
            timeout=self.config.timeout,
        )

        if self.matcher.anomaly_threshold is not None:
            await self._phase_calibration(scheduler)

        await scheduler.run()
        return self._phase_teardown(scheduler)

    async def _phase_openapi(self, transport, sole_origin: bool) -> List[Candidate]:
        """Phase 2: OpenAPI document to candidates"""
        if self.root_url is not None:
            base = self.root_url
        else:
            parts = urlsplit(self.template)
            base = f"{parts.scheme}://{parts.netloc}/"
        try:
            document = await load_openapi_document(self.config.openapi, transport)
            return OpenAPIAdapter(base).candidates(document)
        except SpecError as e:
            if sole_origin:
                self.logger.error("openapi_failed", error=e.message, fatal=True)
                raise
            self.logger.error("openapi_failed", error=e.message, fatal=False)
            self.warnings.append(f"OpenAPI skipped: {e.message}")
            return []

    async def _phase_calibration(self, scheduler: Scheduler):
        """Phase 3: Probe a random non-existent path for the anomaly baseline"""
        token = uuid.uuid4().hex[:12]
        probe = Candidate(
            target_url=expand_template(self.template, token),
            origin=Origin.MUTATION,
            payload_tag=token,
        )
        result = await scheduler.probe(probe)
        if result.outcome is Outcome.SUCCESS and result.body_length is not None:
            self.matcher.set_baseline(result.body_length)
        else:
            self.logger.warning("calibration_failed", url=probe.target_url, outcome=result.outcome.value)
            self.warnings.append("Anomaly detection disabled: calibration request failed")

    def _phase_teardown(self, scheduler: Scheduler) -> RunReport:
        """Phase 5: Collect statistics and release the frontier"""
        statistics: Dict[str, Any] = {
            "run": self.context.get_stats(),
            "source": self.source.get_statistics(),
            "sink": self.sink.get_statistics(),
            "rate_limiter": scheduler.rate_limiter.get_stats(),
        }
        if self.crawler is not None:
            statistics["crawl"] = self.crawler.get_statistics()
            if self.frontier.saturated:
                self.warnings.append("Crawl queue saturated, some discovered links were dropped")
            self.frontier.clear()

        return RunReport(
            scan_id=self.scan_id,
            target=self.template,
            records=self.sink.records(),
            statistics=statistics,
            duration=0.0,
            cancelled=self.context.cancelled,
            warnings=list(self.warnings),
        )

