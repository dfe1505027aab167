"""
Crawler module - Link-following endpoint discovery.

- Crawler: extracts links from accepted pages and queues them
- Frontier: bounded visited set + pending queue
- extract_links: HTML link extraction
"""

from .crawler import Crawler, CRAWLABLE_ORIGINS
from .frontier import AdmitStatus, CrawlState, Frontier
from .link_extractor import extract_links


__all__ = [
    "Crawler",
    "CRAWLABLE_ORIGINS",
    "Frontier",
    "AdmitStatus",
    "CrawlState",
    "extract_links",
]
