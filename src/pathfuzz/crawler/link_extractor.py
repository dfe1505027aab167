"""
Link extraction from HTML response bodies.
"""

from typing import List
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

# (tag, attribute) pairs that reference other resources
LINK_ATTRIBUTES = (
    ("a", "href"),
    ("link", "href"),
    ("area", "href"),
    ("form", "action"),
    ("iframe", "src"),
    ("frame", "src"),
    ("script", "src"),
)

_IGNORED_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")


def extract_links(page_url: str, html: str, same_host: bool = True) -> List[str]:
    """
    Extract absolute HTTP(S) links from an HTML body.

    Relative references are resolved against ``page_url``; fragments are
    dropped. With ``same_host`` only links on the page's host are kept.
    """
    soup = BeautifulSoup(html, "html.parser")
    base_netloc = urlparse(page_url).netloc.lower()
    links: List[str] = []
    seen = set()

    for tag_name, attr in LINK_ATTRIBUTES:
        for tag in soup.find_all(tag_name):
            if not isinstance(tag, Tag):
                continue
            value = tag.get(attr)
            if not isinstance(value, str):
                continue
            raw = value.strip()
            if not raw or raw.startswith("#") or raw.lower().startswith(_IGNORED_SCHEMES):
                continue

            try:
                absolute, _ = urldefrag(urljoin(page_url, raw))
                parsed = urlparse(absolute)
            except ValueError:
                # e.g. "http://[broken/" (invalid IPv6 host)
                continue
            if parsed.scheme not in ("http", "https"):
                continue
            if same_host and parsed.netloc.lower() != base_netloc:
                continue
            if absolute not in seen:
                seen.add(absolute)
                links.append(absolute)

    return links
