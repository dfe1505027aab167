"""
Candidate - A single generated request target awaiting dispatch.

Candidates are identified by their normalized absolute URL so that the
same target reached through different origins (wordlist, mutation,
OpenAPI, crawl) is dispatched at most once per run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

PLACEHOLDER = "FUZZ"

_DEFAULT_PORTS = {"http": 80, "https": 443}


class Origin(Enum):
    """Producer that created a candidate"""
    WORDLIST = "wordlist"
    MUTATION = "mutation"
    OPENAPI = "openapi"
    CRAWL = "crawl"


@dataclass(frozen=True)
class Candidate:
    """Represents one request target"""
    target_url: str
    origin: Origin
    depth: int = 0
    payload_tag: Optional[str] = None  # substituted word, mutation or "GET /path"
    identity: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "identity", normalize_url(self.target_url))


def normalize_url(url: str) -> str:
    """
    Normalize a URL into its dedup identity.

    Scheme and host are lower-cased, default ports and fragments dropped,
    an empty path becomes "/". Path and query are kept verbatim because
    encoded bypass tokens must stay distinct from their decoded form.

    Args:
        url: Absolute URL

    Returns:
        Normalized URL string
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"

    try:
        port = parts.port
    except ValueError:
        port = None

    netloc = host
    if parts.username:
        netloc = f"{parts.username}@{host}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def ensure_placeholder(template: str) -> str:
    """Append "/FUZZ" when the template carries no placeholder"""
    if PLACEHOLDER in template:
        return template
    return f"{template.rstrip('/')}/{PLACEHOLDER}"


def expand_template(template: str, value: str) -> str:
    """Replace every FUZZ occurrence with the same value, verbatim"""
    return template.replace(PLACEHOLDER, value)


def template_root(template: str) -> Optional[str]:
    """
    Directory URL that holds the fuzzed segment.

    ``http://x/api/FUZZ.php`` -> ``http://x/api/``. Returns None when the
    placeholder sits in the scheme or host part.
    """
    head = template.split(PLACEHOLDER, 1)[0]
    parts = urlsplit(head)
    if not parts.scheme or not parts.netloc or PLACEHOLDER in template.split("/", 3)[2]:
        return None

    path = parts.path
    directory = path[: path.rfind("/") + 1] if "/" in path else "/"
    return urlunsplit((parts.scheme, parts.netloc, directory or "/", "", ""))
