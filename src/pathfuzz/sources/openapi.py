"""
OpenAPI Adapter - Path candidates from an OpenAPI/Swagger document.

The adapter only consumes an already-parsed mapping. Loading the
document (local file or remote URL) is done by ``load_openapi_document``,
which hands the raw text to PyYAML; YAML is a superset of JSON so both
document formats go through the same parser.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlsplit

import structlog
import yaml

from ..errors import SpecError, TransportError
from .candidate import Candidate, Origin

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_PATH_PARAM_RE = re.compile(r"\{[^{}/]+\}")


class OpenAPIAdapter:
    """
    Converts a parsed OpenAPI document into path candidates.

    One candidate is emitted per documented path/operation pair. All
    operations of a path share the same URL (only GET is dispatched),
    so the candidate source collapses them through its dedup set.

    Example:
        >>> adapter = OpenAPIAdapter("http://api.local/")
        >>> adapter.candidates({"paths": {"/users": {"get": {}}}})[0].target_url
        'http://api.local/users'
    """

    def __init__(self, base_url: str, param_value: str = "1"):
        """
        Initialize the adapter.

        Args:
            base_url: Root URL the documented paths are appended to
            param_value: Value substituted for ``{param}`` path templates
        """
        self.base_url = base_url.rstrip("/")
        self.param_value = param_value
        self.logger = structlog.get_logger(__name__)

    def candidates(self, document: Mapping[str, Any]) -> List[Candidate]:
        """
        Build candidates from the document.

        Args:
            document: Parsed OpenAPI 3 or Swagger 2 mapping

        Returns:
            List of candidates in document order

        Raises:
            SpecError: If ``paths`` is missing or not a mapping
        """
        if not isinstance(document, Mapping):
            raise SpecError("OpenAPI document is not a mapping")

        paths = document.get("paths")
        if not isinstance(paths, Mapping):
            raise SpecError(
                "OpenAPI document has no 'paths' object",
                {"keys": sorted(str(k) for k in document.keys())},
            )

        prefix = self._path_prefix(document)
        result: List[Candidate] = []

        for raw_path, item in paths.items():
            path = "/" + str(raw_path).lstrip("/")
            url = f"{self.base_url}{prefix}{_PATH_PARAM_RE.sub(self.param_value, path)}"

            methods = [m for m in HTTP_METHODS if isinstance(item, Mapping) and m in item]
            for method in methods or ["get"]:
                result.append(
                    Candidate(
                        target_url=url,
                        origin=Origin.OPENAPI,
                        depth=0,
                        payload_tag=f"{method.upper()} {raw_path}",
                    )
                )

        self.logger.info(
            "openapi_candidates_built",
            paths=len(paths),
            candidates=len(result),
            prefix=prefix or "/",
        )
        return result

    @staticmethod
    def _path_prefix(document: Mapping[str, Any]) -> str:
        """basePath (Swagger 2) or the path of servers[0].url (OpenAPI 3)"""
        prefix: Optional[str] = None

        base_path = document.get("basePath")
        if isinstance(base_path, str):
            prefix = base_path
        else:
            servers = document.get("servers")
            if isinstance(servers, list) and servers and isinstance(servers[0], Mapping):
                server_url = servers[0].get("url")
                if isinstance(server_url, str):
                    prefix = urlsplit(server_url).path

        if not prefix:
            return ""
        return "/" + prefix.strip("/") if prefix.strip("/") else ""


async def load_openapi_document(ref: str, transport=None) -> Dict[str, Any]:
    """
    Load and parse an OpenAPI document from a file path or http(s) URL.

    Args:
        ref: Local path or URL
        transport: HttpTransport used for remote documents

    Returns:
        Parsed document mapping

    Raises:
        SpecError: If the document cannot be fetched, read or parsed
    """
    logger = structlog.get_logger(__name__)

    if ref.startswith(("http://", "https://")):
        if transport is None:
            raise SpecError("A transport is required to fetch a remote OpenAPI document")
        try:
            response = await transport.fetch(ref)
        except TransportError as e:
            raise SpecError(f"Cannot fetch OpenAPI document {ref}: {e}") from e
        if response.status != 200:
            raise SpecError(
                f"Cannot fetch OpenAPI document {ref}: HTTP {response.status}",
                {"status": response.status},
            )
        text = response.text
    else:
        try:
            text = Path(ref).expanduser().read_text(encoding="utf-8")
        except OSError as e:
            raise SpecError(f"Cannot read OpenAPI document {ref}: {e.strerror or e}") from e

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecError(f"Malformed OpenAPI document {ref}: {e}") from e

    if not isinstance(document, dict):
        raise SpecError(
            f"OpenAPI document {ref} must be a mapping, got {type(document).__name__}"
        )

    logger.info("openapi_document_loaded", ref=ref)
    return document
