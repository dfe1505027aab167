"""
Wordlist loading and FUZZ substitution.
"""

from pathlib import Path
from typing import Iterable, Iterator, List, Union

import structlog

from ..errors import ConfigError
from .candidate import Candidate, Origin, expand_template

logger = structlog.get_logger(__name__)


def load_wordlist(path: Union[str, Path]) -> List[str]:
    """
    Read a wordlist file into memory.

    Blank lines and ``#`` comment lines are skipped; other lines are kept
    verbatim apart from the trailing newline and surrounding whitespace.

    Args:
        path: Wordlist or payloads file

    Returns:
        Entries in file order

    Raises:
        ConfigError: If the file cannot be read
    """
    path = Path(path).expanduser()
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            words = [
                line.strip()
                for line in f
                if line.strip() and not line.lstrip().startswith("#")
            ]
    except OSError as e:
        raise ConfigError(
            f"Cannot read wordlist {path}: {e.strerror or e}",
            {"path": str(path)},
        ) from e

    logger.info("wordlist_loaded", path=str(path), entries=len(words))
    return words


def wordlist_candidates(
    template: str,
    words: Iterable[str],
    origin: Origin = Origin.WORDLIST,
) -> Iterator[Candidate]:
    """Lazily substitute each word into the template"""
    for word in words:
        yield Candidate(
            target_url=expand_template(template, word),
            origin=origin,
            depth=0,
            payload_tag=word,
        )
