"""
Mutation Engine - Payload variants from seed strings.

Each seed is run through a fixed sequence of operators (case tricks,
percent-encoding, bypass tokens, truncation/extension, whitespace and
comment injection). When the single operators are used up, pairs of
operators are composed until the requested count is reached.

Random choices (special-character suffix, encoded position) come from a
``random.Random`` seeded with ``mutation_seed``. Without a seed the
output order of those choices is non-deterministic between runs.
"""

import itertools
import random
from typing import Callable, Iterable, Iterator, List, Optional

import structlog

SPECIAL_CHARS = ("'", '"', "<", ">", ";", "|", "&")

BYPASS_PREFIXES = ("../", "..;/", "%2e%2e/", "./", "/", ";/")
BYPASS_SUFFIXES = ("%00", "%2f", "/.", "//", "..;/", "%20", "%3f", "%23")
EXTENSIONS = (".bak", ".old", "~", ".swp", ".json")
INJECTIONS = ("%20", "%09", "/**/", "%0a", "--")


class MutationEngine:
    """
    Deterministic-length payload mutator.

    Example:
        >>> engine = MutationEngine(seed=1337)
        >>> list(engine.mutate("admin", 2))
        ['ADMIN', 'nimda']
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize the mutation engine.

        Args:
            seed: Seed for random operators (None = non-reproducible)
        """
        self.seed = seed
        self.logger = structlog.get_logger(__name__)

    def mutate(self, payload: str, count: int) -> Iterator[str]:
        """
        Lazily yield up to ``count`` distinct variants of ``payload``.

        The seed itself and repeated variants are skipped. For a given
        payload, count and engine seed the sequence is always the same.
        """
        if count <= 0 or not payload:
            return

        rng = self._rng_for(payload)
        operators = self._operators(rng)
        seen = {payload}
        produced = 0

        for variant in self._variants(payload, operators):
            if variant in seen or not variant:
                continue
            seen.add(variant)
            yield variant
            produced += 1
            if produced >= count:
                return

    def mutate_all(self, seeds: Iterable[str], count: int) -> Iterator[str]:
        """Chain ``mutate`` over every seed; yields nothing for no seeds"""
        total = 0
        for payload in seeds:
            for variant in self.mutate(payload, count):
                total += 1
                yield variant
        self.logger.debug("mutations_generated", total=total, per_seed=count)

    def _rng_for(self, payload: str) -> random.Random:
        if self.seed is None:
            return random.Random()
        # Per-payload stream so one seed's output does not depend on the others
        return random.Random(f"{self.seed}:{payload}")

    def _variants(
        self,
        payload: str,
        operators: List[Callable[[str], str]],
    ) -> Iterator[str]:
        for op in operators:
            yield op(payload)
        for first, second in itertools.permutations(operators, 2):
            yield second(first(payload))

    def _operators(self, rng: random.Random) -> List[Callable[[str], str]]:
        special = rng.choice(SPECIAL_CHARS)

        def encode_one(word: str) -> str:
            positions = [i for i, ch in enumerate(word) if ch.isalnum()]
            if not positions:
                return word
            i = rng.choice(positions)
            return f"{word[:i]}%{ord(word[i]):02x}{word[i + 1:]}"

        ops: List[Callable[[str], str]] = [
            str.upper,
            lambda w: w[::-1],
            lambda w: w + special,
            lambda w: f"%{w}%",
            lambda w: w + "1",
            str.swapcase,
            lambda w: w[:1].upper() + w[1:],
            encode_one,
            lambda w: "".join(f"%{ord(ch):02x}" for ch in w) if w.isascii() else w,
            lambda w: w[:-1],
        ]
        ops.extend(lambda w, p=prefix: p + w for prefix in BYPASS_PREFIXES)
        ops.extend(lambda w, s=suffix: w + s for suffix in BYPASS_SUFFIXES)
        ops.extend(lambda w, e=ext: w + e for ext in EXTENSIONS)
        ops.extend(lambda w, t=token: w + t for token in INJECTIONS)
        ops.append(lambda w: w[: len(w) // 2] + "/**/" + w[len(w) // 2:])
        return ops
