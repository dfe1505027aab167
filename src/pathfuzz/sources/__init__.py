"""
Sources module - Candidate generation.

This package turns configuration into request targets:
- Wordlist substitution into the FUZZ template
- MutationEngine: payload variants
- OpenAPIAdapter: documented API paths
- CandidateSource: fair, deduplicated merge of all origins (plus crawl)
"""

from .candidate import Candidate, Origin, normalize_url, expand_template, ensure_placeholder
from .candidate_source import CandidateSource
from .mutation import MutationEngine
from .openapi import OpenAPIAdapter, load_openapi_document
from .wordlist import load_wordlist, wordlist_candidates


__all__ = [
    # Data structures
    "Candidate",
    "Origin",
    "normalize_url",
    "expand_template",
    "ensure_placeholder",
    # Generators
    "MutationEngine",
    "OpenAPIAdapter",
    "load_openapi_document",
    "load_wordlist",
    "wordlist_candidates",
    # Merge
    "CandidateSource",
]
