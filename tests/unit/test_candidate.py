"""
Unit tests for Candidate helpers and wordlist loading.

Run with: pytest tests/unit/test_candidate.py -v
"""

import pytest

from pathfuzz.errors import ConfigError
from pathfuzz.sources import (
    Candidate,
    Origin,
    ensure_placeholder,
    expand_template,
    load_wordlist,
    normalize_url,
    wordlist_candidates,
)
from pathfuzz.sources.candidate import template_root


class TestNormalizeUrl:
    """Test suite for URL identity normalization"""

    def test_scheme_and_host_are_lowercased(self):
        """Test scheme and host case does not affect identity"""
        assert normalize_url("HTTP://Example.COM/Admin") == "http://example.com/Admin"

    def test_default_ports_are_dropped(self):
        """Test :80 and :443 are removed for their schemes"""
        assert normalize_url("http://x:80/a") == "http://x/a"
        assert normalize_url("https://x:443/a") == "https://x/a"
        assert normalize_url("http://x:8080/a") == "http://x:8080/a"

    def test_fragment_dropped_and_empty_path_becomes_root(self):
        """Test fragments are ignored and bare hosts get "/" """
        assert normalize_url("http://x#top") == "http://x/"
        assert normalize_url("http://x/a?b=1#frag") == "http://x/a?b=1"

    def test_encoded_path_kept_verbatim(self):
        """Test percent-encoded bypass tokens stay distinct"""
        assert normalize_url("http://x/admin%2f") != normalize_url("http://x/admin/")

    def test_candidate_identity(self):
        """Test candidates reaching the same URL share an identity"""
        a = Candidate("http://X/a", Origin.WORDLIST)
        b = Candidate("http://x:80/a#f", Origin.CRAWL, depth=1)
        assert a.identity == b.identity


class TestTemplates:
    """Test suite for FUZZ template helpers"""

    def test_placeholder_appended_when_missing(self):
        assert ensure_placeholder("http://x/api/") == "http://x/api/FUZZ"
        assert ensure_placeholder("http://x") == "http://x/FUZZ"
        assert ensure_placeholder("http://x/FUZZ.php") == "http://x/FUZZ.php"

    def test_every_occurrence_replaced(self):
        """Test multiple FUZZ markers get the same word"""
        assert expand_template("http://x/FUZZ/?q=FUZZ", "a") == "http://x/a/?q=a"

    def test_template_root(self):
        assert template_root("http://x/api/FUZZ.php") == "http://x/api/"
        assert template_root("http://x/FUZZ") == "http://x/"
        assert template_root("http://FUZZ.x.com/") is None


class TestWordlist:
    """Test suite for wordlist loading"""

    def test_blank_and_comment_lines_skipped(self, wordlist_file):
        path = wordlist_file(["admin", "", "# comment", "  login  ", "admin"])
        assert load_wordlist(path) == ["admin", "login", "admin"]

    def test_missing_file_raises_config_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_wordlist(tmp_path / "missing.txt")

    def test_candidates_are_lazy_and_tagged(self):
        """Test wordlist candidates carry the word as payload tag"""
        gen = wordlist_candidates("http://x/FUZZ", iter(["a", "b"]))
        first = next(gen)
        assert first.target_url == "http://x/a"
        assert first.origin is Origin.WORDLIST
        assert first.payload_tag == "a"
        assert first.depth == 0
