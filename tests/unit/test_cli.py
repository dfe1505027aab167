"""
Unit tests for the click CLI.

Run with: pytest tests/unit/test_cli.py -v
"""

import json

import pytest
from click.testing import CliRunner

import pathfuzz.cli as cli_module
from pathfuzz import __version__
from pathfuzz.cli import cli
from pathfuzz.core.engine import FuzzEngine


@pytest.fixture()
def routes():
    return {
        "http://x/a": (200, "hello a", "text/plain"),
        "http://x/b": (404, "missing", "text/plain"),
    }


@pytest.fixture()
def patch_engine(monkeypatch, fake_transport, routes):
    """Run the real engine against an in-memory transport"""
    transports = []

    def build(config, **kwargs):
        transport = fake_transport(routes=routes, failures={"http://x/down": None})
        transports.append(transport)
        return FuzzEngine(config, transport=transport, **kwargs)

    monkeypatch.setattr(cli_module, "FuzzEngine", build)
    return transports


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_scan_prints_matches_and_exports(tmp_path, wordlist_file, patch_engine):
    out = tmp_path / "out.json"
    args = ["scan", "-u", "http://x/FUZZ", "-w", str(wordlist_file(["a", "b"])), "-o", str(out), "-t", "2"]

    result = CliRunner().invoke(cli, args)

    assert result.exit_code == 0, result.output
    assert "200 - http://x/a" in result.output
    assert "http://x/b" not in result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [(row["url"], row["status"]) for row in data] == [("http://x/a", 200)]


def test_network_failure_is_not_fatal(wordlist_file, patch_engine):
    """Test an unreachable target still exits 0 after three attempts"""
    args = ["scan", "-u", "http://x/FUZZ", "-w", str(wordlist_file(["down"])), "--backoff-base", "0"]

    result = CliRunner().invoke(cli, args)

    assert result.exit_code == 0, result.output
    assert "ERR - http://x/down" in result.output
    assert patch_engine[0].count("http://x/down") == 3


def test_invalid_matcher_exits_2(wordlist_file, patch_engine):
    args = ["scan", "-u", "http://x/FUZZ", "-w", str(wordlist_file(["a"])), "-m", "200,abc"]

    result = CliRunner().invoke(cli, args)

    assert result.exit_code == 2
    assert "Configuration error" in result.output
    assert patch_engine == []


def test_nothing_to_fuzz_exits_2(patch_engine):
    result = CliRunner().invoke(cli, ["scan", "-u", "http://x/FUZZ"])
    assert result.exit_code == 2


def test_config_file_with_cli_override(tmp_path, wordlist_file, patch_engine):
    """Test flags override the file, unset flags keep file values"""
    config = tmp_path / "pathfuzz.toml"
    config.write_text(
        f'url = "http://x/FUZZ"\nwordlist = "{wordlist_file(["a", "b"]).as_posix()}"\n'
        'matcher = "404"\nthreads = 3\n',
        encoding="utf-8",
    )

    result = CliRunner().invoke(cli, ["scan", "-c", str(config), "-m", "200"])

    assert result.exit_code == 0, result.output
    assert "200 - http://x/a" in result.output
    assert "404 - http://x/b" not in result.output


def test_export_failure_exits_1(tmp_path, wordlist_file, patch_engine):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    args = ["scan", "-u", "http://x/FUZZ", "-w", str(wordlist_file(["a"])), "-o", str(blocker / "out.csv")]

    result = CliRunner().invoke(cli, args)

    assert result.exit_code == 1
    assert "200 - http://x/a" in result.output
    assert "Export failed" in result.output


def test_analyze_command(tmp_path):
    export = tmp_path / "out.csv"
    export.write_text(
        "url,status,origin\nhttp://x/a,200,wordlist\nhttp://x/b,200,crawl\nhttp://x/c,403,wordlist\n",
        encoding="utf-8",
    )

    result = CliRunner().invoke(cli, ["analyze", str(export)])

    assert result.exit_code == 0, result.output
    assert "crawl" in result.output
    assert "403" in result.output


def test_analyze_flag_on_scan(tmp_path):
    export = tmp_path / "out.json"
    export.write_text('[{"url": "http://x/a", "status": 200}]', encoding="utf-8")

    result = CliRunner().invoke(cli, ["scan", "--analyze", str(export)])

    assert result.exit_code == 0, result.output


def test_analyze_malformed_exits_1(tmp_path):
    export = tmp_path / "out.json"
    export.write_text("{oops", encoding="utf-8")

    result = CliRunner().invoke(cli, ["analyze", str(export)])

    assert result.exit_code == 1
    assert "Analyze failed" in result.output
