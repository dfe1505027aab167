"""
PathFuzz command line interface.

Usage:
    pathfuzz scan -u http://target/FUZZ -w words.txt
    pathfuzz scan -c pathfuzz.toml --crawl --max-depth 3
    pathfuzz scan -u http://target/ --openapi openapi.yaml
    pathfuzz analyze results.json
"""

import asyncio
import signal
import sys
from typing import Any, Dict, Optional

import click
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import FuzzConfig, load_config_file, resolve_config
from .core.context import RunContext
from .core.engine import FuzzEngine, RunReport
from .core.models import ExportRecord
from .core.sink import ResultSink
from .errors import AnalyzeError, ConfigError, ExportError, SpecError
from .log import configure_logging
from .reporting import analyze_export, export_records

console = Console(highlight=False)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

_STATUS_STYLES = {2: "green", 3: "cyan", 4: "yellow", 5: "red"}


@click.group()
@click.version_option(version=__version__, prog_name="PathFuzz")
def cli():
    """
    PathFuzz - Concurrent web path fuzzer and crawler

    Substitutes candidates into a URL template, fires them concurrently
    and reports the responses whose status matches.
    """
    pass


@cli.command()
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False), help='TOML config file')
@click.option('-u', '--url', help='Target URL, FUZZ marks the substituted part')
@click.option('-w', '--wordlist', type=click.Path(dir_okay=False), help='Wordlist file')
@click.option('-t', '--threads', type=int, help='Concurrent workers (default: 40)')
@click.option('-T', '--timeout', type=float, help='Per-request timeout in seconds (default: 10)')
@click.option('-m', '--matcher', help='Accepted status codes (default: 200,301,302,401,403,405,500)')
@click.option('-H', '--header', 'headers', multiple=True, help="Extra header 'Name: value' (repeatable)")
@click.option('-b', '--cookie', 'cookies', multiple=True, help="Cookie 'name:value' (repeatable)")
@click.option('--auth-token', help='Bearer token for the Authorization header')
@click.option('--proxy', help='HTTP(S) proxy URL')
@click.option('--rate-limit', type=int, help='Milliseconds between dispatches (0 = off)')
@click.option('--retries', type=int, help='Retries for timeouts and connection errors (default: 2)')
@click.option('--backoff-base', type=float, help='First retry backoff in seconds (default: 0.5)')
@click.option('--backoff-cap', type=float, help='Maximum retry backoff in seconds (default: 10)')
@click.option('-o', '--export', type=click.Path(dir_okay=False), help='Export results (.json or .csv)')
@click.option('--export-errors', is_flag=True, help='Include errored probes in the export')
@click.option('--mutate', is_flag=True, help='Add mutated variants of every word')
@click.option('--mutations-per-seed', type=int, help='Variants per word (default: 8)')
@click.option('--mutation-seed', type=int, help='Seed for reproducible mutations')
@click.option('--anomaly-threshold', type=float, help='Flag bodies deviating by this fraction from baseline')
@click.option('--payloads', type=click.Path(dir_okay=False), help='Additional payloads file')
@click.option('--crawl', is_flag=True, help='Follow links found on accepted pages')
@click.option('--max-depth', type=int, help='Maximum crawl depth (default: 2)')
@click.option('--max-pages', type=int, help='Maximum crawled pages (default: 1000)')
@click.option('--max-pending', type=int, help='Crawl queue size before links are dropped (default: 10000)')
@click.option('--openapi', help='OpenAPI document (file or URL)')
@click.option('--analyze', type=click.Path(dir_okay=False), help='Analyze an export instead of fuzzing')
@click.option('--log-level', default='WARNING', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
@click.option('--json-logs', is_flag=True, help='Emit JSON log lines on stderr')
@click.pass_context
def scan(ctx: click.Context, config_path: Optional[str], log_level: str, json_logs: bool, **options: Any):
    """
    Fuzz a target URL.

    Candidates come from the wordlist, the payloads file, mutations of
    both (--mutate), an OpenAPI document (--openapi) and links found on
    accepted pages (--crawl). Command line flags override the config file.

    Example:
        pathfuzz scan -u https://example.com/FUZZ -w common.txt -t 50
        pathfuzz scan -u https://example.com/ -w common.txt --crawl -o out.json
    """
    configure_logging(log_level, json_logs=json_logs)

    overrides = _explicit_options(ctx, options)
    try:
        file_values = load_config_file(config_path) if config_path else {}
        config = resolve_config(file_values, overrides)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(e.message)}")
        sys.exit(EXIT_CONFIG)

    if config.analyze:
        sys.exit(_run_analyze(config.analyze))

    _print_banner(config)
    sys.exit(asyncio.run(run_scan(config)))


@cli.command()
@click.argument('path', type=click.Path(dir_okay=False))
@click.option('--log-level', default='WARNING', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
def analyze(path: str, log_level: str):
    """
    Summarize a previous export (no network traffic).

    Example:
        pathfuzz analyze results.csv
    """
    configure_logging(log_level)
    sys.exit(_run_analyze(path))


def _explicit_options(ctx: click.Context, options: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the options the user actually passed on the command line"""
    overrides = {}
    for name, value in options.items():
        if ctx.get_parameter_source(name) in (ParameterSource.DEFAULT, None):
            continue
        overrides[name] = list(value) if isinstance(value, tuple) else value
    return overrides


async def run_scan(config: FuzzConfig) -> int:
    """
    Run the fuzzer and report.

    Returns:
        Process exit code
    """
    context = RunContext()
    sink = ResultSink()
    sink.subscribe(print_record)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _interrupt, context)
    except (NotImplementedError, RuntimeError):
        # Windows event loops lack add_signal_handler
        pass

    try:
        engine = FuzzEngine(config, context=context, sink=sink)
        report = await engine.run()
    except (ConfigError, SpecError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(e.message)}")
        return EXIT_CONFIG
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    print_summary(report)

    exit_code = EXIT_INTERRUPTED if report.cancelled else EXIT_OK
    if config.export:
        try:
            written = export_records(report.export_records(config.export_errors), config.export)
            console.print(f"\n[green]Results saved to:[/green] {escape(str(written))}")
        except ExportError as e:
            console.print(f"\n[bold red]Export failed:[/bold red] {escape(e.message)}")
            if exit_code == EXIT_OK:
                exit_code = EXIT_FAILURE

    return exit_code


def _interrupt(context: RunContext):
    if context.cancelled:
        return
    console.print("\n[yellow]Interrupted, waiting for in-flight requests...[/yellow]")
    context.cancel("interrupted")


def format_record(record: ExportRecord) -> str:
    """Console line for one recorded result (rich markup)"""
    url = escape(record.url)
    if record.status is None:
        return f"[red]ERR[/red] - {url} [dim]\\[error: {escape(record.error or record.outcome)}][/dim]"

    style = _STATUS_STYLES.get(record.status // 100, "white")
    line = f"[{style}]{record.status}[/{style}] - {url}"
    if record.reflected:
        line += " [magenta]\\[REFLECTED][/magenta]"
    if record.error_detected:
        line += " [red]\\[ERROR][/red]"
    if record.anomalous and not record.accepted:
        line += " [yellow]\\[ANOMALY][/yellow]"
    return line


def print_record(record: ExportRecord):
    console.print(format_record(record))


def _print_banner(config: FuzzConfig):
    console.print("\n" + "=" * 80)
    console.print(f"PathFuzz v{__version__}")
    console.print("=" * 80 + "\n")

    console.print(f"[green]Target:[/green] {escape(config.url)}")
    if config.wordlist:
        console.print(f"[green]Wordlist:[/green] {escape(config.wordlist)}")
    if config.payloads:
        console.print(f"[green]Payloads:[/green] {escape(config.payloads)}")
    if config.openapi:
        console.print(f"[green]OpenAPI:[/green] {escape(config.openapi)}")
    console.print(f"[green]Threads:[/green] {config.threads}")
    console.print(f"[green]Timeout:[/green] {config.timeout}s")
    console.print(f"[green]Matcher:[/green] {','.join(str(c) for c in sorted(config.matcher))}")
    console.print(f"[green]Mutation:[/green] {'[bold green]Enabled[/bold green]' if config.mutate else '[dim]Disabled[/dim]'}")
    if config.crawl:
        console.print(f"[green]Crawl:[/green] [bold green]Enabled[/bold green] (max depth {config.max_depth})")
    else:
        console.print("[green]Crawl:[/green] [dim]Disabled[/dim]")
    if config.rate_limited:
        console.print(f"[green]Rate Limit:[/green] {config.rate_limit} ms")
    console.print()


def print_summary(report: RunReport):
    """Render the end-of-run summary tables"""
    stats = report.statistics
    run = stats["run"]
    sink = stats["sink"]

    console.print("\n" + "=" * 80)
    title = "Scan Summary (interrupted)" if report.cancelled else "Scan Summary"
    table = Table(title=title)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("Target", escape(report.target))
    table.add_row("Duration", f"{report.duration:.2f}s")
    table.add_row("Requests", str(run["attempts"]))
    table.add_row("Retries", str(run["retries"]))
    table.add_row("Peak In-Flight", str(run["peak_in_flight"]))
    table.add_row("Accepted", str(sink["accepted"]))
    table.add_row("Anomalous", str(sink["anomalous"]))
    table.add_row("Errored", str(sink["errored"]))
    table.add_row("Duplicates Dropped", str(sum(stats["source"]["duplicates_dropped"].values())))
    if "crawl" in stats:
        crawl = stats["crawl"]
        table.add_row("Pages Parsed", str(crawl["pages_parsed"]))
        table.add_row("Links Queued", str(crawl["links_queued"]))
        table.add_row("Crawl Saturated", "[yellow]yes[/yellow]" if crawl["saturated"] else "no")
    console.print(table)

    breakdown = Table(title="Breakdown")
    breakdown.add_column("Group", style="cyan")
    breakdown.add_column("Key", style="white")
    breakdown.add_column("Count", style="green", justify="right")
    for status, count in sorted(sink["by_status"].items(), key=lambda kv: kv[0] or 0):
        breakdown.add_row("status", str(status), str(count))
    for origin, count in sorted(sink["by_origin"].items()):
        breakdown.add_row("origin", origin, str(count))
    for outcome, count in sorted(run["by_outcome"].items()):
        breakdown.add_row("outcome", outcome, str(count))
    console.print(breakdown)

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")


def _run_analyze(path: str) -> int:
    try:
        summary = analyze_export(path)
    except AnalyzeError as e:
        console.print(f"[bold red]Analyze failed:[/bold red] {escape(e.message)}")
        return EXIT_FAILURE

    data = summary.to_dict()
    table = Table(title=f"Analysis of {escape(data['path'])}")
    table.add_column("Group", style="cyan")
    table.add_column("Key", style="white")
    table.add_column("Count", style="green", justify="right")

    table.add_row("total", "", str(data["total"]))
    for status, count in data["by_status"].items():
        table.add_row("status", status, str(count))
    for origin, count in sorted(data["by_origin"].items()):
        table.add_row("origin", origin, str(count))
    for outcome, count in sorted(data["by_outcome"].items()):
        table.add_row("outcome", outcome, str(count))
    table.add_row("flags", "reflected", str(data["reflected"]))
    table.add_row("flags", "error_detected", str(data["error_detected"]))
    table.add_row("flags", "anomalous", str(data["anomalous"]))
    if data["average_elapsed"] is not None:
        table.add_row("timing", "average_elapsed", f"{data['average_elapsed']:.4f}s")

    console.print(table)
    return EXIT_OK


if __name__ == '__main__':
    cli()
