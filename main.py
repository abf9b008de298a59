#!/usr/bin/env python3
"""
API Sentinel - Adversarial probe scanner for HTTP APIs

Main entry point for the scanner CLI.

Usage:
    python main.py scan endpoints.json
    python main.py scan --url "https://api.example.com/users?id=1" -t "SQL Injection" -t XSS
    python main.py quick https://api.example.com/search?q=test
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import structlog
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

# Allow running from a source checkout
sys.path.insert(0, str(Path(__file__).parent / "src"))

from apisentinel import __version__
from apisentinel.core.config import ConfigError, ScanOptions, load_settings
from apisentinel.core.endpoints import EndpointParseError, endpoint_from_url, parse_endpoints
from apisentinel.core.injection import InjectLocation
from apisentinel.core.models import EndpointScanResult, ScanReport, Verdict, payload_label
from apisentinel.core.service import ScanService


console = Console()

SEVERITY_STYLES = {
    "Critical": "bold red",
    "High": "red",
    "Medium": "yellow",
    "Low": "cyan",
}

RESULT_STYLES = {
    Verdict.PASS.value: "green",
    Verdict.FAIL.value: "bold red",
    Verdict.ERROR.value: "yellow",
}


def configure_logging(verbose: bool):
    """Send structlog output to stderr so it never mixes with the report"""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def parse_headers(values: Tuple[str, ...]) -> Dict[str, str]:
    """Parse repeated 'Name: value' options"""
    headers = {}
    for item in values:
        if ":" not in item:
            raise click.BadParameter(f"Header must look like 'Name: value', got {item!r}")
        name, value = item.split(":", 1)
        headers[name.strip()] = value.strip()
    return headers


def parse_body(data: Optional[str]) -> Any:
    """Decode a --data value as JSON when possible, else keep the raw string"""
    if data is None:
        return None
    try:
        return json.loads(data)
    except ValueError:
        return data


@click.group()
@click.version_option(version=__version__, prog_name="API Sentinel")
@click.option('--verbose', '-v', is_flag=True, help='Show debug logs on stderr')
def cli(verbose: bool):
    """
    API Sentinel - Adversarial probe scanner for HTTP APIs

    Injects attack payloads into API endpoints and reports which
    responses indicate a vulnerability.
    """
    configure_logging(verbose)


@cli.command()
@click.argument('endpoints_file', required=False, type=click.Path(exists=True, dir_okay=False))
@click.option('--url', help='Scan a single URL instead of an endpoints file')
@click.option('--method', '-X', default='GET', help='HTTP method for --url (default: GET)')
@click.option('--header', '-H', multiple=True, help="Request header for --url, 'Name: value' (repeatable)")
@click.option('--data', '-d', help='Request body for --url (JSON or raw string)')
@click.option('--type', '-t', 'scan_types', multiple=True, help='Vulnerability type to test (repeatable, default: all)')
@click.option('--max-payloads', type=int, help='Payloads per vulnerability type (default: 5)')
@click.option(
    '--inject-location',
    type=click.Choice([location.value for location in InjectLocation]),
    help='Where payloads are injected (default: all)',
)
@click.option('--concurrency', type=int, help='Probes in flight per endpoint (default: 1)')
@click.option('--insecure', is_flag=True, help='Skip TLS certificate verification')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), help='YAML settings file')
@click.option('--output', '-o', type=click.Path(), help='Save the report to a JSON file')
def scan(
    endpoints_file: Optional[str],
    url: Optional[str],
    method: str,
    header: Tuple[str, ...],
    data: Optional[str],
    scan_types: Tuple[str, ...],
    max_payloads: Optional[int],
    inject_location: Optional[str],
    concurrency: Optional[int],
    insecure: bool,
    config_path: Optional[str],
    output: Optional[str],
):
    """
    Scan the endpoints of a JSON file, or a single --url.

    The file holds a list of endpoints (or {"endpoints": [...]}) with
    name, method, url, headers, body and queryParams.

    Example:
        python main.py scan endpoints.json --max-payloads 3
        python main.py scan --url https://api.example.com/login -X POST -d '{"user": "a"}'
    """
    if bool(endpoints_file) == bool(url):
        console.print("[bold red]Error:[/bold red] give either an endpoints file or --url")
        sys.exit(2)

    try:
        settings = load_settings(config_path)

        if endpoints_file:
            endpoints = parse_endpoints(Path(endpoints_file).read_text(encoding="utf-8"))
        else:
            endpoints = [endpoint_from_url(url, method=method, headers=parse_headers(header), body=parse_body(data))]

        options = settings.scan.model_dump()
        if scan_types:
            options["scan_types"] = list(scan_types)
        if max_payloads is not None:
            options["max_payloads"] = max_payloads
        if inject_location:
            options["inject_location"] = inject_location
        options = ScanOptions.model_validate(options)

        if concurrency is not None:
            settings.pacing.max_concurrency = max(concurrency, 1)
        if insecure:
            settings.dispatcher.verify_ssl = False

    except (ConfigError, EndpointParseError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(2)
    except ValueError as e:
        console.print(f"[bold red]Invalid option:[/bold red] {e}")
        sys.exit(2)

    # Banner
    console.print("\n" + "=" * 80)
    console.print("API Sentinel - Adversarial API Scanner")
    console.print("=" * 80 + "\n")

    console.print(f"[green]Endpoints:[/green] {len(endpoints)}")
    console.print(f"[green]Scan Types:[/green] {', '.join(t.value for t in options.scan_types) if options.scan_types else 'all'}")
    console.print(f"[green]Max Payloads:[/green] {options.max_payloads}")
    console.print(f"[green]Inject Location:[/green] {options.inject_location.value}")
    console.print(f"[green]Concurrency:[/green] {settings.pacing.max_concurrency}")
    console.print()

    service = ScanService(settings)

    try:
        report = asyncio.run(run_scan(service, endpoints, options))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Scan interrupted by user[/yellow]")
        sys.exit(1)

    print_report(report)

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report.to_json(), encoding="utf-8")
        console.print(f"\n[green]Report saved to:[/green] {output_path}")

    console.print("\n" + "=" * 80)
    console.print("[bold green]Scan complete![/bold green]")
    console.print("=" * 80 + "\n")


async def run_scan(service: ScanService, endpoints, options) -> ScanReport:
    """Run a tracked scan with a progress bar"""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Scanning endpoints...", total=len(endpoints))

        def on_progress(event: Dict[str, Any]):
            progress.update(
                task,
                completed=event["current"],
                description=f"[cyan]{event['endpoint']}",
            )

        report = await service.run_tracked_scan(endpoints, options, progress_callback=on_progress)
        progress.update(task, description="[green]Scan complete!")

    return report


def print_endpoint_table(results: List[EndpointScanResult]):
    table = Table(title="Endpoints")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Method", no_wrap=True)
    table.add_column("Tests", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Errors", justify="right", style="yellow")

    for result in results:
        name = result.api if result.error is None else f"{result.api}\n[yellow]{result.error}[/yellow]"
        table.add_row(
            name,
            result.method,
            str(result.summary.total),
            str(result.summary.passed),
            str(result.summary.failed),
            str(result.summary.errors),
        )

    console.print(table)


def print_report(report: ScanReport):
    """Render a scan report"""
    summary = report.summary

    console.print()
    print_endpoint_table(report.endpoints)

    console.print(
        f"\n[bold]Total tests:[/bold] {summary.total_tests}  "
        f"[green]passed {summary.passed}[/green]  "
        f"[red]failed {summary.failed}[/red]  "
        f"[yellow]errors {summary.errors}[/yellow]  "
        f"({report.duration_ms}ms)"
    )
    if report.cancelled:
        console.print("[yellow]Scan was cancelled - results are partial[/yellow]")

    if not summary.vulnerabilities:
        console.print("\n[bold green]No vulnerabilities detected[/bold green]")
        return

    console.print("\n[bold red]DISCOVERED VULNERABILITIES[/bold red]")
    console.print("=" * 80 + "\n")

    i = 0
    for result in report.endpoints:
        for test in result.vulnerabilities:
            i += 1
            style = SEVERITY_STYLES.get(test.severity, "white")
            console.print(f"[bold yellow][{i}] {test.type.upper()}[/bold yellow] - {result.api}")
            console.print(f"  Severity: [{style}]{test.severity}[/]")
            console.print(f"  Confidence: {test.confidence.value if test.confidence else '-'}")
            console.print(f"  Injection Point: {test.injection_point}")
            console.print(f"  Payload: {payload_label(test.payload)}")
            console.print(f"  Response: {test.response_code} in {test.response_time}ms")
            for indicator in test.indicators:
                console.print(f"  - {indicator}")
            console.print(f"  {test.notes}")
            console.print()


@cli.command()
@click.argument('url')
@click.option('--method', '-X', default='GET', help='HTTP method (default: GET)')
@click.option('--header', '-H', multiple=True, help="Request header, 'Name: value' (repeatable)")
@click.option('--data', '-d', help='Request body (JSON or raw string)')
def quick(url: str, method: str, header: Tuple[str, ...], data: Optional[str]):
    """
    Quick scan of a single URL with 3 payloads per type.

    Example:
        python main.py quick "https://api.example.com/search?q=test"
    """
    console.print(f"\n[cyan]Running quick scan on {url}...[/cyan]\n")

    service = ScanService()
    try:
        result = asyncio.run(service.quick_scan(url, method=method, headers=parse_headers(header), body=parse_body(data)))
    except EndpointParseError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Scan interrupted by user[/yellow]")
        sys.exit(1)

    print_endpoint_table([result])

    table = Table(title="Findings")
    table.add_column("Type", style="cyan")
    table.add_column("Severity")
    table.add_column("Result")
    table.add_column("Injection Point")
    table.add_column("Notes", overflow="fold")

    for test in result.tests:
        if test.result is Verdict.PASS:
            continue
        table.add_row(
            test.type,
            f"[{SEVERITY_STYLES.get(test.severity, 'white')}]{test.severity}[/]",
            f"[{RESULT_STYLES[test.result.value]}]{test.result.value}[/]",
            test.injection_point,
            test.notes,
        )

    if table.row_count:
        console.print(table)
    else:
        console.print("\n[bold green]No vulnerabilities detected[/bold green]")


@cli.command()
def types():
    """List the vulnerability checks and their payload counts"""
    table = Table(title="Scan Types")
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Severity")
    table.add_column("Payloads", justify="right")

    for entry in ScanService.list_scan_types():
        style = SEVERITY_STYLES.get(entry["severity"], "white")
        table.add_row(entry["type"], f"[{style}]{entry['severity']}[/]", str(entry["payload_count"]))

    console.print(table)


@cli.command()
@click.argument('url')
@click.option('--method', '-X', default='GET', help='HTTP method (default: GET)')
@click.option('--header', '-H', multiple=True, help="Request header, 'Name: value' (repeatable)")
def check(url: str, method: str, header: Tuple[str, ...]):
    """
    Test connectivity to a target before scanning.

    Example:
        python main.py check https://api.example.com/health
    """
    service = ScanService()
    try:
        result = asyncio.run(service.test_connection(url, method=method, headers=parse_headers(header)))
    except EndpointParseError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(2)

    if result["success"]:
        console.print(f"[green]Reachable:[/green] {url} -> {result['status']} in {result['response_time']}ms")
    else:
        console.print(f"[bold red]Unreachable:[/bold red] {url} ({result['error']})")
        sys.exit(1)


@cli.command()
def version():
    """Show version information and capabilities"""
    console.print(f"\n[bold cyan]API Sentinel v{__version__}[/bold cyan]")
    console.print("[cyan]Adversarial probe scanner for HTTP APIs[/cyan]\n")

    table = Table(title="Vulnerability Checks")
    table.add_column("Check", style="cyan", no_wrap=True)
    table.add_column("Severity")

    for entry in ScanService.list_scan_types():
        table.add_row(entry["type"], entry["severity"])

    console.print(table)
    console.print()


if __name__ == '__main__':
    cli()
