#!/usr/bin/env python3
"""
Sturdy Webcomic Downloader
==========================

Command-line interface for downloading webcomics into PDF files.

Usage:
    python download.py get URL IMAGE_SELECTOR NEXT_SELECTOR OUT.pdf
    python download.py get URL '#comic img' 'a.next' out.pdf -H Authorization TOKEN
    python download.py batch                  # Download every enabled series
    python download.py batch --only my-comic  # Download one configured series
    python download.py list-series            # List configured series
    python download.py status                 # Show last run results
"""

import json
import signal
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path

import click

from sturdywcdl import __version__
from sturdywcdl.config import (
    AppConfig,
    ConfigurationError,
    Series,
    load_config,
    load_series_config,
)
from sturdywcdl.downloader import DEFAULT_MAX_PAGES, DownloadOptions, download_webcomic
from sturdywcdl.logger import get_logger, setup_logging
from sturdywcdl.observer import LoggingObserver
from sturdywcdl.pdf import PdfSink
from sturdywcdl.utils.http import HTTPClient
from sturdywcdl.utils.parser import url_origin

DEFAULT_CONFIG_FILE = "config.yaml"

# Status file for tracking download results
STATUS_FILE = ".download_status.json"

# Set by the signal handler; checked between series in batch mode
_interrupted = threading.Event()


def setup_logging_from_config(
    config: AppConfig,
    log_level_override: str | None = None,
    log_file_override: Path | None = None,
) -> None:
    """Configure logging based on config file and CLI overrides."""
    settings = config.logging

    effective_log_level = log_level_override or settings.log_level
    effective_log_file = log_file_override or settings.log_file

    setup_logging(
        level=effective_log_level,
        log_file=str(effective_log_file) if effective_log_file else None,
        log_dir=config.config_dir if effective_log_file and not log_file_override else None,
        log_format=settings.log_format,
        max_bytes=settings.max_file_size,
        backup_count=settings.backup_count,
    )


def build_http_client(config: AppConfig) -> HTTPClient:
    """Create an HTTP client from the http section of the config."""
    http_cfg = config.http
    return HTTPClient(
        timeout=http_cfg.timeout,
        user_agent=http_cfg.user_agent,
        follow_redirects=http_cfg.follow_redirects,
        verify_ssl=http_cfg.verify_ssl,
        proxy=http_cfg.proxy,
    )


def save_status(status_dir: Path, status: dict) -> None:
    """Save run status to file."""
    status_path = status_dir / STATUS_FILE
    status["timestamp"] = datetime.now().astimezone().isoformat()
    with open(status_path, "w", encoding="utf-8") as f:
        json.dump(status, f, indent=2)


def load_status(status_dir: Path) -> dict | None:
    """Load last run status from file."""
    status_path = status_dir / STATUS_FILE
    if not status_path.exists():
        return None
    with open(status_path, encoding="utf-8") as f:
        return json.load(f)


def signal_handler(signum, frame):
    """Stop scheduling new series after an interrupt."""
    _interrupted.set()
    click.echo(
        click.style("\n\nInterrupt received, finishing running downloads...", fg="yellow"),
        err=True,
    )


def run_download(
    config: AppConfig,
    first_page_url: str,
    image_selector: str,
    next_selector: str,
    output_file: Path,
    max_pages: int,
    headers: dict[str, str] | None = None,
    image_output_dir: Path | None = None,
    label: str = "",
):
    """
    Download one webcomic into ``output_file``.

    The PDF is finalized on every exit path, so an aborted download still
    leaves a readable file with the pages fetched so far.
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)

    options = DownloadOptions(
        headers=headers or {},
        image_output_dir=image_output_dir,
        max_attempts=config.http.max_attempts,
    )

    with build_http_client(config) as client, PdfSink(output_file) as pdf:
        return download_webcomic(
            pdf,
            first_page_url,
            image_selector,
            next_selector,
            max_pages,
            options,
            client=client,
            observer=LoggingObserver(label),
        )


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help=f"Path to configuration file (default: ./{DEFAULT_CONFIG_FILE} if present)",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default=None,
    help="Override log level from config",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Override log file path from config",
)
@click.version_option(version=__version__, prog_name="sturdywcdl")
@click.pass_context
def cli(ctx, config_path: Path | None, log_level: str | None, log_file: Path | None):
    """
    Sturdy Webcomic Downloader - save webcomics as PDF files.

    Follows "next" links from the first page, downloads the image of every
    page and appends it to a PDF. Pages whose image cannot be fetched get an
    "image missing" page instead, so the PDF always matches the comic.
    """
    if config_path is None and Path(DEFAULT_CONFIG_FILE).is_file():
        config_path = Path(DEFAULT_CONFIG_FILE)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["log_level"] = log_level
    ctx.obj["log_file"] = log_file

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("first_page_url")
@click.argument("image_selector")
@click.argument("next_selector")
@click.argument("output_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--max-pages",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_PAGES,
    show_default=True,
    help="Limits the amount of pages that will be downloaded",
)
@click.option(
    "--header",
    "-H",
    "headers",
    type=(str, str),
    multiple=True,
    metavar="NAME VALUE",
    help="Header sent with every request, e.g. -H Authorization TOKEN. Repeatable.",
)
@click.option(
    "--image-output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also save the raw downloaded images to this directory",
)
@click.pass_context
def get(
    ctx,
    first_page_url: str,
    image_selector: str,
    next_selector: str,
    output_file: Path,
    max_pages: int,
    headers: tuple[tuple[str, str], ...],
    image_output_dir: Path | None,
):
    """
    Download a single webcomic.

    \b
    Example:
      python download.py get https://comics.com/webcomic/page1 '#imagepanel' 'a.next' comic.pdf
    """
    config = ctx.obj["config"]
    setup_logging_from_config(config, ctx.obj["log_level"], ctx.obj["log_file"])

    try:
        url_origin(first_page_url)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="FIRST_PAGE_URL") from e

    click.echo("===== running! =====")

    report = run_download(
        config,
        first_page_url,
        image_selector,
        next_selector,
        output_file,
        max_pages,
        headers=dict(headers),
        image_output_dir=image_output_dir,
    )

    click.echo("===== done! =====")
    click.echo(
        f"  {report.pages} pages ({report.images} images, "
        f"{report.placeholders} missing) written to {output_file}"
    )

    save_status(
        config.config_dir,
        {"series": {"get": report.to_dict()}, "errors": 0 if report.success else 1},
    )

    sys.exit(0 if report.success else 1)


@cli.command()
@click.option(
    "--only",
    "-s",
    "only",
    type=str,
    default=None,
    help="Download only the series with this ID (even if disabled)",
)
@click.option(
    "--concurrency",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of series downloaded at the same time (default: from config)",
)
@click.pass_context
def batch(ctx, only: str | None, concurrency: int | None):
    """
    Download every enabled series from the series file.

    Each series gets its own PDF, headers and HTTP connection. A series that
    fails does not stop the others.
    """
    config: AppConfig = ctx.obj["config"]
    setup_logging_from_config(config, ctx.obj["log_level"], ctx.obj["log_file"])
    logger = get_logger(__name__)

    try:
        series_config = load_series_config(config.series_path)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if only:
        selected = series_config.get_series_by_id(only)
        if not selected:
            logger.error(f"No series found with ID: {only}")
            sys.exit(1)
        series_list = [selected]
    else:
        series_list = series_config.get_enabled_series()

    if not series_list:
        logger.warning("No series to download")
        return

    _interrupted.clear()
    previous_sigint = signal.signal(signal.SIGINT, signal_handler)
    previous_sigterm = signal.signal(signal.SIGTERM, signal_handler)

    workers = concurrency or config.concurrency
    output_dir = config.output_path
    total = len(series_list)

    def download_series(position: int, series: Series):
        if _interrupted.is_set():
            return None
        click.echo(f"[{position}/{total}] Downloading: {series.name} ({series.id})")
        image_dir = None
        if series.image_output_dir:
            image_dir = output_dir / series.image_output_dir
        return run_download(
            config,
            series.url,
            series.image_selector,
            series.next_selector,
            output_dir / series.output_file,
            series.max_pages,
            headers=series.headers,
            image_output_dir=image_dir,
            label=series.id,
        )

    results: dict[str, dict] = {}
    errors = 0
    try:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_series = {
                executor.submit(download_series, i, series): series
                for i, series in enumerate(series_list, 1)
            }
            for future in as_completed(future_to_series):
                series = future_to_series[future]
                try:
                    report = future.result()
                except Exception as e:
                    logger.error(f"Error downloading {series.name}: {e}")
                    results[series.id] = {"error": str(e)}
                    errors += 1
                    continue

                if report is None:
                    continue
                results[series.id] = report.to_dict()
                if not report.success:
                    errors += 1
                click.echo(f"    {series.id}: {report.pages} pages -> {series.output_file}")
    finally:
        signal.signal(signal.SIGINT, previous_sigint)
        signal.signal(signal.SIGTERM, previous_sigterm)

    interrupted = _interrupted.is_set()

    click.echo("\n" + "=" * 50)
    click.echo(click.style("DOWNLOAD SUMMARY", bold=True))
    click.echo("=" * 50)
    click.echo(f"  Series finished:    {len(results)}/{total}")
    click.echo(f"  Pages:              {sum(r.get('pages', 0) for r in results.values())}")
    click.echo(f"  Errors:             {errors}")
    click.echo("=" * 50)

    save_status(
        config.config_dir,
        {
            "series": results,
            "series_total": total,
            "errors": errors,
            "interrupted": interrupted,
        },
    )

    if interrupted:
        sys.exit(130)  # Standard exit code for SIGINT
    sys.exit(1 if errors else 0)


@cli.command("list-series")
@click.pass_context
def list_series(ctx):
    """List all configured series."""
    config: AppConfig = ctx.obj["config"]

    try:
        series_config = load_series_config(config.series_path)
    except ConfigurationError as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo("\nConfigured series:")
    click.echo("-" * 78)
    click.echo(f"{'ID':<20} {'NAME':<30} {'STATUS':<10} {'OUTPUT':<15}")
    click.echo("-" * 78)

    for series in series_config.series:
        status = (
            click.style("enabled", fg="green")
            if series.enabled
            else click.style("disabled", fg="red")
        )
        click.echo(f"{series.id:<20} {series.name:<30} {status:<19} {series.output_file:<15}")

    click.echo("-" * 78)
    enabled_count = len(series_config.get_enabled_series())
    click.echo(f"Total: {len(series_config.series)} series ({enabled_count} enabled)")


@cli.command()
@click.pass_context
def status(ctx):
    """Show the results of the last run."""
    config: AppConfig = ctx.obj["config"]

    status_data = load_status(config.config_dir)
    if not status_data:
        click.echo("No previous download status found.")
        click.echo("Run 'python download.py batch' to download your series.")
        return

    click.echo("\n" + "=" * 50)
    click.echo(click.style("LAST RUN STATUS", bold=True))
    click.echo("=" * 50)
    click.echo(f"  Timestamp:          {status_data.get('timestamp', 'Unknown')}")

    for series_id, result in status_data.get("series", {}).items():
        if "error" in result and "pages" not in result:
            click.echo(click.style(f"  {series_id:<20} ERROR {result['error']}", fg="red"))
        else:
            click.echo(
                f"  {series_id:<20} {result.get('pages', 0):>6} pages  "
                f"{result.get('stop_reason', '')}"
            )

    if status_data.get("interrupted"):
        click.echo(click.style("  Status:             INTERRUPTED", fg="yellow"))
    elif status_data.get("errors", 0) > 0:
        click.echo(click.style("  Status:             COMPLETED WITH ERRORS", fg="red"))
    else:
        click.echo(click.style("  Status:             SUCCESS", fg="green"))

    click.echo("=" * 50)


if __name__ == "__main__":
    cli()
