"""Command-line interface for pagelift."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
import structlog
from bs4 import BeautifulSoup
from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from pagelift import __version__
from pagelift.bypass import BypassOrchestrator
from pagelift.config.config import Config, find_config_file
from pagelift.exceptions import BypassFailure
from pagelift.fetcher import Fetcher
from pagelift.observability import configure_logging, start_metrics_server
from pagelift.paywall import detect_paywall_signals, is_known_paywalled_site
from pagelift.pipeline import ArticlePipeline, LoadArticleOptions, LoadArticleResult
from pagelift.protocols import FetchError
from pagelift.utils.text import html_to_text

console = Console()
logger = structlog.get_logger(__name__)


def load_config(path: Optional[str], log_level: Optional[str]) -> Config:
    """Explicit path, then a config file in the working directory, then defaults."""
    config_path = Path(path) if path else find_config_file()
    config = Config.from_yaml(config_path) if config_path else Config()
    if log_level:
        config.monitoring.log_level = log_level
    configure_logging(config.monitoring)
    start_metrics_server(config.monitoring)
    return config


def config_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False), help="Configuration file path"
    )(func)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """pagelift - extract readable articles from any URL."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


def _error_panel(result: LoadArticleResult) -> Panel:
    lines = [f"[bold]{escape(result.error or 'Unknown error')}[/bold]"]
    if result.status_code:
        lines.append(f"HTTP status: {result.status_code}")
    if result.bypass_error:
        lines.append(escape(result.bypass_error))
    if result.has_browser_extension:
        lines.append("A browser tab channel is available; open the page there and retry.")
    return Panel("\n".join(lines), title=f"Extraction failed: {result.status.value}", border_style="red")


@cli.command()
@click.argument("url")
@click.option("--markdown/--json", "as_markdown", default=True, help="Output format")
@click.option("--no-bypass", is_flag=True, help="Do not try bypass strategies on blocked pages")
@click.option("--skip-precheck", is_flag=True, help="Extract even if the page does not look like an article")
@click.option("--no-image", is_flag=True, help="Do not prepend the article image")
@config_option
@click.pass_context
def extract(
    ctx: click.Context,
    url: str,
    as_markdown: bool,
    no_bypass: bool,
    skip_precheck: bool,
    no_image: bool,
    config_path: Optional[str],
) -> None:
    """Extract the article at URL."""
    config = load_config(config_path, ctx.obj["log_level"])
    options = LoadArticleOptions(
        skip_pre_check=skip_precheck,
        enable_bypass=False if no_bypass else None,
        show_article_image=False if no_image else None,
    )

    async def run() -> LoadArticleResult:
        async with ArticlePipeline(config) as pipeline:
            return await pipeline.load_article(url, options)

    result = asyncio.run(run())
    if result.article is None:
        console.print(_error_panel(result))
        sys.exit(1)

    article = result.article
    if as_markdown:
        console.print(f"[bold]# {escape(article.content.title)}[/bold]")
        byline = " • ".join(part for part in (article.content.byline, article.content.site_name) if part)
        if byline:
            console.print(f"[dim]{escape(byline)}[/dim]")
        console.print(Markdown(article.markdown))
    else:
        payload = dataclasses.asdict(article.content)
        payload["markdown"] = article.markdown
        payload["bypassed_readability_check"] = article.bypassed_readability_check
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("url")
@config_option
@click.pass_context
def bypass(ctx: click.Context, url: str, config_path: Optional[str]) -> None:
    """Run only the bypass strategies against URL."""
    config = load_config(config_path, ctx.obj["log_level"])

    async def run():
        async with Fetcher(config) as fetcher:
            return await BypassOrchestrator(config, fetcher).require_bypass(url)

    try:
        result = asyncio.run(run())
    except BypassFailure as e:
        table = Table(title="Bypass Attempts")
        table.add_column("Strategy", style="cyan")
        table.add_column("Failure", style="red")
        for label, reason in e.failures:
            table.add_row(escape(label), escape(reason))
        console.print(table)
        console.print("[red]❌ All bypass methods failed[/red]")
        sys.exit(1)

    lines = [f"Strategy: [bold]{result.source.value}[/bold]", f"Content length: {len(result.html or '')}"]
    if result.archive_url:
        lines.append(f"Archive URL: {escape(result.archive_url)}")
    if result.snapshot_timestamp:
        lines.append(f"Snapshot: {escape(result.snapshot_timestamp)}")
    console.print(Panel("\n".join(lines), title="Bypass succeeded", border_style="green"))


@cli.command()
@click.argument("url")
@config_option
@click.pass_context
def paywall(ctx: click.Context, url: str, config_path: Optional[str]) -> None:
    """Fetch URL and report paywall signals."""
    config = load_config(config_path, ctx.obj["log_level"])

    async def run():
        async with Fetcher(config) as fetcher:
            return await fetcher.fetch(url)

    fetched = asyncio.run(run())
    if isinstance(fetched, FetchError):
        console.print(f"[red]❌ Fetch failed ({fetched.kind.value}): {escape(fetched.message)}[/red]")
        sys.exit(1)

    soup = BeautifulSoup(fetched.html, "lxml")
    selectors_file = config.cleaner.selectors_file
    detection = detect_paywall_signals(soup, url, html_to_text(fetched.html), selectors_file)

    table = Table(title="Paywall Signals")
    table.add_column("Signal", style="cyan")
    for signal in detection.signals:
        table.add_row(escape(signal))
    console.print(table)
    console.print(f"Known paywalled site: {is_known_paywalled_site(url, selectors_file)}")
    verdict = "[yellow]Paywall likely[/yellow]" if detection.is_paywalled else "[green]No paywall detected[/green]"
    console.print(verdict)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
