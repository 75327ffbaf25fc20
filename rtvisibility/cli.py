import asyncio
import logging
from pathlib import Path

import typer

from .browser_crawler import BrowserCrawler
from .settings import CrawlConfig, load_crawl_config, load_proxy_from_txt, resolve_path
from .sites import resolve_targets
from .storage import JsonLinesSink, exceeded_buffer_share, load_sites_stream, save_df, summarize_sites

app = typer.Typer(
    name="rtvisibility",
    help="Measure how much of a page's traffic is visible through ResourceTiming",
    add_completion=False,
)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run_crawl(config: CrawlConfig, sites: list[str], out_sites: Path, out_urls: Path) -> None:
    proxy = load_proxy_from_txt(config.proxy_file) if config.use_proxy else None

    with JsonLinesSink(out_sites) as sites_sink, JsonLinesSink(out_urls) as urls_sink:
        async with BrowserCrawler(config, sites_sink, urls_sink, proxy=proxy) as crawler:
            typer.echo("Starting Crawler")
            await crawler.crawl(sites)


@app.callback()
def callback() -> None:
    """ResourceTiming visibility crawler."""


@app.command()
def crawl(
    target: str = typer.Argument(..., help="A URL, or the number of sites to take from the site list"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to crawl_config.yaml"),
    sites_file: Path | None = typer.Option(None, "--sites-file", help="Site list, one host per line"),
    out_sites: Path | None = typer.Option(None, "--out-sites", help="Sites stream (newline-delimited JSON)"),
    out_urls: Path | None = typer.Option(None, "--out-urls", help="URLs stream (newline-delimited JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Crawl sites one at a time and append their visibility reports."""
    setup_logging(verbose)
    config = load_crawl_config(config_path)

    try:
        sites = resolve_targets(target, sites_file or resolve_path(config.sites_file))
    except (ValueError, FileNotFoundError) as exc:
        raise typer.BadParameter(str(exc), param_hint="TARGET") from exc

    asyncio.run(run_crawl(
        config,
        sites,
        out_sites or Path(config.output_sites_path),
        out_urls or Path(config.output_urls_path),
    ))


@app.command()
def summarize(
    sites: Path | None = typer.Option(None, "--sites", help="Sites stream to read"),
    save: str | None = typer.Option(None, "--save", help="Also write the summary to <results_dir>/NAME.csv"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to crawl_config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Summarize visibility across every reported site."""
    setup_logging(verbose)
    config = load_crawl_config(config_path)

    df = load_sites_stream(sites or config.output_sites_path)
    if df.empty:
        typer.echo("No sites reported yet")
        return

    summary = summarize_sites(df)
    typer.echo(summary.to_string(index=False))
    typer.echo(f"\n{len(df)} sites, {exceeded_buffer_share(df)}% exceeded the default buffer")

    if save:
        save_df(summary, save, resolve_path(config.results_dir))


def main() -> None:
    app()
