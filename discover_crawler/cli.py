#!/usr/bin/env python3
"""
Discover Catalog Crawler - Command Line
Searches the catalog, scrolls until enough products are found, then visits
each product page for creator and social link details.

Usage:
    discover-crawler --query TRADING --max-products 50
    discover-crawler -q "AI tools" -n 20 --show-browser --debug
    python -m discover_crawler.cli --query crypto --output-dir data/
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from tqdm import tqdm

from .config import CrawlerConfig
from .exceptions import CrawlerError
from .models import ProgressEvent, RunResult
from .runner import run_scraper

console = Console()


def setup_logging(output_dir: Path, verbose: bool = False) -> logging.Logger:
    """Configure console and file logging for the crawler package."""
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "crawler.log"

    logger = logging.getLogger("discover_crawler")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    ))

    # File handler
    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s:%(lineno)d | %(message)s'
    ))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


def print_summary(result: RunResult, output_path: Optional[Path]) -> None:
    """Print a results table and stats panel."""
    table = Table(title=f"Results for '{result.search_query}'", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Product", style="cyan", max_width=40)
    table.add_column("Creator", style="magenta")
    table.add_column("Handle")
    table.add_column("Socials", style="green")

    for i, record in enumerate(result.records, start=1):
        socials = ", ".join(name for name, value in record.socials.items() if value)
        table.add_row(str(i), record.product_name or "-", record.creator_name or "-",
                      record.creator_handle or "-", socials or "-")
    console.print(table)

    stats = result.stats
    lines = [f"Total products: [bold]{stats.total}[/bold]"]
    for name, count in stats.to_dict().items():
        if name.startswith("with_"):
            lines.append(f"{name[5:].title():<10} {count}")
    if output_path:
        lines.append(f"\nSaved to [bold]{output_path}[/bold]")
    console.print(Panel("\n".join(lines), title="SCRAPE COMPLETE", expand=False))


async def _run(config: CrawlerConfig) -> RunResult:
    with tqdm(total=config.max_products, desc="Products", unit="product") as pbar:
        def on_progress(event: ProgressEvent) -> None:
            if pbar.total != event.total:
                pbar.total = event.total
                pbar.refresh()
            pbar.update(1)
            pbar.set_postfix_str(event.record.product_name[:30])

        return await run_scraper(config, on_progress=on_progress)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Scrape products and creator social links from the Whop discover catalog',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    discover-crawler --query TRADING --max-products 50
    discover-crawler -q "AI tools" -n 20 --show-browser
        """
    )
    parser.add_argument('--query', '-q', type=str, default=None,
                        help='Search query (default: TRADING)')
    parser.add_argument('--max-products', '-n', type=int, default=None,
                        help='Maximum number of products to scrape (default: 100)')
    parser.add_argument('--show-browser', action='store_true',
                        help='Run with a visible browser window')
    parser.add_argument('--debug', action='store_true',
                        help='Save debug screenshots of the search page')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Directory for the CSV report and log (default: output)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose logging')

    args = parser.parse_args(argv)

    try:
        config = CrawlerConfig.from_env().with_overrides(
            search_query=args.query,
            max_products=args.max_products,
            output_dir=args.output_dir,
            headless=False if args.show_browser else None,
            debug=True if args.debug else None,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    if not config.search_query.strip():
        console.print("[red]Error:[/red] Search query must not be empty")
        return 1
    if config.max_products < 1:
        console.print("[red]Error:[/red] max-products must be at least 1")
        return 1

    output_dir = Path(config.output_dir)
    logger = setup_logging(output_dir, args.verbose)

    console.print(Panel(
        f"Query: [bold]{config.search_query}[/bold]\nMax products: {config.max_products}\n"
        f"Headless: {config.headless}",
        title="DISCOVER CRAWLER",
        expand=False
    ))

    try:
        result = asyncio.run(_run(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except CrawlerError as e:
        logger.error(f"Scrape failed: {e}")
        console.print(f"[red]Scrape failed:[/red] {e}")
        return 1

    if not result.records:
        console.print(f"[yellow]No products found[/yellow] ({result.diagnostic or result.state})")
        return 1

    output_path = output_dir / result.filename
    output_path.write_text(result.csv, encoding="utf-8")
    print_summary(result, output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
