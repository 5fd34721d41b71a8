"""CLI entry point for the hidden jobs crawler."""

import argparse
import asyncio
import logging
import signal
import sys

from hidden_jobs.browser.session import BrowserSession
from hidden_jobs.browser.tabs import TabLifecycleManager
from hidden_jobs.core.config import Settings, load_candidates
from hidden_jobs.core.db import init_db
from hidden_jobs.core.schemas import CandidateSite
from hidden_jobs.pipeline.broker import (
    BatchComplete,
    EventObserver,
    MessageBroker,
    ProgressUpdate,
    ResultFound,
    SearchCancelled,
)
from hidden_jobs.pipeline.cache import ResultCache
from hidden_jobs.pipeline.scheduler import CrawlScheduler, export_results_json


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Hidden jobs crawler - find job signals on business websites",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- crawl subcommand (default) ---
    crawl_parser = subparsers.add_parser("crawl", help="Crawl candidate websites")
    crawl_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    crawl_parser.add_argument(
        "--candidates",
        default="config/candidates.yaml",
        help="Path to candidate websites YAML (default: config/candidates.yaml)",
    )
    crawl_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report cache hits and misses without launching a browser",
    )
    crawl_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )
    crawl_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    # --- clear-cache subcommand ---
    clear_parser = subparsers.add_parser(
        "clear-cache",
        help="Remove cached results for the given websites",
    )
    clear_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    clear_parser.add_argument(
        "--url",
        action="append",
        required=True,
        help="Website URL to remove (exact match, repeatable)",
    )
    clear_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    # --- top-level flags for crawl ---
    parser.add_argument("--config", default="config/settings.yaml", help=argparse.SUPPRESS)
    parser.add_argument("--candidates", default="config/candidates.yaml", help=argparse.SUPPRESS)
    parser.add_argument("--dry-run", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--export", choices=["json"], help=argparse.SUPPRESS)
    parser.add_argument("--verbose", "-v", action="store_true", help=argparse.SUPPRESS)

    args = parser.parse_args(argv)

    # Default to crawl when no subcommand given
    if args.command is None:
        args.command = "crawl"

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class ConsoleObserver(EventObserver):
    """Prints crawl events as they arrive and keeps the final result set."""

    def __init__(self) -> None:
        self.final: BatchComplete | None = None
        self.cancelled = False

    def on_progress_update(self, event: ProgressUpdate) -> None:
        print(f"[{event.progress:5.1f}%] {event.status}")

    def on_result_found(self, event: ResultFound) -> None:
        r = event.result
        if r.timed_out:
            print(f"  {r.business_name}: timed out")
        else:
            print(f"  {r.business_name}: score {r.score} ({', '.join(r.job_keywords)})")

    def on_batch_complete(self, event: BatchComplete) -> None:
        self.final = event

    def on_search_cancelled(self, event: SearchCancelled) -> None:
        self.cancelled = True
        print(event.status)


def dry_run(settings: Settings, candidates: list[CandidateSite]) -> None:
    """Print which candidates are cached and which would be crawled."""
    conn = init_db(settings.database.path)
    cache = ResultCache(conn, settings.cache)

    print(f"[DRY RUN] {len(candidates)} websites queued")
    fresh = 0
    for site in candidates:
        cached = cache.get(site.website)
        if cached is not None:
            print(f"[DRY RUN] {site.business_name}: cached (score {cached.score})")
        else:
            fresh += 1
            print(f"[DRY RUN] {site.business_name}: would crawl {site.website}")

    print(f"[DRY RUN] Would open {fresh} browser contexts (no browser in dry-run)")
    conn.close()


async def run(
    settings: Settings,
    candidates: list[CandidateSite],
    export_format: str | None,
) -> None:
    """Crawl all candidates with a real browser."""
    conn = init_db(settings.database.path)
    cache = ResultCache(conn, settings.cache)
    broker = MessageBroker()
    console = ConsoleObserver()
    broker.subscribe(console)

    async with BrowserSession(settings.browser) as session:
        tabs = TabLifecycleManager(
            session.new_context,
            load_timeout_s=settings.browser.load_timeout_s,
            subpage_timeout_s=settings.browser.subpage_timeout_s,
        )
        scheduler = CrawlScheduler(
            tabs,
            cache,
            broker,
            conn=conn,
            job_delay_min=settings.browser.job_delay_min,
            job_delay_max=settings.browser.job_delay_max,
        )

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(
                signal.SIGINT, lambda: loop.create_task(broker.request_cancel()),
            )
        except NotImplementedError:
            logging.getLogger(__name__).debug("Signal handlers unsupported on this platform")

        ack = scheduler.start(candidates, settings.search)
        print(f"Queued {ack.queued_count} websites")
        await scheduler.wait()

    if console.final is not None:
        results = console.final.results
        with_score = [r for r in results if not r.timed_out]
        print(f"\nCrawl complete: {len(results)} results "
              f"({len(results) - len(with_score)} timed out).")
        if export_format == "json" and results:
            print(f"\n{export_results_json(results)}")

    conn.close()


def cmd_clear_cache(args: argparse.Namespace) -> None:
    """Handle clear-cache subcommand."""
    settings = Settings.from_yaml(args.config)
    conn = init_db(settings.database.path)
    removed = ResultCache(conn, settings.cache).clear(args.url)
    print(f"Removed {removed} cached results")
    conn.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "clear-cache":
        try:
            cmd_clear_cache(args)
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        # crawl (default)
        try:
            settings = Settings.from_yaml(args.config)
            candidates = load_candidates(args.candidates)
        except (FileNotFoundError, ValueError) as e:
            print(f"Error loading config: {e}", file=sys.stderr)
            sys.exit(1)

        if args.dry_run:
            dry_run(settings, candidates)
        else:
            asyncio.run(run(settings, candidates, args.export))


if __name__ == "__main__":
    main()
