"""Command-line interface for the ad crawler."""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional

from adcrawler.config import (
    ChromeOptions,
    CrawlerFlags,
    CrawlOptions,
    ScrapeOptions,
    default_timeouts,
    settings,
)
from adcrawler.crawler import Crawler
from adcrawler.database import get_db_client
from adcrawler.exceptions import OutputDirectoryError, PreflightError
from adcrawler.logging_config import setup_logging
from adcrawler.targets import load_crawl_list

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ad crawler - visit a list of sites and record their pages, ads and third-party requests"
    )

    inputs = parser.add_argument_group("crawl list (first given wins)")
    inputs.add_argument("--url", help="Crawl a single URL")
    inputs.add_argument(
        "--ad-id",
        type=int,
        help="Ad id the --url belongs to; the URL is crawled as an ad landing page",
    )
    inputs.add_argument("--url-list", help="File with one URL per line")
    inputs.add_argument("--ad-url-list", help="CSV file with ad_id and url columns")

    run = parser.add_argument_group("crawl")
    run.add_argument("--output-dir", required=True, help="Directory for page and ad artifacts")
    run.add_argument("--name", dest="crawl_name", help="Crawl name, used to resume the crawl later")
    run.add_argument(
        "--resume",
        dest="resume_if_able",
        action="store_true",
        help="Resume the crawl with the same --name if it is unfinished",
    )
    run.add_argument("--job-id", type=int, help="Job id stored on every record")
    run.add_argument("--profile-id", help="Profile id stored on the crawl record")
    run.add_argument(
        "--shuffle",
        action="store_true",
        help="Shuffle the crawl list (deterministic for a given --name)",
    )
    run.add_argument(
        "--find-pages-with-ads",
        type=int,
        default=0,
        metavar="N",
        help="Find and crawl up to N linked pages likely to contain ads (default: 0)",
    )
    run.add_argument(
        "--find-article",
        action="store_true",
        help="Find and crawl an article linked from each page",
    )
    run.add_argument(
        "--refresh-page",
        action="store_true",
        help="Load every page twice and scrape both loads",
    )

    scrape = parser.add_argument_group("scraping")
    scrape.add_argument("--no-scrape-site", action="store_true", help="Don't save page content")
    scrape.add_argument("--no-scrape-ads", action="store_true", help="Don't save ads")
    scrape.add_argument(
        "--screenshot-ads-with-context",
        action="store_true",
        help="Screenshot the viewport around each ad instead of the ad alone",
    )
    scrape.add_argument(
        "--no-capture-requests",
        action="store_true",
        help="Don't record cross-origin requests",
    )

    browser = parser.add_argument_group("browser")
    browser.add_argument("--profile-dir", help="Persistent browser profile directory")
    browser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Run the browser without a window (default: headless)",
    )
    browser.add_argument("--executable-path", help="Chrome/Chromium executable to use")
    browser.add_argument("--proxy-server", help="Proxy server for the browser")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL,
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )
    parser.add_argument(
        "--db-url",
        help=f"SQLite database URL (default: {settings.DATABASE_URL})",
    )
    parser.add_argument(
        "--db-backend",
        choices=["local", "turso"],
        help=f"Database backend (default: {settings.DB_BACKEND})",
    )
    return parser


def flags_from_args(args: argparse.Namespace) -> CrawlerFlags:
    return CrawlerFlags(
        job_id=args.job_id,
        crawl_name=args.crawl_name,
        resume_if_able=args.resume_if_able,
        profile_id=args.profile_id,
        output_dir=args.output_dir,
        url=args.url,
        ad_id=args.ad_id,
        url_list=args.url_list,
        ad_url_list=args.ad_url_list,
        log_level=args.log_level,
        chrome_options=ChromeOptions(
            profile_dir=args.profile_dir,
            headless=args.headless,
            executable_path=args.executable_path,
            proxy_server=args.proxy_server,
        ),
        crawl_options=CrawlOptions(
            shuffle_crawl_list=args.shuffle,
            find_and_crawl_page_with_ads=args.find_pages_with_ads,
            find_and_crawl_article_page=args.find_article,
            refresh_page=args.refresh_page,
        ),
        scrape_options=ScrapeOptions(
            scrape_site=not args.no_scrape_site,
            scrape_ads=not args.no_scrape_ads,
            screenshot_ads_with_context=args.screenshot_ads_with_context,
            capture_third_party_requests=not args.no_capture_requests,
        ),
    )


def check_output_dir(path: str) -> None:
    """
    Raises:
        OutputDirectoryError: If path is not an existing, writable directory
    """
    if not os.path.isdir(path):
        raise OutputDirectoryError(f"{path} is not a valid directory")
    if not os.access(path, os.R_OK | os.W_OK):
        stat = os.stat(path)
        raise OutputDirectoryError(
            f"{path} is not writable "
            f"(uid={os.getuid()}, owner={stat.st_uid}, mode={oct(stat.st_mode)})"
        )


async def run_crawl(flags: CrawlerFlags, args: argparse.Namespace) -> int:
    """Run the crawl, cancelling it cleanly on SIGINT or SIGTERM."""
    crawl_list = load_crawl_list(flags)

    db_kwargs = {"db_url": args.db_url} if args.db_url else {}
    db = get_db_client(args.db_backend, **db_kwargs)

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    interrupted = []

    def handle_interrupt(signum: int) -> None:
        logger.warning(f"{signal.Signals(signum).name} received, closing browser...")
        interrupted.append(signum)
        task.cancel()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, handle_interrupt, signum)
        except NotImplementedError:
            # Windows event loops don't support signal handlers
            pass

    try:
        crawler = Crawler(flags, db, timeouts=default_timeouts)
        context = await crawler.run(crawl_list)
        logger.info(f"Crawl {context.run_id} finished ({len(crawl_list)} items)")
        return 0
    except asyncio.CancelledError:
        if not interrupted:
            raise
        logger.warning("Crawl interrupted; resume it with --name and --resume")
        return EXIT_INTERRUPTED
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(signum)
            except NotImplementedError:
                pass
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file, crawl_name=args.crawl_name)

    try:
        check_output_dir(args.output_dir)
        flags = flags_from_args(args)
        return asyncio.run(run_crawl(flags, args))
    except PreflightError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"Crawl failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
