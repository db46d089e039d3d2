"""
Crawl driver loop.

Crawler.run decides whether to start or resume a crawl, launches the browser
and visits the crawl list one item at a time. Each item is raced against the
crawl's overall deadline; an item that fails or runs out of time is logged and
skipped, and progress is saved after every item so that an interrupted crawl
can be resumed where it stopped.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from adcrawler.browser import BrowserDriver, PlaywrightDriver
from adcrawler.config import CrawlerFlags, CrawlTimeouts, default_timeouts
from adcrawler.database import AbstractDatabase
from adcrawler.exceptions import TargetTimeoutError
from adcrawler.explorer import SubpageExplorer
from adcrawler.extraction import (
    AdScraper,
    BaseAdScraper,
    BaseCookieBannerRemover,
    BasePageScraper,
    BaseSubpageFinder,
    CookieBannerRemover,
    PageScraper,
    SubpageFinder,
)
from adcrawler.models import Target, seed_visit_for
from adcrawler.network import get_public_ip
from adcrawler.pipeline import PagePipeline
from adcrawler.run_state import RunContext, RunStateMachine
from adcrawler.targets import CrawlList, load_crawl_list
from adcrawler.timeouts import Deadline, run_with_deadline

logger = logging.getLogger(__name__)


@dataclass
class Collaborators:
    """Page-level helpers used by the pipeline and the subpage explorer."""

    page_scraper: BasePageScraper
    ad_scraper: BaseAdScraper
    cookie_remover: BaseCookieBannerRemover
    # Called once per seed page
    subpage_finder: Callable[[], BaseSubpageFinder]


CollaboratorFactory = Callable[[RunContext, AbstractDatabase], Collaborators]


def default_collaborators(context: RunContext, db: AbstractDatabase) -> Collaborators:
    """Collaborators that save pages and ads under the crawl's output directory."""
    flags = context.flags
    return Collaborators(
        page_scraper=PageScraper(
            db,
            crawl_id=context.run_id,
            output_dir=flags.output_dir,
            timeout=context.timeouts.page_scrape,
        ),
        ad_scraper=AdScraper(
            db,
            crawl_id=context.run_id,
            output_dir=flags.output_dir,
            job_id=context.job_id,
            screenshot_with_context=flags.scrape_options.screenshot_ads_with_context,
            timeouts=context.timeouts,
        ),
        cookie_remover=CookieBannerRemover(),
        subpage_finder=SubpageFinder,
    )


class Crawler:
    """
    Runs one crawl from start (or resume point) to completion.

    Example:
        crawler = Crawler(flags, db)
        context = await crawler.run()
    """

    def __init__(
        self,
        flags: CrawlerFlags,
        db: AbstractDatabase,
        driver: Optional[BrowserDriver] = None,
        timeouts: CrawlTimeouts = default_timeouts,
        collaborators: Optional[CollaboratorFactory] = None,
        ip_resolver: Callable[[], Awaitable[Optional[str]]] = get_public_ip,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the crawler.

        Args:
            flags: Crawl options
            db: Run state store
            driver: Browser driver; defaults to a PlaywrightDriver built from
                flags.chrome_options
            timeouts: Crawl timeouts
            collaborators: Builds the page/ad/cookie/subpage helpers once the
                crawl id is known
            ip_resolver: Looks up the crawler's public IP for new crawl records
            rng: Random source for scrolling
        """
        self.flags = flags
        self.db = db
        self.driver = driver or PlaywrightDriver(flags.chrome_options, timeouts)
        self.timeouts = timeouts
        self.collaborator_factory = collaborators or default_collaborators
        self.ip_resolver = ip_resolver
        self.rng = rng

        self.context: Optional[RunContext] = None
        self._pipeline: Optional[PagePipeline] = None
        self._collaborators: Optional[Collaborators] = None

    async def run(self, crawl_list: Optional[CrawlList] = None) -> RunContext:
        """
        Crawl every remaining item of the crawl list and mark the crawl completed.

        Args:
            crawl_list: Pre-loaded crawl list; loaded from the flags when omitted

        Returns:
            RunContext of the crawl

        Raises:
            PreflightError: If the crawl list is invalid or the crawl cannot be
                resumed. Nothing is launched or written in that case.
        """
        if crawl_list is None:
            crawl_list = load_crawl_list(self.flags)

        state = RunStateMachine(self.db, ip_resolver=self.ip_resolver)
        self.context = await state.start(self.flags, crawl_list, self.timeouts)
        self._collaborators = self.collaborator_factory(self.context, self.db)
        self._pipeline = PagePipeline(
            self.context,
            self.db,
            self.driver,
            page_scraper=self._collaborators.page_scraper,
            ad_scraper=self._collaborators.ad_scraper,
            cookie_remover=self._collaborators.cookie_remover,
            rng=self.rng,
        )

        logger.info("Launching browser...")
        await self.driver.launch()
        try:
            logger.info(f"Running {await self.driver.version()}")

            # Computed once for the whole list
            deadline = Deadline(self.timeouts.overall_timeout(len(crawl_list)))

            for target in crawl_list.targets[self.context.start_index:]:
                budget = deadline.renewed() if self.timeouts.renew_deadline_per_target else deadline
                await self.crawl_item(target, budget)

            self.db.complete_run(self.context.run_id)
            logger.info(
                f"Crawl {self.context.run_id} completed: "
                f"{self.db.count_pages_for_run(self.context.run_id)} pages visited"
            )
        finally:
            await self.driver.close()

        return self.context

    async def crawl_item(self, target: Target, deadline: Deadline) -> None:
        """
        Crawl one crawl list item within the deadline and save progress.

        Failures are logged, not raised. Progress is not saved if the crawl
        itself is cancelled.
        """
        tabs: List[Any] = []
        try:
            await run_with_deadline(
                self._crawl_target(target, tabs),
                deadline,
                f"{target.url}: overall site timeout reached",
            )
        except TargetTimeoutError as e:
            logger.error(f"{e}{self._landed_on(target, tabs)}")
        except Exception as e:
            logger.error(f"{target.url}: {e}{self._landed_on(target, tabs)}", exc_info=True)
        finally:
            for tab in tabs:
                await self.driver.close_tab(tab)

        self.db.update_run_progress(self.context.run_id, target.index + 1)

    def _landed_on(self, target: Target, tabs: List[Any]) -> str:
        """Where the seed tab ended up, if that is somewhere other than the target."""
        if not tabs:
            return ""
        current = self.driver.current_url(tabs[0])
        if not current or current == target.url or current.startswith("about:"):
            return ""
        return f" (seed tab at {current})"

    async def _open_tab(self, tabs: List[Any]) -> Any:
        tab = await self.driver.new_tab()
        tabs.append(tab)
        return tab

    async def _close_tab(self, tab: Any, tabs: List[Any]) -> None:
        await self.driver.close_tab(tab)
        tabs.remove(tab)

    async def _crawl_target(self, target: Target, tabs: List[Any]) -> None:
        crawl_options = self.context.flags.crawl_options

        seed_tab = await self._open_tab(tabs)
        page_id = await self._pipeline.load_and_handle_page(target.url, seed_tab, seed_visit_for(target))

        if crawl_options.refresh_page:
            # The reloaded page becomes the referrer for subpages
            await self._close_tab(seed_tab, tabs)
            seed_tab = await self._open_tab(tabs)
            page_id = await self._pipeline.load_and_handle_page(
                target.url, seed_tab, seed_visit_for(target, reload=1)
            )

        if crawl_options.find_and_crawl_article_page or crawl_options.find_and_crawl_page_with_ads:
            explorer = SubpageExplorer(
                self.context,
                self.driver,
                self._pipeline,
                self._collaborators.subpage_finder(),
            )
            await explorer.explore(seed_tab, page_id, tabs)
