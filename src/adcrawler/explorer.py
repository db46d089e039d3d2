"""Visits pages linked from a seed page after the seed page has been crawled."""

import logging
from typing import Any, List

from adcrawler.browser import BrowserDriver
from adcrawler.extraction.base import BaseSubpageFinder
from adcrawler.models import SubpageVisit
from adcrawler.pipeline import PagePipeline
from adcrawler.run_state import RunContext

logger = logging.getLogger(__name__)


class SubpageExplorer:
    """
    Finds and crawls an article and/or ad-bearing pages linked from a seed tab.

    Not finding a page is logged and skipped. Errors while visiting a page
    that was found are left to the caller.
    """

    def __init__(
        self,
        context: RunContext,
        driver: BrowserDriver,
        pipeline: PagePipeline,
        finder: BaseSubpageFinder,
    ):
        self.context = context
        self.driver = driver
        self.pipeline = pipeline
        self.finder = finder

    async def explore(self, seed_tab: Any, seed_page_id: int, tabs: List[Any]) -> int:
        """
        Crawl the subpages requested by the crawl options.

        Args:
            seed_tab: Tab with the seed page loaded
            seed_page_id: Page id the subpages are attributed to
            tabs: Every tab opened here is appended, so the caller can close
                it if the visit is abandoned

        Returns:
            Number of subpages visited (not counting reloads)
        """
        options = self.context.flags.crawl_options
        seed_url = self.driver.current_url(seed_tab)
        visited = 0

        if options.find_and_crawl_article_page:
            article_url = await self.finder.find_article(seed_tab)
            if article_url:
                await self._visit(article_url, seed_tab, seed_page_id, tabs)
                visited += 1
            else:
                logger.warning(f"{seed_url}: Couldn't find article")

        for _ in range(options.find_and_crawl_page_with_ads):
            ads_url = await self.finder.find_ad_bearing_page(seed_tab)
            if not ads_url:
                logger.warning(f"{seed_url}: Couldn't find page with ads")
                break
            await self._visit(ads_url, seed_tab, seed_page_id, tabs)
            visited += 1

        return visited

    async def _visit(self, url: str, seed_tab: Any, seed_page_id: int, tabs: List[Any]) -> None:
        reloads = 2 if self.context.flags.crawl_options.refresh_page else 1
        for reload in range(reloads):
            visit = SubpageVisit(
                referrer_page_id=seed_page_id,
                referrer_page_url=self.driver.current_url(seed_tab),
                reload=reload,
            )
            tab = await self.driver.new_tab()
            tabs.append(tab)
            await self.pipeline.load_and_handle_page(url, tab, visit)
            await self.driver.close_tab(tab)
            tabs.remove(tab)
