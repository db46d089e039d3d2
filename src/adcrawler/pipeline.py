"""
Page load and capture pipeline.

Every page the crawler visits, seed or subpage, goes through
PagePipeline.load_and_handle_page: the page record is created first so that
failures can be recorded against it, then the page is loaded, tidied up,
scrolled, scraped, and its captured cross-origin requests are saved.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any, Optional

from adcrawler.browser import BrowserDriver
from adcrawler.database import AbstractDatabase
from adcrawler.extraction.base import BaseAdScraper, BaseCookieBannerRemover, BasePageScraper
from adcrawler.interception import RequestInterceptionFilter
from adcrawler.models import AdScrapeContext, LandingVisit, PageScrapeContext, VisitContext
from adcrawler.run_state import RunContext
from adcrawler.timeouts import sleep

logger = logging.getLogger(__name__)


class PagePipeline:
    """Loads one URL in one tab and records everything about it."""

    def __init__(
        self,
        context: RunContext,
        db: AbstractDatabase,
        driver: BrowserDriver,
        page_scraper: BasePageScraper,
        ad_scraper: BaseAdScraper,
        cookie_remover: BaseCookieBannerRemover,
        rng: Optional[random.Random] = None,
    ):
        self.context = context
        self.db = db
        self.driver = driver
        self.page_scraper = page_scraper
        self.ad_scraper = ad_scraper
        self.cookie_remover = cookie_remover
        self._rng = rng or random.Random()

    @property
    def timeouts(self):
        return self.context.timeouts

    async def load_and_handle_page(self, url: str, tab: Any, visit: VisitContext) -> int:
        """
        Visit url in tab and scrape it according to the crawl's flags.

        Args:
            url: URL to load
            tab: Tab to load it in
            visit: Why the page is being visited (seed, ad landing page or subpage)

        Returns:
            Id of the page record

        Raises:
            Whatever the load or scrape raised, after recording it on the page
        """
        logger.info(f"{url}: Loading page")
        scrape_options = self.context.flags.scrape_options

        # Created up front and filled in later with the contents or the error
        page_id = self.db.create_page_visit({
            "job_id": self.context.job_id,
            "crawl_id": self.context.run_id,
            "original_url": url,
            **visit.record_fields(),
        })

        try:
            request_filter = RequestInterceptionFilter(
                page_url=lambda: self.driver.current_url(tab),
                crawl_id=self.context.run_id,
                job_id=self.context.job_id,
                enabled=scrape_options.capture_third_party_requests,
            )
            await self.driver.set_request_interception(tab, True)
            self.driver.on_request(tab, request_filter)

            await self.driver.navigate(tab, url, timeout=self.timeouts.page_navigation)
            await sleep(self.timeouts.page_sleep)
            logger.info(f"{url}: Page finished loading")

            await self.cookie_remover.dismiss_cookie_banners(tab)

            # Dismiss modal popups
            await self.driver.press_key(tab, "Escape")

            # Trigger lazy loading
            await self.scroll_to_bottom(tab)

            if scrape_options.scrape_site:
                await self.page_scraper.extract_page(tab, PageScrapeContext(
                    page_id=page_id,
                    page_type=visit.page_type,
                    referrer_ad=visit.referrer_ad if isinstance(visit, LandingVisit) else None,
                ))
            else:
                self.db.update_page_visit(page_id, {
                    "timestamp": datetime.now(),
                    "url": self.driver.current_url(tab),
                })

            if scrape_options.scrape_ads:
                await self.ad_scraper.extract_ads(tab, AdScrapeContext(
                    original_url=url,
                    page_type=visit.page_type,
                    parent_page_id=page_id,
                ))

            if scrape_options.capture_third_party_requests:
                requests = request_filter.drain(page_id)
                logger.info(f"{url}: Saving {len(requests)} cross-origin requests")
                for request in requests:
                    self.db.record_captured_request(request.to_record())

            return page_id
        except asyncio.CancelledError:
            self.db.update_page_visit(page_id, {"error": "Page visit cancelled"})
            raise
        except Exception as e:
            self.db.update_page_visit(page_id, {"error": str(e) or type(e).__name__})
            raise

    async def scroll_to_bottom(self, tab: Any) -> int:
        """
        Wheel-scroll from the top of the page until the bottom is in view.

        Gives up after max_scroll_iterations, since infinite-scroll pages never
        reach the bottom. The page height is only read once.

        Returns:
            Number of scroll steps taken
        """
        logger.info(f"{self.driver.current_url(tab)}: Scrolling page from top to bottom")
        inner_height = await self.driver.evaluate(tab, "window.innerHeight")
        scroll_y = await self.driver.evaluate(tab, "window.scrollY")
        scroll_height = await self.driver.evaluate(tab, "document.body.scrollHeight")

        steps = 0
        while scroll_y + inner_height < scroll_height and steps < self.timeouts.max_scroll_iterations:
            # The wheel event is dispatched at the pointer position
            await self.driver.move_pointer(tab, self._rng.uniform(50, 100), self._rng.uniform(50, 100))
            await self.driver.wheel_scroll(tab, self._rng.uniform(200, 400))
            await sleep(self.timeouts.scroll_pause)

            scroll_y = await self.driver.evaluate(tab, "window.scrollY")
            steps += 1

        return steps
