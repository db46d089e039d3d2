"""
Ad detection and capture.

Ads are located with a fixed list of CSS selectors covering the common ad
slot containers and ad network iframes. Elements nested inside another match
are skipped, so each ad is saved once.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

from playwright.async_api import Error as PlaywrightError

from adcrawler.config import CrawlTimeouts, default_timeouts
from adcrawler.database import AbstractDatabase
from adcrawler.extraction.base import BaseAdScraper
from adcrawler.models import AdScrapeContext

logger = logging.getLogger(__name__)

AD_SELECTORS = [
    'div[id^="div-gpt-ad"]',
    'iframe[id^="google_ads_iframe"]',
    'ins.adsbygoogle',
    'iframe[src*="doubleclick.net"]',
    'iframe[src*="googlesyndication.com"]',
    'iframe[src*="amazon-adsystem.com"]',
    'iframe[src*="adnxs.com"]',
    '[data-google-query-id]',
    '[data-ad-slot]',
    'div[id*="taboola"]',
    'div[class*="OUTBRAIN"]',
    '[aria-label="Advertisement"]',
]

# Tags each outermost matching element with data-adcrawler-ad=<n> and returns
# the selector that matched it, in document order of discovery.
MARK_ADS_JS = """
(selectors) => {
    const found = [];
    for (const selector of selectors) {
        for (const el of document.querySelectorAll(selector)) {
            if (found.some(f => f.el === el || f.el.contains(el))) continue;
            for (let i = found.length - 1; i >= 0; i--) {
                if (el.contains(found[i].el)) found.splice(i, 1);
            }
            found.push({el, selector});
        }
    }
    return found.map((f, i) => {
        f.el.setAttribute('data-adcrawler-ad', String(i));
        return {index: i, selector: f.selector};
    });
}
"""

# Ignore slots that never rendered anything
MIN_AD_SIZE_PX = 10


class AdScraper(BaseAdScraper):
    """Saves the HTML, size and a screenshot of every ad on a page."""

    def __init__(
        self,
        db: AbstractDatabase,
        crawl_id: int,
        output_dir: str,
        job_id: Optional[int] = None,
        screenshot_with_context: bool = False,
        timeouts: CrawlTimeouts = default_timeouts,
        selectors: Optional[List[str]] = None,
    ):
        self.db = db
        self.crawl_id = crawl_id
        self.job_id = job_id
        self.ads_dir = Path(output_dir) / str(crawl_id) / "ads"
        self.screenshot_with_context = screenshot_with_context
        self.timeouts = timeouts
        self.selectors = selectors or AD_SELECTORS

    async def extract_ads(self, page, context: AdScrapeContext) -> None:
        marked: List[Dict] = await page.evaluate(MARK_ADS_JS, self.selectors)
        logger.info(f"{context.original_url}: Found {len(marked)} ad candidates")
        if not marked:
            return

        self.ads_dir.mkdir(parents=True, exist_ok=True)
        # Give ads time to render before capturing them
        await asyncio.sleep(self.timeouts.ad_sleep)

        saved = 0
        for ad in marked:
            try:
                saved += await asyncio.wait_for(
                    self._scrape_ad(page, ad, context), timeout=self.timeouts.ad_scrape
                )
            except (PlaywrightError, asyncio.TimeoutError) as e:
                logger.warning(f"{context.original_url}: Error scraping ad {ad['index']}: {e}")
                self.db.record_ad({
                    "job_id": self.job_id,
                    "crawl_id": self.crawl_id,
                    "parent_page": context.parent_page_id,
                    "original_url": context.original_url,
                    "page_type": context.page_type,
                    "selector": ad["selector"],
                    "error": str(e) or type(e).__name__,
                })
        logger.info(f"{context.original_url}: Saved {saved} ads")

    async def _scrape_ad(self, page, ad: Dict, context: AdScrapeContext) -> int:
        handle = await page.query_selector(f'[data-adcrawler-ad="{ad["index"]}"]')
        if handle is None:
            return 0

        await handle.scroll_into_view_if_needed()
        box = await handle.bounding_box()
        if not box or box["width"] < MIN_AD_SIZE_PX or box["height"] < MIN_AD_SIZE_PX:
            return 0

        html = await handle.evaluate("e => e.outerHTML")
        screenshot_path = self.ads_dir / f"{context.parent_page_id}_{ad['index']}.png"
        if self.screenshot_with_context:
            await page.screenshot(path=str(screenshot_path))
        else:
            await handle.screenshot(path=str(screenshot_path))

        self.db.record_ad({
            "job_id": self.job_id,
            "crawl_id": self.crawl_id,
            "parent_page": context.parent_page_id,
            "original_url": context.original_url,
            "page_type": context.page_type,
            "selector": ad["selector"],
            "html": html,
            "screenshot_path": str(screenshot_path),
            "width": box["width"],
            "height": box["height"],
        })
        return 1
