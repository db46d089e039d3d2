"""Saves the rendered content of crawled pages."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from bs4 import BeautifulSoup

from adcrawler.database import AbstractDatabase
from adcrawler.extraction.base import BasePageScraper
from adcrawler.models import PageScrapeContext

logger = logging.getLogger(__name__)


def summarize_html(html: str) -> Tuple[Optional[str], str]:
    """Extract the title and visible text of an HTML document."""
    soup = BeautifulSoup(html, "html.parser")

    title = None
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = soup.get_text(" ", strip=True)
    return title, text


class PageScraper(BasePageScraper):
    """
    Writes each page's HTML, visible text and a full-page screenshot under
    ``<output_dir>/<crawl_id>/pages/`` and records them on the page row.
    """

    def __init__(
        self,
        db: AbstractDatabase,
        crawl_id: int,
        output_dir: str,
        timeout: float = 120,
        capture_screenshots: bool = True,
    ):
        self.db = db
        self.crawl_id = crawl_id
        self.pages_dir = Path(output_dir) / str(crawl_id) / "pages"
        self.timeout = timeout
        self.capture_screenshots = capture_screenshots

    async def extract_page(self, page, context: PageScrapeContext) -> None:
        try:
            await asyncio.wait_for(self._scrape(page, context), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"{page.url}: page scrape timed out after {self.timeout}s") from None

    async def _scrape(self, page, context: PageScrapeContext) -> None:
        logger.info(f"{page.url}: Scraping page content")
        self.pages_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{context.page_id}_{context.page_type.value}"

        html = await page.content()
        html_path = self.pages_dir / f"{stem}.html"
        html_path.write_text(html, encoding="utf-8")

        title, text = summarize_html(html)
        (self.pages_dir / f"{stem}.txt").write_text(text, encoding="utf-8")

        screenshot_path = None
        if self.capture_screenshots:
            screenshot_path = self.pages_dir / f"{stem}.png"
            await page.screenshot(path=str(screenshot_path), full_page=True)

        self.db.update_page_visit(context.page_id, {
            "timestamp": datetime.now(),
            "url": page.url,
            "title": title,
            "html_path": str(html_path),
            "screenshot_path": str(screenshot_path) if screenshot_path else None,
            "text_length": len(text),
        })
        logger.debug(f"{page.url}: Saved page {context.page_id} ({len(text)} chars of text)")
