from dotenv import load_dotenv
from dataclasses import dataclass, field
from typing import Dict, Optional
import os

from pydantic import BaseModel, Field

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///adcrawler.db")  # Default to SQLite

    # Database backend configuration
    DB_BACKEND = os.getenv("DB_BACKEND", "local")  # 'local' or 'turso'
    TURSO_DATABASE_URL = os.getenv("TURSO_DATABASE_URL")  # e.g., libsql://your-db.turso.io
    TURSO_AUTH_TOKEN = os.getenv("TURSO_AUTH_TOKEN")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Public IP lookup endpoints
    PUBLIC_IPV4_URL = os.getenv("PUBLIC_IPV4_URL", "https://api.ipify.org")
    PUBLIC_IPV6_URL = os.getenv("PUBLIC_IPV6_URL", "https://api6.ipify.org")


settings = Settings()


class ChromeOptions(BaseModel):
    """Browser launch options."""

    profile_dir: Optional[str] = Field(
        default=None,
        description="Persistent browser profile directory (user data dir)"
    )

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    executable_path: Optional[str] = Field(
        default=None,
        description="Path to a Chrome/Chromium executable. None uses the bundled browser."
    )

    proxy_server: Optional[str] = Field(
        default=None,
        description="Proxy server passed to the browser (e.g., 'http://host:3128')"
    )


class CrawlOptions(BaseModel):
    """Controls which pages are visited for each crawl list item."""

    shuffle_crawl_list: bool = Field(
        default=False,
        description="Shuffle the crawl list before starting"
    )

    find_and_crawl_page_with_ads: int = Field(
        default=0,
        description="Number of additional ad-bearing pages to find and crawl from each seed page",
        ge=0
    )

    find_and_crawl_article_page: bool = Field(
        default=False,
        description="Find and crawl an article page linked from each seed page"
    )

    refresh_page: bool = Field(
        default=False,
        description="Load every page a second time in a fresh tab and scrape it again"
    )


class ScrapeOptions(BaseModel):
    """Controls what is captured from each visited page."""

    scrape_site: bool = Field(
        default=True,
        description="Save page content (HTML, screenshot, text)"
    )

    scrape_ads: bool = Field(
        default=True,
        description="Detect and save ads on the page"
    )

    screenshot_ads_with_context: bool = Field(
        default=False,
        description="Screenshot the viewport around each ad instead of the ad element only"
    )

    capture_third_party_requests: bool = Field(
        default=True,
        description="Record cross-origin requests made by each page"
    )


class CrawlerFlags(BaseModel):
    """
    Full set of options for one crawler process.

    Exactly one of url, url_list or ad_url_list selects the crawl list; when
    more than one is given, the first in that order wins.
    """

    job_id: Optional[int] = None
    crawl_name: Optional[str] = None
    resume_if_able: bool = False
    profile_id: Optional[str] = None
    output_dir: str

    url: Optional[str] = None
    ad_id: Optional[int] = None
    url_list: Optional[str] = None
    ad_url_list: Optional[str] = None

    log_level: str = Field(default="INFO")

    chrome_options: ChromeOptions = Field(default_factory=ChromeOptions)
    crawl_options: CrawlOptions = Field(default_factory=CrawlOptions)
    scrape_options: ScrapeOptions = Field(default_factory=ScrapeOptions)


@dataclass
class CrawlTimeouts:
    """Tunable durations (seconds) and viewport used during a crawl."""

    # How long to wait for a page to load
    page_navigation: float = 3 * 60
    # How long the page scraper may spend on one page
    page_scrape: float = 2 * 60
    # How long the ad scraper may spend on one ad; must exceed ad_sleep
    ad_scrape: float = 20
    # Sleep before scraping ads
    ad_sleep: float = 5
    # Sleep after navigation so async content can arrive
    page_sleep: float = 10
    # Overall budget per crawl list item, multiplied by the list length
    per_target_budget: float = 15 * 60
    # Restart the overall budget for every item instead of sharing one
    # budget across the whole list
    renew_deadline_per_target: bool = False

    scroll_pause: float = 1.0
    max_scroll_iterations: int = 30

    viewport: Dict[str, int] = field(
        default_factory=lambda: {"width": 1366, "height": 768}
    )

    def overall_timeout(self, target_count: int) -> float:
        """Total wall-clock budget for a crawl list of the given length."""
        return target_count * self.per_target_budget


default_timeouts = CrawlTimeouts()
