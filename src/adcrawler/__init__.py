"""Resumable ad and third-party request crawler."""

__version__ = "0.1.0"

from adcrawler.config import (
    ChromeOptions,
    CrawlerFlags,
    CrawlOptions,
    CrawlTimeouts,
    ScrapeOptions,
    settings,
)
from adcrawler.exceptions import (
    AdCrawlerError,
    CrawlListError,
    OutputDirectoryError,
    PreflightError,
    ResumeError,
    TargetTimeoutError,
)
from adcrawler.models import (
    CapturedRequest,
    LandingVisit,
    PageType,
    RunRecord,
    SeedVisit,
    SubpageVisit,
    Target,
)
from adcrawler.database import (
    AbstractDatabase,
    LocalSqliteDatabase,
    TursoDatabase,
    get_db_client,
)
from adcrawler.browser import BrowserDriver, PlaywrightDriver
from adcrawler.targets import CrawlList, load_crawl_list
from adcrawler.run_state import RunContext, RunStateMachine
from adcrawler.pipeline import PagePipeline
from adcrawler.explorer import SubpageExplorer
from adcrawler.crawler import Collaborators, Crawler, default_collaborators

__all__ = [
    # Configuration
    "ChromeOptions",
    "CrawlerFlags",
    "CrawlOptions",
    "CrawlTimeouts",
    "ScrapeOptions",
    "settings",
    # Errors
    "AdCrawlerError",
    "CrawlListError",
    "OutputDirectoryError",
    "PreflightError",
    "ResumeError",
    "TargetTimeoutError",
    # Models
    "CapturedRequest",
    "LandingVisit",
    "PageType",
    "RunRecord",
    "SeedVisit",
    "SubpageVisit",
    "Target",
    # Storage
    "AbstractDatabase",
    "LocalSqliteDatabase",
    "TursoDatabase",
    "get_db_client",
    # Crawling
    "BrowserDriver",
    "PlaywrightDriver",
    "CrawlList",
    "load_crawl_list",
    "RunContext",
    "RunStateMachine",
    "PagePipeline",
    "SubpageExplorer",
    "Collaborators",
    "Crawler",
    "default_collaborators",
]
