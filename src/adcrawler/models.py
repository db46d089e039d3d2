"""Data models for crawl runs, page visits and captured requests."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class PageType(str, Enum):
    """Why a page was loaded."""

    MAIN = "main"        # Page from the crawl list
    LANDING = "landing"  # Ad landing page from an ad URL crawl list
    SUBPAGE = "subpage"  # Page found from a link on a crawl list page


@dataclass(frozen=True)
class Target:
    """One item of the crawl list."""

    url: str
    index: int
    ad_id: Optional[int] = None

    @property
    def is_ad_landing_page(self) -> bool:
        return self.ad_id is not None


# Visit contexts: one variant per page type, each carrying only its own fields.

@dataclass(frozen=True)
class SeedVisit:
    reload: int = 0

    page_type = PageType.MAIN

    def record_fields(self) -> Dict[str, Any]:
        return {"page_type": self.page_type.value, "reload": self.reload}


@dataclass(frozen=True)
class LandingVisit:
    referrer_ad: int
    reload: int = 0

    page_type = PageType.LANDING

    def record_fields(self) -> Dict[str, Any]:
        return {
            "page_type": self.page_type.value,
            "referrer_ad": self.referrer_ad,
            "reload": self.reload,
        }


@dataclass(frozen=True)
class SubpageVisit:
    referrer_page_id: int
    referrer_page_url: str
    reload: int = 0

    page_type = PageType.SUBPAGE

    def record_fields(self) -> Dict[str, Any]:
        return {
            "page_type": self.page_type.value,
            "referrer_page": self.referrer_page_id,
            "referrer_page_url": self.referrer_page_url,
            "reload": self.reload,
        }


VisitContext = Union[SeedVisit, LandingVisit, SubpageVisit]


def seed_visit_for(target: Target, reload: int = 0) -> VisitContext:
    """Visit context for loading a crawl list item."""
    if target.is_ad_landing_page:
        return LandingVisit(referrer_ad=target.ad_id, reload=reload)
    return SeedVisit(reload=reload)


@dataclass
class RunRecord:
    """A row of the crawl table."""

    id: int
    crawl_list: Optional[str]
    crawl_list_current_index: int
    crawl_list_length: int
    completed: bool = False
    name: Optional[str] = None
    job_id: Optional[int] = None
    start_time: Optional[str] = None
    completed_time: Optional[str] = None
    profile_id: Optional[str] = None
    profile_dir: Optional[str] = None
    crawler_hostname: Optional[str] = None
    crawler_ip: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RunRecord":
        return cls(
            id=row["id"],
            crawl_list=row.get("crawl_list"),
            crawl_list_current_index=row.get("crawl_list_current_index") or 0,
            crawl_list_length=row.get("crawl_list_length") or 0,
            completed=bool(row.get("completed")),
            name=row.get("name"),
            job_id=row.get("job_id"),
            start_time=row.get("start_time"),
            completed_time=row.get("completed_time"),
            profile_id=row.get("profile_id"),
            profile_dir=row.get("profile_dir"),
            crawler_hostname=row.get("crawler_hostname"),
            crawler_ip=row.get("crawler_ip"),
        )


# Placeholder page id for requests captured before their page is saved
PENDING_PAGE_ID = -1


@dataclass
class CapturedRequest:
    """A cross-origin request observed while a page was loading."""

    crawl_id: int
    initiator: str
    target_url: str
    resource_type: str
    job_id: Optional[int] = None
    parent_page: int = PENDING_PAGE_ID
    timestamp: datetime = field(default_factory=datetime.now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "job_id": self.job_id,
            "crawl_id": self.crawl_id,
            "parent_page": self.parent_page,
            "initiator": self.initiator,
            "target_url": self.target_url,
            "resource_type": self.resource_type,
        }


@dataclass(frozen=True)
class PageScrapeContext:
    """What the page scraper needs to know about the page being scraped."""

    page_id: int
    page_type: PageType
    referrer_ad: Optional[int] = None


@dataclass(frozen=True)
class AdScrapeContext:
    """What the ad scraper needs to know about the page being scraped."""

    original_url: str
    page_type: PageType
    parent_page_id: int
