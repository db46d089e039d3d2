"""
Crawl list loading.

A crawl list comes from one of three sources, checked in this order:
a single URL (optionally paired with an ad id), a text file with one URL per
line, or a CSV file of ad landing pages with ``ad_id`` and ``url`` columns.
Every URL is validated before the crawl starts.
"""

import csv
import ipaddress
import logging
import os
import random
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple
from urllib.parse import urlparse

from adcrawler.config import CrawlerFlags
from adcrawler.exceptions import CrawlListError
from adcrawler.models import Target

logger = logging.getLogger(__name__)

AD_URL_LIST_COLUMNS = ("ad_id", "url")

# Characters a browser refuses in a host name
FORBIDDEN_HOST_CHARS = re.compile(r"[\x00-\x20#/:<>?@\[\\\]^|\x7f]")


@dataclass
class CrawlList:
    """The loaded crawl list and where it came from."""

    targets: List[Target]
    # Path of the list file, or the URL itself for single-URL crawls
    source: str
    is_file: bool
    is_ad_url_crawl: bool = False

    def __len__(self) -> int:
        return len(self.targets)

    @property
    def name(self) -> str:
        """Name used to match a resumed crawl to its original crawl list."""
        return crawl_list_name(self.source)


def crawl_list_name(source: Optional[str]) -> str:
    """Basename of a crawl list file, or the URL itself for single-URL crawls."""
    if not source:
        return ""
    if is_valid_url(source):
        return source
    return os.path.basename(source)


def is_valid_url(url: str) -> bool:
    """
    Check that url is a well-formed absolute http(s) URL.

    Rejects what a browser would refuse to navigate to: a missing or
    malformed host, characters that cannot appear in a host name, and a
    non-numeric or out-of-range port.
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
        # Raises ValueError for a bad port
        parsed.port
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https") or not hostname:
        return False

    if parsed.netloc.rpartition("@")[2].startswith("["):
        try:
            ipaddress.IPv6Address(hostname)
        except ValueError:
            return False
        return True

    return not FORBIDDEN_HOST_CHARS.search(hostname)


def _read_url_list(path: str) -> Iterator[Tuple[int, str, Optional[int]]]:
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            url = line.strip()
            if url:
                yield line_number, url, None


def _read_ad_url_list(path: str) -> Iterator[Tuple[int, str, Optional[int]]]:
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or []
        for column in AD_URL_LIST_COLUMNS:
            if column not in fieldnames:
                raise CrawlListError(f"{column} column missing from ad URL list {path}", path=path)

        for row_number, row in enumerate(reader, start=2):  # Start at 2 for header
            ad_id = (row.get("ad_id") or "").strip()
            url = (row.get("url") or "").strip()
            if not ad_id or not url:
                raise CrawlListError(
                    f"Missing ad_id or url in {path} at line {row_number}",
                    path=path, line=row_number,
                )
            if not ad_id.isdigit():
                raise CrawlListError(
                    f"Invalid ad_id in {path} at line {row_number}: {ad_id}",
                    path=path, line=row_number,
                )
            yield row_number, url, int(ad_id)


def _build_targets(rows: Iterator[Tuple[int, str, Optional[int]]], source: str) -> List[Target]:
    targets = []
    for line_number, url, ad_id in rows:
        if not is_valid_url(url):
            raise CrawlListError(
                f"Invalid URL in crawl list {source} at line {line_number}: {url}",
                path=source, line=line_number,
            )
        targets.append(Target(url=url, index=len(targets), ad_id=ad_id))
    return targets


def load_crawl_list(flags: CrawlerFlags, rng: Optional[random.Random] = None) -> CrawlList:
    """
    Load and validate the crawl list selected by the flags.

    Args:
        flags: Crawler flags (url/ad_id, url_list or ad_url_list)
        rng: Random source used when shuffling the list. Defaults to one
            seeded with the crawl name, so a resumed crawl sees the same order.

    Returns:
        CrawlList with targets indexed in crawl order

    Raises:
        CrawlListError: If no list is given, a file is missing, a required
            column is absent, or any URL is invalid
    """
    if flags.url:
        if not is_valid_url(flags.url):
            raise CrawlListError(f"Invalid URL: {flags.url}")
        crawl_list = CrawlList(
            targets=[Target(url=flags.url, index=0, ad_id=flags.ad_id)],
            source=flags.url,
            is_file=False,
            is_ad_url_crawl=flags.ad_id is not None,
        )
    elif flags.url_list:
        if not os.path.exists(flags.url_list):
            raise CrawlListError(f"{flags.url_list} does not exist.", path=flags.url_list)
        crawl_list = CrawlList(
            targets=_build_targets(_read_url_list(flags.url_list), flags.url_list),
            source=flags.url_list,
            is_file=True,
        )
    elif flags.ad_url_list:
        if not os.path.exists(flags.ad_url_list):
            raise CrawlListError(f"{flags.ad_url_list} does not exist.", path=flags.ad_url_list)
        crawl_list = CrawlList(
            targets=_build_targets(_read_ad_url_list(flags.ad_url_list), flags.ad_url_list),
            source=flags.ad_url_list,
            is_file=True,
            is_ad_url_crawl=True,
        )
    else:
        raise CrawlListError(
            "Must provide one of the following crawl inputs: --url, --url-list or --ad-url-list"
        )

    if flags.crawl_options.shuffle_crawl_list and len(crawl_list) > 1:
        shuffled = list(crawl_list.targets)
        (rng or random.Random(flags.crawl_name)).shuffle(shuffled)
        crawl_list.targets = [
            Target(url=t.url, index=i, ad_id=t.ad_id) for i, t in enumerate(shuffled)
        ]
        logger.info("Shuffled crawl list")

    logger.info(f"Loaded {len(crawl_list)} URLs from {crawl_list.source}")
    return crawl_list
