"""Public IP address lookup for labelling crawl records."""

import ipaddress
import logging
from typing import Optional

import httpx

from adcrawler.config import settings

logger = logging.getLogger(__name__)


async def _lookup(client: httpx.AsyncClient, url: str) -> str:
    response = await client.get(url)
    response.raise_for_status()
    address = response.text.strip()
    # Raises ValueError for anything that isn't an IP address
    ipaddress.ip_address(address)
    return address


async def get_public_ip(
    ipv4_url: Optional[str] = None,
    ipv6_url: Optional[str] = None,
    timeout: float = 10.0,
) -> Optional[str]:
    """
    Resolve the crawler's public IP address.

    Tries IPv4 first, then IPv6. Returns None if neither lookup succeeds; a
    missing address is never fatal.

    Args:
        ipv4_url: Endpoint returning the caller's IPv4 address as plain text
        ipv6_url: Endpoint returning the caller's IPv6 address as plain text
        timeout: Per-request timeout in seconds

    Returns:
        The public IP address as a string, or None
    """
    endpoints = [
        ("IPv4", ipv4_url or settings.PUBLIC_IPV4_URL),
        ("IPv6", ipv6_url or settings.PUBLIC_IPV6_URL),
    ]

    async with httpx.AsyncClient(timeout=timeout) as client:
        for family, url in endpoints:
            try:
                address = await _lookup(client, url)
                logger.debug(f"Public {family} address: {address}")
                return address
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Could not resolve public {family} address from {url}: {e}")

    return None
