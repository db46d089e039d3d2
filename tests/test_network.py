"""Tests for public IP resolution."""

from unittest.mock import patch

import httpx
import pytest

from adcrawler import network
from adcrawler.network import get_public_ip

IPV4_URL = "https://ipv4.test/"
IPV6_URL = "https://ipv6.test/"


def _mock_client(handler):
    """AsyncClient factory that routes every request to handler."""
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return factory


async def _resolve(handler):
    with patch.object(network.httpx, "AsyncClient", _mock_client(handler)):
        return await get_public_ip(ipv4_url=IPV4_URL, ipv6_url=IPV6_URL)


class TestGetPublicIp:
    @pytest.mark.asyncio
    async def test_ipv4(self):
        def handler(request):
            return httpx.Response(200, text="203.0.113.7\n")

        assert await _resolve(handler) == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_falls_back_to_ipv6(self):
        def handler(request):
            if request.url.host == "ipv4.test":
                raise httpx.ConnectError("Network unreachable", request=request)
            return httpx.Response(200, text="2001:db8::1")

        assert await _resolve(handler) == "2001:db8::1"

    @pytest.mark.asyncio
    async def test_http_error_falls_back(self):
        def handler(request):
            if request.url.host == "ipv4.test":
                return httpx.Response(503)
            return httpx.Response(200, text="2001:db8::1")

        assert await _resolve(handler) == "2001:db8::1"

    @pytest.mark.asyncio
    async def test_garbage_response_rejected(self):
        def handler(request):
            return httpx.Response(200, text="<html>captive portal</html>")

        assert await _resolve(handler) is None

    @pytest.mark.asyncio
    async def test_both_fail_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        assert await _resolve(handler) is None
