"""Unit tests for CookieBannerRemover."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from adcrawler.extraction.cookie_banners import (
    ACCEPT_TEXT,
    CONSENT_BUTTON_SELECTORS,
    CONSENT_CONTAINER_SELECTOR,
    CONTAINED_ACCEPT_TEXT,
    CookieBannerRemover,
)


def _locator(count=0, visible=False, buttons=None):
    locator = MagicMock()
    locator.first = locator
    locator.count = AsyncMock(return_value=count)
    locator.is_visible = AsyncMock(return_value=visible)
    locator.click = AsyncMock()
    locator.get_by_role = MagicMock(side_effect=lambda *args, **kwargs: buttons or _locator())
    return locator


def _page(locators=None, text_button=None, removed=0):
    locators = locators or {}
    page = MagicMock()
    page.url = "https://news.example.com/"
    page.locator = MagicMock(side_effect=lambda selector: locators.get(selector, _locator()))
    page.get_by_role = MagicMock(return_value=text_button or _locator())
    page.evaluate = AsyncMock(return_value=removed)
    return page


class TestAcceptText:
    @pytest.mark.parametrize("label", ["Accept all", "I agree", "Allow all cookies", "Alle akzeptieren"])
    def test_matches(self, label):
        assert ACCEPT_TEXT.match(label)

    @pytest.mark.parametrize("label", ["Manage preferences", "Reject all", "Subscribe", "Continue", "OK", "Got it"])
    def test_does_not_match(self, label):
        assert not ACCEPT_TEXT.match(label)

    @pytest.mark.parametrize("label", ["Continue", "OK", "Okay", "Got it"])
    def test_generic_labels_only_inside_banner(self, label):
        assert CONTAINED_ACCEPT_TEXT.match(label)
        assert not CONTAINED_ACCEPT_TEXT.match(f"{label} reading")

    def test_container_selector_covers_consent_words(self):
        for word in ("cookie", "consent", "gdpr"):
            assert f'[id*="{word}" i]' in CONSENT_CONTAINER_SELECTOR
            assert f'[class*="{word}" i]' in CONSENT_CONTAINER_SELECTOR


class TestCookieBannerRemover:
    @pytest.mark.asyncio
    async def test_clicks_known_consent_button(self):
        button = _locator(count=1, visible=True)
        page = _page({CONSENT_BUTTON_SELECTORS[0]: button})

        await CookieBannerRemover().dismiss_cookie_banners(page)

        button.click.assert_awaited_once()
        page.get_by_role.assert_not_called()
        page.evaluate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_falls_back_to_button_text(self):
        text_button = _locator(count=1, visible=True)
        page = _page(text_button=text_button)

        await CookieBannerRemover().dismiss_cookie_banners(page)

        text_button.click.assert_awaited_once()
        assert page.get_by_role.call_args.kwargs["name"] is ACCEPT_TEXT

    @pytest.mark.asyncio
    async def test_generic_label_clicked_inside_banner(self):
        banner_button = _locator(count=1, visible=True)
        banner = _locator(buttons=banner_button)
        page = _page({CONSENT_CONTAINER_SELECTOR: banner})

        await CookieBannerRemover().dismiss_cookie_banners(page)

        banner_button.click.assert_awaited_once()
        assert banner.get_by_role.call_args.kwargs["name"] is CONTAINED_ACCEPT_TEXT

    @pytest.mark.asyncio
    async def test_generic_label_never_searched_page_wide(self):
        page = _page()

        await CookieBannerRemover().dismiss_cookie_banners(page)

        names = [call.kwargs["name"] for call in page.get_by_role.call_args_list]
        assert CONTAINED_ACCEPT_TEXT not in names

    @pytest.mark.asyncio
    async def test_hidden_button_not_clicked(self):
        hidden = _locator(count=1, visible=False)
        page = _page({CONSENT_BUTTON_SELECTORS[0]: hidden})

        await CookieBannerRemover().dismiss_cookie_banners(page)

        hidden.click.assert_not_awaited()
        page.evaluate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_errors_are_swallowed(self):
        button = _locator(count=1, visible=True)
        button.click = AsyncMock(side_effect=PlaywrightError("Timeout 2000ms exceeded"))
        page = _page({CONSENT_BUTTON_SELECTORS[0]: button})

        await CookieBannerRemover().dismiss_cookie_banners(page)
