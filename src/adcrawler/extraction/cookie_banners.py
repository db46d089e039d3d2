"""Best-effort cookie consent banner dismissal."""

import logging
import re

from playwright.async_api import Error as PlaywrightError

from adcrawler.extraction.base import BaseCookieBannerRemover

logger = logging.getLogger(__name__)

# Accept buttons of common consent management platforms
CONSENT_BUTTON_SELECTORS = [
    '#onetrust-accept-btn-handler',
    'button[id*="onetrust-accept"]',
    '#truste-consent-button',
    '#didomi-notice-agree-button',
    'button.fc-cta-consent',
    '.qc-cmp2-summary-buttons button[mode="primary"]',
    '#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll',
    '#CybotCookiebotDialogBodyButtonAccept',
    'button[data-testid="uc-accept-all-button"]',
    '.cc-banner .cc-btn.cc-allow',
    '[class*="accept-all"]',
    '[id*="accept-all"]',
]

# Unambiguous consent labels, clicked wherever they appear
ACCEPT_TEXT = re.compile(
    r"^\s*("
    r"accept( all)?( cookies)?|i accept|agree|i agree|allow( all)?( cookies)?|"
    r"alle akzeptieren|akzeptieren|tout accepter|accepter|aceptar( todo)?|accetta( tutto)?"
    r")\s*$",
    re.IGNORECASE,
)

# Generic labels that also appear on ordinary links and forms; only clicked
# inside something that looks like a consent banner
CONTAINED_ACCEPT_TEXT = re.compile(r"^\s*(got it|ok(ay)?|continue)\s*$", re.IGNORECASE)

CONSENT_CONTAINER_SELECTOR = ", ".join(
    f'[{attribute}*="{word}" i]'
    for word in ("cookie", "consent", "gdpr")
    for attribute in ("id", "class", "aria-label")
)

# Removes fixed or sticky overlays that look like consent banners and
# re-enables scrolling on the document. Returns the number removed.
REMOVE_OVERLAYS_JS = """
() => {
    const pattern = /cookie|consent|gdpr|cmp|privacy/i;
    let removed = 0;
    for (const el of document.querySelectorAll('body *')) {
        const style = window.getComputedStyle(el);
        if (style.position !== 'fixed' && style.position !== 'sticky') continue;
        const label = `${el.id} ${el.className} ${el.getAttribute('aria-label') || ''}`;
        if (pattern.test(label)) {
            el.remove();
            removed++;
        }
    }
    for (const root of [document.documentElement, document.body]) {
        if (root && getComputedStyle(root).overflow === 'hidden') {
            root.style.setProperty('overflow', 'auto', 'important');
        }
    }
    return removed;
}
"""


class CookieBannerRemover(BaseCookieBannerRemover):
    """Clicks a consent accept button if one is visible, then strips leftover overlays."""

    def __init__(self, click_timeout_ms: int = 2000):
        self.click_timeout_ms = click_timeout_ms

    async def dismiss_cookie_banners(self, page) -> None:
        try:
            clicked = await self._click_accept(page)
            removed = await page.evaluate(REMOVE_OVERLAYS_JS)
            if clicked or removed:
                logger.info(
                    f"{page.url}: Dismissed cookie banner "
                    f"(clicked={clicked}, overlays removed={removed})"
                )
        except PlaywrightError as e:
            logger.debug(f"{page.url}: Cookie banner removal failed (non-critical): {e}")

    async def _click_accept(self, page) -> bool:
        for selector in CONSENT_BUTTON_SELECTORS:
            locator = page.locator(selector).first
            if await locator.count() and await locator.is_visible():
                await locator.click(timeout=self.click_timeout_ms)
                logger.debug(f"{page.url}: Clicked consent button {selector}")
                return True

        if await self._click_first_visible(page.get_by_role("button", name=ACCEPT_TEXT)):
            logger.debug(f"{page.url}: Clicked consent button by text")
            return True

        banner_buttons = page.locator(CONSENT_CONTAINER_SELECTOR).get_by_role(
            "button", name=CONTAINED_ACCEPT_TEXT
        )
        if await self._click_first_visible(banner_buttons):
            logger.debug(f"{page.url}: Clicked consent banner button by text")
            return True
        return False

    async def _click_first_visible(self, buttons) -> bool:
        if not await buttons.count():
            return False
        button = buttons.first
        if not await button.is_visible():
            return False
        await button.click(timeout=self.click_timeout_ms)
        return True
