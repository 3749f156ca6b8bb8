"""Playwright browser session lifecycle with anti-detection.

Every engine run owns exactly one session: a dedicated browser, one
fingerprinted context and one page. Sessions are async context managers so
the browser is released on every exit path.
"""

from typing import Optional

import structlog
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from scrapeforge.scrapers.utils.fingerprint import BrowserFingerprint

logger = structlog.get_logger(__name__)


LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]

# Resources the extractors never need to load
BLOCKED_RESOURCES = "**/*.{png,jpg,jpeg,gif,webp,svg,woff,woff2,ttf,eot}"


# Minimal stealth JS to mask automation signals
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => %(languages)s });
window.chrome = { runtime: {} };
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) =>
  parameters.name === 'notifications'
    ? Promise.resolve({ state: Notification.permission })
    : originalQuery(parameters);
"""


def build_stealth_script(fingerprint: BrowserFingerprint) -> str:
    """Stealth init script whose navigator.languages agrees with the fingerprint."""
    primary = fingerprint.locale
    languages = [primary]
    base = primary.split("-")[0]
    if base != primary:
        languages.append(base)
    if "en" not in languages:
        languages.append("en")
    quoted = ", ".join(f"'{lang}'" for lang in languages)
    return STEALTH_JS % {"languages": f"[{quoted}]"}


def build_extra_headers(fingerprint: BrowserFingerprint) -> dict:
    """HTTP headers an ordinary browser would send alongside the fingerprint."""
    return {
        "Accept-Language": fingerprint.accept_language,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }


class BrowserSession:
    """One isolated Playwright browser, context and page.

    Usage:
        async with BrowserSession(fingerprint, timeout_seconds=30) as page:
            await page.goto(url)
    """

    def __init__(
        self,
        fingerprint: BrowserFingerprint,
        timeout_seconds: float = 30,
        headless: bool = True,
        proxy_url: Optional[str] = None,
        javascript_enabled: bool = True,
        block_resources: bool = True,
    ):
        self.fingerprint = fingerprint
        self.proxy_url = proxy_url
        self._timeout_ms = timeout_seconds * 1000
        self._headless = headless
        self._javascript_enabled = javascript_enabled
        self._block_resources = block_resources
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def start(self) -> Page:
        """Launch the browser and open the fingerprinted page."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._headless,
            args=LAUNCH_ARGS,
        )

        proxy_config = {"server": self.proxy_url} if self.proxy_url else None
        self._context = await self._browser.new_context(
            **self.fingerprint.context_options(),
            proxy=proxy_config,
            java_script_enabled=self._javascript_enabled,
            device_scale_factor=1,
            is_mobile=False,
            has_touch=False,
        )
        await self._context.set_extra_http_headers(build_extra_headers(self.fingerprint))
        await self._context.add_init_script(build_stealth_script(self.fingerprint))

        if self._block_resources:
            await self._context.route(BLOCKED_RESOURCES, lambda route: route.abort())

        self.page = await self._context.new_page()
        self.page.set_default_timeout(self._timeout_ms)
        self.page.on(
            "pageerror",
            lambda error: logger.debug("page_error", error=str(error)),
        )

        logger.info(
            "browser_session_started",
            headless=self._headless,
            has_proxy=bool(self.proxy_url),
            locale=self.fingerprint.locale,
            timezone=self.fingerprint.timezone_id,
        )
        return self.page

    async def close(self) -> None:
        """Close page, context, browser and driver; safe to call twice."""
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception as e:
                logger.warning("browser_close_failed", error=str(e))

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("playwright_stop_failed", error=str(e))

        self._context = None
        self._browser = None
        self._playwright = None
        self.page = None
        logger.info("browser_session_closed")

    async def __aenter__(self) -> Page:
        try:
            return await self.start()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
