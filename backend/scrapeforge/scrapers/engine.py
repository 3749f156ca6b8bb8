"""Scraper engine: drives one browser session through a scraping run.

Run lifecycle:

    IDLE -> INITIALIZING -> DISCOVERING
         -> [per URL: NAVIGATING -> CAPTCHA_CHECK -> EXTRACTING]
         -> COMPLETED | FAILED | CANCELLED

Page-level problems (bad responses, timeouts, extraction errors) are logged
and recorded as per-URL errors; only failures outside the URL loop abort the
run. The browser session is released on every exit path.
"""

import enum
from typing import AsyncContextManager, Callable, List, Optional, Tuple

import structlog
from playwright.async_api import Page
from tenacity import RetryCallState

from scrapeforge.config import settings
from scrapeforge.core.exceptions import NavigationError
from scrapeforge.schemas.scraping import ScrapingConfig
from scrapeforge.scrapers.base import (
    CancellationToken,
    ProductExtractor,
    ScrapedProduct,
    ScraperCallbacks,
    ScrapingResult,
)
from scrapeforge.scrapers.captcha import CaptchaPolicy, detect_captcha, get_captcha_policy
from scrapeforge.scrapers.utils.browser_manager import BrowserSession
from scrapeforge.scrapers.utils.fingerprint import (
    BACKOFF_BASE_MS,
    BrowserFingerprint,
    generate_fingerprint,
    human_delay,
)
from scrapeforge.scrapers.utils.proxy_manager import ProxyManager
from scrapeforge.scrapers.utils.rate_limiter import SlidingWindowRateLimiter
from scrapeforge.scrapers.utils.retry import RETRYABLE_NAVIGATION_ERRORS, navigation_retrying
from scrapeforge.scrapers.utils.robots import RobotsPolicy

logger = structlog.get_logger(__name__)


class EngineState(str, enum.Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    DISCOVERING = "discovering"
    NAVIGATING = "navigating"
    CAPTCHA_CHECK = "captcha_check"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


SessionFactory = Callable[
    [BrowserFingerprint, ScrapingConfig, Optional[str]], AsyncContextManager[Page]
]


def open_browser_session(
    fingerprint: BrowserFingerprint,
    config: ScrapingConfig,
    proxy_url: Optional[str] = None,
) -> BrowserSession:
    """Default session factory: a fresh headless Chromium per run."""
    return BrowserSession(
        fingerprint,
        timeout_seconds=config.timeout_seconds,
        headless=settings.BROWSER_HEADLESS,
        proxy_url=proxy_url,
        javascript_enabled=config.javascript_render,
    )


class ScraperEngine:
    """Runs one scrape of one platform under one configuration.

    An engine instance is single-use: construct it, await ``run()``, discard it.
    """

    PRE_NAVIGATION_DELAY_MS: Tuple[int, int] = (500, 2000)
    POST_NAVIGATION_DELAY_MS: Tuple[int, int] = (1000, 3000)

    def __init__(
        self,
        extractor: ProductExtractor,
        config: ScrapingConfig,
        callbacks: Optional[ScraperCallbacks] = None,
        cancel_token: Optional[CancellationToken] = None,
        *,
        captcha_policy: Optional[CaptchaPolicy] = None,
        session_factory: Optional[SessionFactory] = None,
        proxy_manager: Optional[ProxyManager] = None,
        robots_policy: Optional[RobotsPolicy] = None,
        pre_navigation_delay_ms: Optional[Tuple[int, int]] = None,
        post_navigation_delay_ms: Optional[Tuple[int, int]] = None,
        backoff_base_ms: int = BACKOFF_BASE_MS,
    ):
        """Initialize the engine.

        Args:
            extractor: Platform extractor used for URL discovery and parsing
            config: Scraping configuration, already validated
            callbacks: Progress and log hooks
            cancel_token: Token observed at every checkpoint
            captcha_policy: Overrides the policy named by config.captcha_handling
            session_factory: Opens the browser session; defaults to Playwright
            proxy_manager: Rotation pool consulted when config.proxy_rotation is on
            robots_policy: robots.txt checker used when config.robots_compliance is on
            pre_navigation_delay_ms: (min, max) wait before each page load
            post_navigation_delay_ms: (min, max) wait after each page load
            backoff_base_ms: Base delay of the retry backoff
        """
        self.extractor = extractor
        self.config = config
        self.callbacks = callbacks or ScraperCallbacks()
        self.cancel_token = cancel_token or CancellationToken()
        self.captcha_policy = captcha_policy or get_captcha_policy(
            config.captcha_handling, pause_seconds=settings.CAPTCHA_PAUSE_SECONDS
        )
        self.session_factory = session_factory or open_browser_session
        self.proxy_manager = proxy_manager
        self.robots_policy = robots_policy
        if self.robots_policy is None and config.robots_compliance:
            self.robots_policy = RobotsPolicy(
                user_agent=settings.ROBOTS_USER_AGENT,
                timeout_seconds=settings.ROBOTS_TIMEOUT_SECONDS,
            )
        self.pre_navigation_delay_ms = pre_navigation_delay_ms or self.PRE_NAVIGATION_DELAY_MS
        self.post_navigation_delay_ms = post_navigation_delay_ms or self.POST_NAVIGATION_DELAY_MS
        self.backoff_base_ms = backoff_base_ms

        self.rate_limiter = SlidingWindowRateLimiter(config.rate_limit)
        self.state = EngineState.IDLE
        self.page: Optional[Page] = None
        self.proxy_url: Optional[str] = None
        self.logger = logger.bind(platform=extractor.platform)

    @property
    def platform(self) -> str:
        return self.extractor.platform

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def _set_state(self, state: EngineState) -> None:
        self.logger.debug("engine_state", state=state.value)
        self.state = state

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self) -> ScrapingResult:
        """Execute the scrape and return its aggregate result."""
        if self.state is not EngineState.IDLE:
            raise RuntimeError("ScraperEngine instances are single-use")

        result = ScrapingResult()
        fingerprint = generate_fingerprint()
        self.proxy_url = self._pick_proxy()
        self._set_state(EngineState.INITIALIZING)

        try:
            async with self.session_factory(fingerprint, self.config, self.proxy_url) as page:
                self.page = page
                await self._log(
                    "info",
                    f"Starting {self.extractor.display_name} scraper",
                    {
                        "userAgent": fingerprint.user_agent,
                        "locale": fingerprint.locale,
                        "timezone": fingerprint.timezone_id,
                        "proxy": bool(self.proxy_url),
                    },
                )
                await self._scrape_urls(result)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            result.errors.append(f"Fatal error: {message}")
            result.success = False
            self._set_state(EngineState.FAILED)
            self.logger.error("scrape_run_failed", error=message, exc_info=True)
            await self._log("error", message)
        finally:
            self.page = None

        if self.state is not EngineState.FAILED:
            result.success = len(result.products) > 0
            self._set_state(
                EngineState.CANCELLED if self.cancelled else EngineState.COMPLETED
            )
            await self._log(
                "info",
                f"Scraping complete. Extracted {len(result.products)} products total",
                {
                    "pagesScraped": result.pages_scraped,
                    "errors": len(result.errors),
                    "captchaEvents": result.captcha_events,
                },
            )

        return result

    async def _scrape_urls(self, result: ScrapingResult) -> None:
        self._set_state(EngineState.DISCOVERING)
        urls = self.extractor.urls_to_scrape(self.config)
        await self._log("info", f"Found {len(urls)} URLs to scrape")

        max_products = self.config.max_products
        total = len(urls)

        for index, url in enumerate(urls):
            if self.cancelled:
                await self._log("info", "Scraping cancelled by user")
                break

            if max_products and len(result.products) >= max_products:
                await self._log("info", f"Reached max products limit: {max_products}")
                break

            await self._log("info", f"Scraping URL {index + 1}/{total}: {url}")

            try:
                await self._scrape_url(url, result)
            except Exception as e:
                message = str(e) or e.__class__.__name__
                result.errors.append(f"Error scraping {url}: {message}")
                await self._log("error", message, {"url": url})

            if self.cancelled:
                await self._log("info", "Scraping cancelled by user")
                break

            await self._report_progress(index + 1, total, len(result.products))

    async def _scrape_url(self, url: str, result: ScrapingResult) -> None:
        if self.robots_policy is not None and not await self.robots_policy.can_fetch(url):
            result.errors.append(f"Disallowed by robots.txt: {url}")
            await self._log("warning", "URL disallowed by robots.txt, skipping", {"url": url})
            return

        if not await self._navigate(url):
            if not self.cancelled:
                result.errors.append(f"Failed to navigate to {url}")
            return

        await self._check_captcha(url, result)
        if self.cancelled:
            return

        await human_delay(*self.post_navigation_delay_ms)

        self._set_state(EngineState.EXTRACTING)
        products = await self.extractor.extract(self.page)
        accepted = self._apply_product_cap(products, len(result.products))
        result.products.extend(accepted)
        result.pages_scraped += 1

        await self._log(
            "info",
            f"Extracted {len(accepted)} products from this page",
            {"url": url, "found": len(products)},
        )

    def _apply_product_cap(
        self, products: List[ScrapedProduct], already: int
    ) -> List[ScrapedProduct]:
        max_products = self.config.max_products
        if not max_products:
            return list(products)
        return list(products[: max(max_products - already, 0)])

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _navigate(self, url: str) -> bool:
        """Load ``url``, retrying with backoff. Returns False once retries run out."""
        self._set_state(EngineState.NAVIGATING)
        attempts = max(1, self.config.max_retries)
        retrying = navigation_retrying(
            attempts,
            base_ms=self.backoff_base_ms,
            is_cancelled=lambda: self.cancelled,
            before_sleep=self._before_retry,
        )

        try:
            async for attempt in retrying:
                if self.cancelled:
                    return False
                with attempt:
                    await self._load(url)
        except RETRYABLE_NAVIGATION_ERRORS as e:
            number = retrying.statistics.get("attempt_number", attempts)
            await self._log(
                "error",
                f"Navigation failed (attempt {number}/{attempts}): {e}",
                {"url": url},
            )
            if self.proxy_url and self.proxy_manager is not None:
                self.proxy_manager.mark_failed(self.proxy_url)
            return False

        if self.proxy_url and self.proxy_manager is not None:
            self.proxy_manager.mark_success(self.proxy_url)
        return True

    async def _load(self, url: str) -> None:
        await self.rate_limiter.acquire()
        await human_delay(*self.pre_navigation_delay_ms)

        response = await self.page.goto(
            url,
            wait_until="networkidle" if self.config.javascript_render else "domcontentloaded",
            timeout=self.config.timeout_seconds * 1000,
        )
        if response is None:
            raise NavigationError(url, "HTTP no response")
        if not response.ok:
            raise NavigationError(url, f"HTTP {response.status}", status=response.status)

    async def _before_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        attempts = max(1, self.config.max_retries)
        await self._log(
            "error",
            f"Navigation failed (attempt {retry_state.attempt_number}/{attempts}): {error}",
        )
        delay_ms = int((retry_state.next_action.sleep if retry_state.next_action else 0) * 1000)
        await self._log("info", f"Retrying after {delay_ms}ms...")

    # ------------------------------------------------------------------
    # CAPTCHA
    # ------------------------------------------------------------------

    async def _check_captcha(self, url: str, result: ScrapingResult) -> None:
        self._set_state(EngineState.CAPTCHA_CHECK)
        if not await detect_captcha(self.page):
            return

        result.captcha_events += 1
        await self._log(
            "warning",
            "CAPTCHA detected",
            {"url": url, "policy": self.captcha_policy.name},
        )
        await self.captcha_policy.handle(url, self._log, self.cancel_token)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _pick_proxy(self) -> Optional[str]:
        if not self.config.proxy_rotation or self.proxy_manager is None:
            return None
        return self.proxy_manager.get_proxy()

    async def _report_progress(self, processed: int, total: int, products: int) -> None:
        progress = (processed * 100) // total if total else 100
        if self.callbacks.on_progress is None:
            return
        try:
            await self.callbacks.on_progress(progress, products)
        except Exception as e:
            self.logger.warning("progress_callback_failed", error=str(e))

    async def _log(self, level: str, message: str, details: Optional[dict] = None) -> None:
        log_method = getattr(self.logger, level, self.logger.info)
        log_method("scraper_log", message=message, **(details or {}))

        if self.callbacks.on_log is None:
            return
        try:
            await self.callbacks.on_log(level, message, details)
        except Exception as e:
            self.logger.warning("log_callback_failed", error=str(e))
