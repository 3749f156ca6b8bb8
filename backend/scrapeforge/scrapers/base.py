"""Base extractor interface and shared scraping data structures.

Platform extractors inherit from ProductExtractor and only describe where
things live on their pages (selector table, base URL, id patterns); the
parsing control flow is shared.
"""

import asyncio
import hashlib
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import structlog
from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from scrapeforge.schemas.scraping import ScrapingConfig
from scrapeforge.scrapers.utils.normalizer import (
    extract_int,
    extract_number,
    normalize_url,
)


@dataclass(frozen=True)
class ScrapedProduct:
    """One product record extracted from a listing page."""

    product_id: str
    product_url: str
    title: str
    description: Optional[str] = None
    main_category: Optional[str] = None
    sub_category: Optional[str] = None
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    currency: Optional[str] = None
    shipping_cost: Optional[Decimal] = None
    shipping_time_estimate: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_rating: Optional[Decimal] = None
    product_rating: Optional[Decimal] = None
    review_count: Optional[int] = None
    images_urls: Tuple[str, ...] = ()
    variant_options: Optional[str] = None
    stock_status: Optional[str] = None
    minimum_order_quantity: Optional[int] = None
    weight: Optional[Decimal] = None
    dimensions: Optional[str] = None
    sku: Optional[str] = None
    platform_source: Optional[str] = None

    def __post_init__(self):
        """Validate required fields."""
        if not self.product_id:
            raise ValueError("product_id is required")
        if not self.title:
            raise ValueError("title is required")
        parsed = urlparse(self.product_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"product_url must be absolute: {self.product_url!r}")


@dataclass
class ScrapingResult:
    """Outcome of one engine run."""

    success: bool = False
    products: List[ScrapedProduct] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    captcha_events: int = 0
    pages_scraped: int = 0


ProgressCallback = Callable[[int, int], Awaitable[None]]
LogCallback = Callable[[str, str, Optional[dict]], Awaitable[None]]


@dataclass
class ScraperCallbacks:
    """Hooks the engine calls while it runs.

    on_progress(progress_percent, products_so_far)
    on_log(level, message, details) with level in debug/info/warning/error
    """

    on_progress: Optional[ProgressCallback] = None
    on_log: Optional[LogCallback] = None


class CancellationToken:
    """Cooperative cancellation signal shared by an orchestrator and an engine."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, waking early on cancellation.

        Returns:
            True if the token was cancelled before or during the wait
        """
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


# Names accepted in ScrapingConfig.selectors
SELECTOR_KEYS = (
    "container",
    "link",
    "title",
    "price",
    "original_price",
    "image",
    "rating",
    "reviews",
    "moq",
    "vendor",
)


class ProductExtractor:
    """Selector-table driven product extractor.

    Subclasses set class attributes only. A selector entry is a tuple of
    CSS alternatives tried in priority order; ``None`` means the platform
    does not expose that field and it is never attempted.
    """

    platform: str = "generic"
    display_name: str = "Generic"
    platform_source: str = "Generic"
    base_url: Optional[str] = None
    currency: str = "USD"

    # Regexes applied to the product URL; group 1 is the platform product id
    id_patterns: Tuple[str, ...] = ()
    id_template: str = "{id}"
    id_prefix: str = "GEN"

    # Milliseconds to let client-side rendering settle before reading HTML
    settle_ms: int = 0
    wait_timeout_ms: int = 5000

    SELECTORS: Dict[str, Optional[Tuple[str, ...]]] = {
        "container": (".product-item", ".product-card", "[class*='product']"),
        "link": ("a[href]",),
        "title": (".title", ".product-title", "h3", "h4", "[class*='title']"),
        "price": (".price", ".product-price", "[class*='price']"),
        "original_price": (".original-price", ".compare-at-price", "del"),
        "image": ("img[src]", "img[data-src]"),
        "rating": None,
        "reviews": None,
        "moq": None,
        "vendor": None,
    }

    def __init__(self, selector_overrides: Optional[Dict[str, str]] = None):
        """Initialize extractor.

        Args:
            selector_overrides: Named CSS selectors from the scraping config.
                An override is tried before the platform defaults and also
                enables fields the platform normally skips.
        """
        self.selectors: Dict[str, Optional[Tuple[str, ...]]] = dict(self.SELECTORS)
        for name, css in (selector_overrides or {}).items():
            if name not in SELECTOR_KEYS or not css:
                continue
            defaults = self.selectors.get(name) or ()
            self.selectors[name] = (css,) + tuple(s for s in defaults if s != css)
        self.logger = structlog.get_logger(__name__).bind(platform=self.platform)

    # ------------------------------------------------------------------
    # URL discovery
    # ------------------------------------------------------------------

    def resolve_base_url(self, config: ScrapingConfig) -> Optional[str]:
        """Base URL that relative URL patterns are resolved against."""
        return self.base_url

    def urls_to_scrape(self, config: ScrapingConfig) -> List[str]:
        """Turn configured URL patterns into navigable absolute URLs.

        Absolute URLs pass through, relative paths are joined to the platform
        base URL, and wildcard patterns (which name URL families rather
        than pages) are skipped. Order is preserved and duplicates dropped.
        """
        base = self.resolve_base_url(config)
        urls: List[str] = []
        for raw in config.url_patterns:
            pattern = raw.strip()
            if not pattern:
                continue
            if "*" in pattern:
                self.logger.debug("wildcard_pattern_skipped", pattern=pattern)
                continue
            if pattern.startswith(("http://", "https://")):
                url = pattern
            elif base:
                url = urljoin(base if base.endswith("/") else base + "/", pattern.lstrip("/"))
            else:
                self.logger.warning("relative_pattern_without_base", pattern=pattern)
                continue
            if url not in urls:
                urls.append(url)
        return urls

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract(self, page: Page) -> List[ScrapedProduct]:
        """Extract all products from the page currently loaded in ``page``."""
        if self.settle_ms:
            await page.wait_for_timeout(self.settle_ms)

        containers = self.selectors.get("container") or ()
        if containers:
            try:
                await page.wait_for_selector(
                    ", ".join(containers), timeout=self.wait_timeout_ms
                )
            except PlaywrightTimeout:
                self.logger.debug("container_wait_timed_out", url=page.url)

        html = await page.content()
        return self.parse_html(html, page_url=page.url)

    def parse_html(self, html: str, page_url: Optional[str] = None) -> List[ScrapedProduct]:
        """Parse a listing page's HTML into products.

        Containers lacking a resolvable URL or a title are skipped; a
        product URL seen twice on the same page yields one product.
        """
        soup = BeautifulSoup(html, "html.parser")
        containers = self._find_containers(soup)
        self.logger.debug("containers_found", count=len(containers))

        products: List[ScrapedProduct] = []
        seen_urls = set()
        for container in containers:
            product = self._parse_container(container, page_url)
            if product is None or product.product_url in seen_urls:
                continue
            seen_urls.add(product.product_url)
            products.append(product)
        return products

    def _find_containers(self, soup: BeautifulSoup) -> List[Tag]:
        for selector in self.selectors.get("container") or ():
            found = soup.select(selector)
            if found:
                return found
        return []

    def _parse_container(self, container: Tag, page_url: Optional[str]) -> Optional[ScrapedProduct]:
        try:
            href = self._find_href(container)
            product_url = self._absolute_url(href, page_url)
            if not product_url:
                return None

            title = self._first_text(container, "title")
            if not title:
                return None

            return ScrapedProduct(
                product_id=self.product_id_from_url(product_url),
                product_url=product_url,
                title=title,
                price=extract_number(self._first_text(container, "price")),
                original_price=extract_number(self._first_text(container, "original_price")),
                currency=self.currency,
                product_rating=extract_number(self._first_text(container, "rating")),
                review_count=extract_int(self._first_text(container, "reviews")),
                minimum_order_quantity=extract_int(self._first_text(container, "moq")),
                vendor_name=self._first_text(container, "vendor"),
                images_urls=self._image_urls(container, page_url),
                platform_source=self.platform_source,
            )
        except Exception as e:
            self.logger.debug("product_parse_failed", error=str(e))
            return None

    def _find_href(self, container: Tag) -> Optional[str]:
        if container.name == "a" and container.get("href"):
            return container.get("href")
        for selector in self.selectors.get("link") or ():
            link = container.select_one(selector)
            if link is not None and link.get("href"):
                return link.get("href")
        return None

    def _first_text(self, container: Tag, key: str) -> Optional[str]:
        for selector in self.selectors.get(key) or ():
            elem = container.select_one(selector)
            if elem is None:
                continue
            text = " ".join(elem.get_text(" ", strip=True).split())
            if text:
                return text
        return None

    def _image_urls(self, container: Tag, page_url: Optional[str]) -> Tuple[str, ...]:
        urls: List[str] = []
        for selector in self.selectors.get("image") or ():
            for img in container.select(selector):
                src = img.get("src") or img.get("data-src")
                absolute = self._absolute_url(src, page_url, strip_tracking=False)
                if absolute and absolute not in urls:
                    urls.append(absolute)
        return tuple(urls)

    def _absolute_url(
        self,
        href: Optional[str],
        page_url: Optional[str],
        strip_tracking: bool = True,
    ) -> Optional[str]:
        if not href:
            return None
        href = href.strip()
        if href.startswith(("javascript:", "mailto:", "#", "data:")):
            return None

        base = page_url or self.base_url
        if href.startswith("//"):
            url = f"https:{href}"
        elif base:
            url = urljoin(base, href)
        else:
            url = href

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return None
        return normalize_url(url) if strip_tracking else url

    def product_id_from_url(self, product_url: str) -> str:
        """Platform product id parsed from the URL.

        Falls back to a stable hash of the URL so that the same product seen
        again maps to the same id.
        """
        for pattern in self.id_patterns:
            match = re.search(pattern, product_url)
            if match:
                return self.id_template.format(id=match.group(1))
        digest = hashlib.sha1(product_url.encode("utf-8")).hexdigest()[:12]
        return f"{self.id_prefix}-{digest}"
