"""Shopify storefront extractor.

Shopify stores live on their own domains, so relative URL patterns are
resolved against the store of the first absolute pattern.
"""

from typing import Optional
from urllib.parse import urlparse

from scrapeforge.schemas.scraping import ScrapingConfig
from scrapeforge.scrapers.base import ProductExtractor


class ShopifyExtractor(ProductExtractor):
    """Collection pages of a Shopify storefront."""

    platform = "shopify"
    display_name = "Shopify"
    platform_source = "Shopify"
    currency = "USD"

    id_patterns = (r"/products/([^/?#]+)", r"variant=(\d+)")
    id_prefix = "SHO"

    SELECTORS = {
        "container": (
            ".product-item",
            ".product-card",
            "[class*='product-card']",
            "[class*='ProductCard']",
            "article.product",
            "[class*='product']",
        ),
        "link": ("a[href*='/products/']", "a[href]"),
        "title": (".title", ".product-title", "h3", "h4", "[class*='title']", "[class*='Title']"),
        "price": (".price", ".product-price", ".money", "[class*='price']", "[class*='Price']"),
        "original_price": (".compare-at-price", "[class*='original']", "del", "s"),
        "image": ("img[src]", "img[data-src]"),
        "rating": None,
        "reviews": None,
        "moq": None,
        "vendor": (".vendor", "[class*='vendor']", "[class*='Vendor']"),
    }

    def resolve_base_url(self, config: ScrapingConfig) -> Optional[str]:
        return store_origin(config)


def store_origin(config: ScrapingConfig) -> Optional[str]:
    """Origin (scheme://host) of the first absolute URL pattern, if any."""
    for pattern in config.url_patterns:
        parsed = urlparse(pattern.strip())
        if parsed.scheme in ("http", "https") and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
    return None
