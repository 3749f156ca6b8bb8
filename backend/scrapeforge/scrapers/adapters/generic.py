"""Fallback extractor for storefronts without a dedicated profile."""

from typing import Optional

from scrapeforge.schemas.scraping import ScrapingConfig
from scrapeforge.scrapers.base import ProductExtractor
from scrapeforge.scrapers.adapters.shopify import store_origin


class GenericExtractor(ProductExtractor):
    """Broad selectors that match most product grid markup.

    Pair it with ``ScrapingConfig.selectors`` to point at site-specific
    markup.
    """

    platform = "generic"
    display_name = "Generic"
    platform_source = "Generic"
    currency = "USD"

    id_patterns = (r"/products?/([\w-]+)", r"/item/(\d+)", r"/(\d+)\.html")
    id_prefix = "GEN"

    SELECTORS = {
        "container": (
            ".product-item",
            ".product-card",
            "[itemtype*='schema.org/Product']",
            "article.product",
            "[class*='product']",
        ),
        "link": ("a[href]",),
        "title": (".title", ".product-title", "[itemprop='name']", "h2", "h3", "h4", "[class*='title']"),
        "price": ("[itemprop='price']", ".price", ".product-price", "[class*='price']"),
        "original_price": (".original-price", ".compare-at-price", "del", "s"),
        "image": ("img[src]", "img[data-src]"),
        "rating": ("[itemprop='ratingValue']", "[class*='rating']"),
        "reviews": ("[itemprop='reviewCount']", "[class*='review']"),
        "moq": None,
        "vendor": ("[itemprop='brand']", "[class*='vendor']", "[class*='brand']"),
    }

    def resolve_base_url(self, config: ScrapingConfig) -> Optional[str]:
        return store_origin(config)
