"""AliExpress product listing extractor.

AliExpress renders its result grid client-side, so the extractor lets the
page settle before reading the HTML.
"""

from scrapeforge.scrapers.base import ProductExtractor


class AliExpressExtractor(ProductExtractor):
    """Search and category listings on aliexpress.com."""

    platform = "aliexpress"
    display_name = "AliExpress"
    platform_source = "AliExpress"
    base_url = "https://www.aliexpress.com"
    currency = "USD"

    id_patterns = (r"item/(\d+)", r"/(\d+)\.html")
    id_template = "ALI-{id}"
    id_prefix = "ALI"

    settle_ms = 3000

    SELECTORS = {
        "container": (
            ".product-item",
            ".product-card",
            ".list-item",
            "[class*='product-card']",
            "[class*='product-item']",
        ),
        "link": ("a[href*='/item/']", "a[href]"),
        "title": (".title", ".product-title", "h3", "h4", "[class*='title']"),
        "price": (".price", ".product-price", "[class*='price']", ".value"),
        "original_price": (".original-price", ".market-price", "del", "[class*='original']"),
        "image": ("img[src]",),
        "rating": (".rating", "[class*='rating']", "[class*='star']"),
        "reviews": ("[class*='review']", "[class*='order']"),
        "moq": None,
        "vendor": None,
    }
