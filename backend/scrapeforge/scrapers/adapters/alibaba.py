"""Alibaba wholesale listing extractor."""

from scrapeforge.scrapers.base import ProductExtractor


class AlibabaExtractor(ProductExtractor):
    """Offer listings on alibaba.com; wholesale offers carry a minimum order quantity."""

    platform = "alibaba"
    display_name = "Alibaba"
    platform_source = "Alibaba"
    base_url = "https://www.alibaba.com"
    currency = "USD"

    id_patterns = (r"[/_](\d+)\.html", r"product/(\d+)")
    id_template = "ABB-{id}"
    id_prefix = "ABB"

    settle_ms = 2000

    SELECTORS = {
        "container": (
            ".product-item",
            ".product-card",
            ".offer-item",
            "[class*='product']",
            "[class*='offer']",
        ),
        "link": ("a[href]",),
        "title": (".title", ".product-title", "h3", "h4", "[class*='title']"),
        "price": (".price", ".product-price", "[class*='price']", ".value"),
        "original_price": None,
        "image": ("img[src]",),
        "rating": None,
        "reviews": None,
        "moq": ("[class*='moq']", "[class*='min-order']", "[class*='order']", "[class*='min']"),
        "vendor": None,
    }
