"""CJ Dropshipping product listing extractor."""

from scrapeforge.scrapers.base import ProductExtractor


class CJDropshippingExtractor(ProductExtractor):
    """Category and search listings on cjdropshipping.com."""

    platform = "cj"
    display_name = "CJ Dropshipping"
    platform_source = "CJ"
    base_url = "https://cjdropshipping.com"
    currency = "USD"

    id_patterns = (r"product/(\d+)", r"/(\d+)\.html")
    id_prefix = "CJ"

    SELECTORS = {
        "container": (".product-item", ".product-card", ".goods-item", "[class*='product']"),
        "link": ("a[href]",),
        "title": (".title", ".product-title", ".goods-title", "h3", "h4"),
        "price": (".price", ".product-price", ".goods-price", "[class*='price']"),
        "original_price": (".original-price", ".market-price", "del"),
        "image": ("img[src]",),
        "rating": None,
        "reviews": None,
        "moq": None,
        "vendor": None,
    }
