"""Tests for platform extractors and CAPTCHA handling.

Tests cover:
- URL discovery from configured patterns
- HTML parsing per platform profile
- Selector overrides and product id resolution
- CAPTCHA detection and policies
"""

from decimal import Decimal

import pytest

from conftest import FakePage, listing_html, make_config
from scrapeforge.scrapers.adapters import (
    AlibabaExtractor,
    AliExpressExtractor,
    CJDropshippingExtractor,
    GenericExtractor,
    ShopifyExtractor,
)
from scrapeforge.scrapers.base import CancellationToken, ScrapedProduct
from scrapeforge.scrapers.captcha import (
    PauseCaptchaPolicy,
    SkipCaptchaPolicy,
    SolveCaptchaPolicy,
    detect_captcha,
    get_captcha_policy,
)


# ============================================================================
# TESTS: SCRAPED PRODUCT
# ============================================================================

class TestScrapedProduct:
    """Test required-field validation of extracted records."""

    def test_valid_product(self):
        product = ScrapedProduct(
            product_id="123",
            product_url="https://cjdropshipping.com/product/123",
            title="Phone case",
            price=Decimal("3.50"),
        )
        assert product.images_urls == ()
        assert product.currency is None

    @pytest.mark.parametrize(
        "fields",
        [
            {"product_id": "", "product_url": "https://a.example/p", "title": "x"},
            {"product_id": "1", "product_url": "https://a.example/p", "title": ""},
            {"product_id": "1", "product_url": "/relative/p", "title": "x"},
        ],
    )
    def test_missing_required_field(self, fields):
        with pytest.raises(ValueError):
            ScrapedProduct(**fields)


# ============================================================================
# TESTS: URL DISCOVERY
# ============================================================================

class TestUrlsToScrape:
    """Test turning URL patterns into navigable URLs."""

    def test_absolute_and_relative_patterns(self):
        config = make_config(urlPatterns=[
            "https://cjdropshipping.com/list/cat1",
            "/list/cat2",
            "list/cat3",
            "https://cjdropshipping.com/list/cat1",
            "*.cjdropshipping.com/product/*",
            "  ",
        ])

        urls = CJDropshippingExtractor().urls_to_scrape(config)

        assert urls == [
            "https://cjdropshipping.com/list/cat1",
            "https://cjdropshipping.com/list/cat2",
            "https://cjdropshipping.com/list/cat3",
        ]

    def test_shopify_resolves_against_store(self):
        config = make_config(urlPatterns=[
            "https://store.example/collections/all",
            "/collections/sale",
        ])

        urls = ShopifyExtractor().urls_to_scrape(config)

        assert urls == [
            "https://store.example/collections/all",
            "https://store.example/collections/sale",
        ]

    def test_relative_pattern_without_base_is_dropped(self):
        config = make_config(urlPatterns=["/collections/all"])
        assert GenericExtractor().urls_to_scrape(config) == []


# ============================================================================
# TESTS: HTML PARSING
# ============================================================================

class TestParseHtml:
    """Test per-platform product extraction from listing HTML."""

    def test_cj_listing(self):
        products = CJDropshippingExtractor().parse_html(
            listing_html(3), page_url="https://cjdropshipping.com/list/cat1"
        )

        assert len(products) == 3
        first = products[0]
        assert first.product_id == "1"
        assert first.product_url == "https://cjdropshipping.com/product/1"
        assert first.title == "Product 1"
        assert first.price == Decimal("1001.50")
        assert first.currency == "USD"
        assert first.platform_source == "CJ"
        assert first.images_urls == ("https://img.cjdropshipping.com/1.jpg",)

    def test_containers_missing_url_or_title_are_skipped(self):
        html = """
        <div class="product-item"><h3 class="title">No link</h3></div>
        <div class="product-item"><a href="/product/7"></a></div>
        <div class="product-item"><a href="/product/8"><h3 class="title">Kept</h3></a></div>
        """
        products = CJDropshippingExtractor().parse_html(
            html, page_url="https://cjdropshipping.com/list/cat1"
        )

        assert [p.title for p in products] == ["Kept"]

    def test_duplicate_urls_on_page_yield_one_product(self):
        html = """
        <div class="product-item"><a href="/product/9?utm_source=a"><h3 class="title">A</h3></a></div>
        <div class="product-item"><a href="/product/9"><h3 class="title">A again</h3></a></div>
        """
        products = CJDropshippingExtractor().parse_html(
            html, page_url="https://cjdropshipping.com/list/cat1"
        )

        assert len(products) == 1
        assert products[0].product_url == "https://cjdropshipping.com/product/9"

    def test_aliexpress_rating_and_reviews(self):
        html = """
        <div class="product-card">
          <a href="//www.aliexpress.com/item/1005001.html?spm=abc">
            <h3 class="title">LED strip</h3>
          </a>
          <div class="price">US $4.99</div>
          <del>US $9.99</del>
          <span class="rating">4.7</span>
          <span class="reviews-count">1,532 reviews</span>
        </div>
        """
        products = AliExpressExtractor().parse_html(
            html, page_url="https://www.aliexpress.com/category/1.html"
        )

        assert len(products) == 1
        product = products[0]
        assert product.product_id == "ALI-1005001"
        assert product.product_url.startswith("https://www.aliexpress.com/item/1005001.html")
        assert product.price == Decimal("4.99")
        assert product.original_price == Decimal("9.99")
        assert product.product_rating == Decimal("4.7")
        assert product.review_count == 1532

    def test_alibaba_minimum_order(self):
        html = """
        <div class="offer-item">
          <a href="https://www.alibaba.com/product-detail/Widget_1600123.html">
            <h3 class="title">Widget</h3>
          </a>
          <div class="price">$0.80-$1.20</div>
          <div class="moq">Min. order: 500 pieces</div>
        </div>
        """
        products = AlibabaExtractor().parse_html(
            html, page_url="https://www.alibaba.com/trade/search"
        )

        assert len(products) == 1
        assert products[0].product_id == "ABB-1600123"
        assert products[0].price == Decimal("0.80")
        assert products[0].minimum_order_quantity == 500
        assert products[0].original_price is None

    def test_shopify_handle_and_vendor(self):
        html = """
        <div class="product-card">
          <a href="/products/linen-shirt"><h3 class="title">Linen Shirt</h3></a>
          <span class="price">$48.00</span>
          <s>$60.00</s>
          <span class="vendor">Acme</span>
        </div>
        """
        products = ShopifyExtractor().parse_html(
            html, page_url="https://store.example/collections/all"
        )

        assert products[0].product_id == "linen-shirt"
        assert products[0].vendor_name == "Acme"
        assert products[0].original_price == Decimal("60.00")

    def test_selector_override_takes_priority(self):
        html = """
        <li class="tile">
          <a href="https://shop.example/p/1"><span class="name">Custom</span></a>
          <b class="cost">12.00</b>
        </li>
        """
        extractor = GenericExtractor(selector_overrides={
            "container": "li.tile",
            "title": ".name",
            "price": ".cost",
            "unknown": ".ignored",
        })

        products = extractor.parse_html(html, page_url="https://shop.example/")

        assert len(products) == 1
        assert products[0].title == "Custom"
        assert products[0].price == Decimal("12.00")
        assert products[0].product_id.startswith("GEN-")

    def test_fallback_id_is_stable(self):
        extractor = GenericExtractor()
        url = "https://shop.example/listing?id=abc"
        assert extractor.product_id_from_url(url) == extractor.product_id_from_url(url)

    async def test_extract_reads_loaded_page(self):
        page = FakePage(pages={"https://cjdropshipping.com/list/cat1": listing_html(2)})
        await page.goto("https://cjdropshipping.com/list/cat1")

        products = await CJDropshippingExtractor().extract(page)

        assert [p.product_id for p in products] == ["1", "2"]


# ============================================================================
# TESTS: CAPTCHA
# ============================================================================

class TestCaptcha:
    """Test CAPTCHA detection and handling policies."""

    async def test_detect_by_selector(self):
        page = FakePage(captcha_urls=["https://x.example/"])
        await page.goto("https://x.example/")
        assert await detect_captcha(page) is True

    async def test_detect_by_text(self):
        page = FakePage(pages={"https://x.example/": "Please complete the CAPTCHA to continue"})
        await page.goto("https://x.example/")
        assert await detect_captcha(page) is True

    async def test_no_captcha(self):
        page = FakePage(pages={"https://x.example/": listing_html(1)})
        await page.goto("https://x.example/")
        assert await detect_captcha(page) is False

    def test_policy_registry(self):
        assert isinstance(get_captcha_policy("pause"), PauseCaptchaPolicy)
        assert isinstance(get_captcha_policy("solve"), SolveCaptchaPolicy)
        assert isinstance(get_captcha_policy("skip"), SkipCaptchaPolicy)
        assert get_captcha_policy("pause", pause_seconds=5).pause_seconds == 5
        with pytest.raises(ValueError):
            get_captcha_policy("bypass")

    async def test_pause_wakes_on_cancellation(self):
        token = CancellationToken()
        messages = []

        async def log(level, message, details=None):
            messages.append(message)
            token.cancel()

        await PauseCaptchaPolicy(pause_seconds=30).handle("https://x.example/", log, token)

        assert "CAPTCHA pause interrupted by cancellation" in messages

    async def test_solve_placeholder_does_not_raise(self):
        messages = []

        async def log(level, message, details=None):
            messages.append(message)

        await SolveCaptchaPolicy().handle("https://x.example/", log, CancellationToken())

        assert len(messages) == 1
