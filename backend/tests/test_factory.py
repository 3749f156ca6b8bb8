"""Tests for the scraper factory and configuration validation."""

import pytest

from conftest import make_config
from scrapeforge.schemas.scraping import ScrapingConfig
from scrapeforge.scrapers.adapters import (
    AlibabaExtractor,
    AliExpressExtractor,
    CJDropshippingExtractor,
    GenericExtractor,
    ShopifyExtractor,
)
from scrapeforge.scrapers.engine import ScraperEngine
from scrapeforge.scrapers.factory import ScraperFactory, validate_config


@pytest.fixture
def factory() -> ScraperFactory:
    return ScraperFactory()


# ============================================================================
# TESTS: CONFIG MODEL
# ============================================================================

class TestScrapingConfig:
    """Test the camelCase-tolerant configuration model."""

    def test_camel_case_keys(self):
        config = ScrapingConfig.model_validate({
            "urlPatterns": ["https://a.example/"],
            "rateLimit": 4,
            "maxRetries": 2,
            "captchaHandling": "skip",
            "maxProducts": 7,
        })

        assert config.url_patterns == ("https://a.example/",)
        assert config.rate_limit == 4
        assert config.max_retries == 2
        assert config.max_products == 7
        assert config.timeout_seconds == 30

    def test_storage_round_trip_keeps_values(self):
        config = make_config(maxProducts=5, selectors={"title": ".name"})
        assert ScrapingConfig.model_validate(config.to_storage()) == config

    def test_config_is_frozen(self):
        config = make_config()
        with pytest.raises(Exception):
            config.rate_limit = 50


# ============================================================================
# TESTS: VALIDATION
# ============================================================================

class TestValidateConfig:
    """Test range checks performed before a job may start."""

    def test_valid_config(self):
        result = validate_config(make_config())
        assert result.valid is True
        assert result.errors == []

    @pytest.mark.parametrize(
        "overrides,fragment",
        [
            ({"urlPatterns": []}, "URL pattern"),
            ({"urlPatterns": ["   "]}, "URL pattern"),
            ({"rateLimit": 0}, "Rate limit"),
            ({"rateLimit": 101}, "Rate limit"),
            ({"maxRetries": -1}, "retries"),
            ({"timeoutSeconds": 4}, "Timeout"),
            ({"maxProducts": 0}, "Max products"),
            ({"captchaHandling": "bypass"}, "captcha"),
        ],
    )
    def test_invalid_values(self, overrides, fragment):
        result = validate_config(make_config(**overrides))

        assert result.valid is False
        assert len(result.errors) == 1
        assert fragment in result.errors[0]

    def test_boundaries_are_accepted(self):
        config = make_config(rateLimit=100, maxRetries=0, timeoutSeconds=5, maxProducts=1)
        assert validate_config(config).valid is True

    def test_collects_every_error(self):
        config = make_config(urlPatterns=[], rateLimit=0, timeoutSeconds=1)
        assert len(validate_config(config).errors) == 3


# ============================================================================
# TESTS: FACTORY
# ============================================================================

class TestScraperFactory:
    """Test alias resolution and engine construction."""

    @pytest.mark.parametrize(
        "alias,extractor_class",
        [
            ("cj", CJDropshippingExtractor),
            ("CJDropshipping", CJDropshippingExtractor),
            ("cj-dropshipping", CJDropshippingExtractor),
            ("ali", AliExpressExtractor),
            ("AliExpress", AliExpressExtractor),
            ("ali-express", AliExpressExtractor),
            ("alibaba", AlibabaExtractor),
            ("ali-baba", AlibabaExtractor),
            ("Shopify", ShopifyExtractor),
            ("generic", GenericExtractor),
        ],
    )
    def test_aliases(self, factory, alias, extractor_class):
        engine = factory.create(alias, make_config())

        assert isinstance(engine, ScraperEngine)
        assert type(engine.extractor) is extractor_class

    def test_unknown_platform_falls_back_to_generic(self, factory):
        engine = factory.create("etsy", make_config())
        assert type(engine.extractor) is GenericExtractor

    def test_selector_overrides_reach_extractor(self, factory):
        engine = factory.create("cj", make_config(selectors={"title": ".custom-title"}))
        assert engine.extractor.selectors["title"][0] == ".custom-title"

    def test_supported_platforms_and_names(self, factory):
        assert factory.get_supported_platforms() == ["cj", "aliexpress", "alibaba", "shopify", "generic"]
        assert factory.get_platform_display_name("ali") == "AliExpress"
        assert factory.get_platform_display_name("etsy") == "etsy"

    @pytest.mark.parametrize(
        "platform,rate_limit",
        [("cj", 6), ("aliexpress", 4), ("alibaba", 5), ("shopify", 10)],
    )
    def test_default_configs(self, factory, platform, rate_limit):
        config = factory.create_default_config(platform)

        assert config.rate_limit == rate_limit
        assert config.max_retries == 5
        assert config.timeout_seconds == 30
        assert config.captcha_handling == "pause"
        assert config.proxy_rotation and config.javascript_render and config.robots_compliance
        assert config.url_patterns == ()
