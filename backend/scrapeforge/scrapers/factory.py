"""Factory for creating scraper engines bound to platform extractors."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type

import structlog

from scrapeforge.config import settings
from scrapeforge.schemas.scraping import VALID_CAPTCHA_HANDLING, ScrapingConfig
from scrapeforge.scrapers.adapters import (
    AlibabaExtractor,
    AliExpressExtractor,
    CJDropshippingExtractor,
    GenericExtractor,
    ShopifyExtractor,
)
from scrapeforge.scrapers.base import CancellationToken, ProductExtractor, ScraperCallbacks
from scrapeforge.scrapers.engine import ScraperEngine
from scrapeforge.scrapers.utils.proxy_manager import ProxyManager


logger = structlog.get_logger(__name__)


MAX_RATE_LIMIT = 100
MIN_TIMEOUT_SECONDS = 5

# Requests per second used by create_default_config
DEFAULT_RATE_LIMITS: Dict[str, float] = {
    "cj": 6,
    "aliexpress": 4,
    "alibaba": 5,
    "shopify": 10,
    "generic": 6,
}


@dataclass
class ConfigValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_config(config: ScrapingConfig) -> ConfigValidationResult:
    """Check a configuration's ranges without modifying it."""
    errors: List[str] = []

    if not [p for p in config.url_patterns if p and p.strip()]:
        errors.append("At least one URL pattern is required")

    if config.rate_limit <= 0 or config.rate_limit > MAX_RATE_LIMIT:
        errors.append(f"Rate limit must be greater than 0 and at most {MAX_RATE_LIMIT} requests per second")

    if config.max_retries < 0:
        errors.append("Max retries cannot be negative")

    if config.timeout_seconds < MIN_TIMEOUT_SECONDS:
        errors.append(f"Timeout must be at least {MIN_TIMEOUT_SECONDS} seconds")

    if config.max_products is not None and config.max_products <= 0:
        errors.append("Max products must be greater than 0")

    if config.captcha_handling not in VALID_CAPTCHA_HANDLING:
        errors.append(f"Invalid captcha handling: {config.captcha_handling}")

    return ConfigValidationResult(valid=not errors, errors=errors)


class ScraperFactory:
    """Resolves platform aliases and builds configured ScraperEngine instances.

    Holds the process-wide proxy pool so that failure counts survive across
    runs.
    """

    EXTRACTORS: Dict[str, Type[ProductExtractor]] = {
        "cj": CJDropshippingExtractor,
        "aliexpress": AliExpressExtractor,
        "alibaba": AlibabaExtractor,
        "shopify": ShopifyExtractor,
        "generic": GenericExtractor,
    }

    ALIASES: Dict[str, str] = {
        "cj": "cj",
        "cjdropshipping": "cj",
        "cj-dropshipping": "cj",
        "ali": "aliexpress",
        "aliexpress": "aliexpress",
        "ali-express": "aliexpress",
        "alibaba": "alibaba",
        "ali-baba": "alibaba",
        "shopify": "shopify",
        "generic": "generic",
    }

    def __init__(self, proxy_manager: Optional[ProxyManager] = None, **engine_options):
        """Initialize the factory.

        Args:
            proxy_manager: Rotation pool; built from settings.PROXY_LIST if omitted
            **engine_options: Extra keyword arguments passed to every ScraperEngine
        """
        if proxy_manager is None:
            proxy_list = settings.get_proxy_list()
            proxy_manager = ProxyManager(proxy_list) if proxy_list else None
            if proxy_manager:
                logger.info("proxy_manager_initialized", proxy_count=len(proxy_list))
            else:
                logger.info("proxy_manager_disabled", reason="no_proxies_configured")
        self.proxy_manager = proxy_manager
        self.engine_options = engine_options

    def resolve_platform(self, platform: str) -> str:
        """Canonical platform key, or ``generic`` for unknown platforms."""
        key = (platform or "").strip().lower()
        canonical = self.ALIASES.get(key)
        if canonical is None:
            logger.warning("unknown_platform_using_generic", platform=platform)
            return "generic"
        return canonical

    def create_extractor(self, platform: str, config: ScrapingConfig) -> ProductExtractor:
        extractor_class = self.EXTRACTORS[self.resolve_platform(platform)]
        return extractor_class(selector_overrides=config.selectors)

    def create(
        self,
        platform: str,
        config: ScrapingConfig,
        callbacks: Optional[ScraperCallbacks] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ScraperEngine:
        """Build an engine for ``platform`` under ``config``.

        Args:
            platform: Platform identifier or alias, case-insensitive
            config: Scraping configuration
            callbacks: Progress and log hooks
            cancel_token: Token the orchestrator sets to cancel the run

        Returns:
            ScraperEngine ready to ``run()``
        """
        extractor = self.create_extractor(platform, config)
        logger.info(
            "scraper_created",
            platform=platform,
            extractor=extractor.__class__.__name__,
            url_count=len(config.url_patterns),
        )
        return ScraperEngine(
            extractor,
            config,
            callbacks,
            cancel_token,
            proxy_manager=self.proxy_manager,
            **self.engine_options,
        )

    def validate_config(self, config: ScrapingConfig) -> ConfigValidationResult:
        return validate_config(config)

    def get_supported_platforms(self) -> List[str]:
        return list(self.EXTRACTORS.keys())

    def get_platform_display_name(self, platform: str) -> str:
        key = (platform or "").strip().lower()
        canonical = self.ALIASES.get(key)
        if canonical is None:
            return platform
        return self.EXTRACTORS[canonical].display_name

    def create_default_config(self, platform: str) -> ScrapingConfig:
        """Default configuration for a platform, with no URL patterns."""
        canonical = self.resolve_platform(platform)
        return ScrapingConfig(
            url_patterns=(),
            rate_limit=DEFAULT_RATE_LIMITS[canonical],
            proxy_rotation=True,
            javascript_render=True,
            robots_compliance=True,
            max_retries=5,
            timeout_seconds=30,
            captcha_handling="pause",
        )


# Global factory instance
_scraper_factory: Optional[ScraperFactory] = None


def get_scraper_factory() -> ScraperFactory:
    """Get the global scraper factory instance, creating it on first use."""
    global _scraper_factory
    if _scraper_factory is None:
        _scraper_factory = ScraperFactory()
    return _scraper_factory
