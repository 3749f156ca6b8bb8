"""Resilient product scraping for e-commerce platforms.

This package provides:
- A selector-table driven extractor base and per-platform extractors
- The scraper engine (navigation, retry, CAPTCHA handling, extraction)
- A factory that maps platform aliases to configured engines
- Utility modules for rate limiting, fingerprints, proxies and robots.txt
"""

from .base import (
    CancellationToken,
    ProductExtractor,
    ScrapedProduct,
    ScraperCallbacks,
    ScrapingResult,
)
from .engine import EngineState, ScraperEngine
from .factory import (
    ConfigValidationResult,
    ScraperFactory,
    get_scraper_factory,
    validate_config,
)

__all__ = [
    # Data structures
    "ScrapedProduct",
    "ScrapingResult",
    "ScraperCallbacks",
    "CancellationToken",
    # Extraction and engine
    "ProductExtractor",
    "ScraperEngine",
    "EngineState",
    # Factory
    "ScraperFactory",
    "ConfigValidationResult",
    "get_scraper_factory",
    "validate_config",
]
