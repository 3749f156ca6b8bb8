"""SQLAlchemy models for ScrapeForge.

All models are imported here so ``Base.metadata`` knows every table.
"""

from scrapeforge.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from scrapeforge.models.scraping_config import StoredScrapingConfig
from scrapeforge.models.scrape_job import JobStatus, ScrapeJob
from scrapeforge.models.product import Product
from scrapeforge.models.scraping_log import ScrapingLog

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "StoredScrapingConfig",
    "JobStatus",
    "ScrapeJob",
    "Product",
    "ScrapingLog",
]
