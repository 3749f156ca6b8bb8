"""Pydantic schemas for ScrapeForge.

Scraping configurations and job status snapshots are defined here.
"""

from scrapeforge.schemas.scraping import (
    VALID_CAPTCHA_HANDLING,
    JobStatusResponse,
    ScrapingConfig,
)

__all__ = [
    "VALID_CAPTCHA_HANDLING",
    "JobStatusResponse",
    "ScrapingConfig",
]
