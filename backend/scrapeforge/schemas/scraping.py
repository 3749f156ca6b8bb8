"""Pydantic schemas for scraping configurations and job snapshots."""

from datetime import datetime
from typing import Dict, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


VALID_CAPTCHA_HANDLING = frozenset(["pause", "solve", "skip"])


class ScrapingConfig(BaseModel):
    """Immutable configuration for one scraping run.

    Accepts both snake_case and the camelCase keys used by stored
    configurations and API callers (``urlPatterns``, ``rateLimit``, ...).

    Range checks are intentionally left to ``validate_config`` so that an
    out-of-range configuration can still be loaded, inspected and reported.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    url_patterns: Tuple[str, ...] = Field(
        default_factory=tuple,
        validation_alias=AliasChoices("url_patterns", "urlPatterns"),
        description="Target URLs or URL patterns, in crawl order",
    )
    rate_limit: float = Field(
        6,
        validation_alias=AliasChoices("rate_limit", "rateLimit"),
        description="Maximum requests per second",
    )
    proxy_rotation: bool = Field(
        True, validation_alias=AliasChoices("proxy_rotation", "proxyRotation")
    )
    javascript_render: bool = Field(
        True, validation_alias=AliasChoices("javascript_render", "javascriptRender")
    )
    robots_compliance: bool = Field(
        True, validation_alias=AliasChoices("robots_compliance", "robotsCompliance")
    )
    max_retries: int = Field(
        5, validation_alias=AliasChoices("max_retries", "maxRetries")
    )
    timeout_seconds: float = Field(
        30, validation_alias=AliasChoices("timeout_seconds", "timeoutSeconds")
    )
    captcha_handling: str = Field(
        "pause",
        validation_alias=AliasChoices("captcha_handling", "captchaHandling"),
        description="One of: pause, solve, skip",
    )
    max_products: Optional[int] = Field(
        None, validation_alias=AliasChoices("max_products", "maxProducts")
    )
    selectors: Optional[Dict[str, str]] = Field(
        None, description="Named CSS selectors overriding the platform defaults"
    )

    @field_validator("url_patterns", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return () if value is None else value

    def to_storage(self) -> dict:
        """camelCase dict, the shape persisted with jobs and stored configs."""
        return {
            "urlPatterns": list(self.url_patterns),
            "rateLimit": self.rate_limit,
            "proxyRotation": self.proxy_rotation,
            "javascriptRender": self.javascript_render,
            "robotsCompliance": self.robots_compliance,
            "maxRetries": self.max_retries,
            "timeoutSeconds": self.timeout_seconds,
            "captchaHandling": self.captcha_handling,
            "maxProducts": self.max_products,
            "selectors": dict(self.selectors) if self.selectors else None,
        }


class JobStatusResponse(BaseModel):
    """Point-in-time view of a scrape job, as served to status queries."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    platform: str
    status: str
    progress: int = Field(0, ge=0, le=100)
    products_scraped: int = 0
    products_failed: int = 0
    captcha_events: int = 0
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

