"""Pytest configuration and shared fixtures."""

from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from scrapeforge.models import Base
from scrapeforge.schemas.scraping import ScrapingConfig
from scrapeforge.services.job_repository import JobRepository


# ============================================================================
# FAKE BROWSER
# ============================================================================

class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FakePage:
    """Stands in for a Playwright Page.

    ``pages`` maps URL to HTML; ``statuses`` maps URL to an HTTP status
    (default 200). ``hooks`` maps URL to an async callable awaited inside
    ``goto`` before it returns.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        statuses: Optional[Dict[str, int]] = None,
        hooks: Optional[Dict[str, Callable]] = None,
        captcha_urls: Optional[List[str]] = None,
    ):
        self.pages = pages or {}
        self.statuses = statuses or {}
        self.hooks = hooks or {}
        self.captcha_urls = set(captcha_urls or [])
        self.url = "about:blank"
        self.goto_calls: List[str] = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append(url)
        hook = self.hooks.get(url)
        if hook is not None:
            await hook()
        self.url = url
        return FakeResponse(self.statuses.get(url, 200))

    async def query_selector(self, selector):
        if self.url in self.captcha_urls and selector == ".g-recaptcha":
            return object()
        return None

    async def text_content(self, selector):
        return self.pages.get(self.url, "")

    async def wait_for_timeout(self, timeout):
        return None

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def content(self):
        return self.pages.get(self.url, "<html><body></body></html>")


def make_session_factory(page: FakePage):
    """Session factory yielding ``page``; records how often it was opened and closed."""
    stats = {"opened": 0, "closed": 0}

    @asynccontextmanager
    async def factory(fingerprint, config, proxy_url=None):
        stats["opened"] += 1
        try:
            yield page
        finally:
            stats["closed"] += 1

    factory.stats = stats
    return factory


def listing_html(count: int, start: int = 1) -> str:
    """CJ-style listing page with ``count`` products."""
    items = "\n".join(
        f"""
        <div class="product-item">
          <a href="/product/{n}">
            <img src="https://img.cjdropshipping.com/{n}.jpg">
            <h3 class="title">Product {n}</h3>
          </a>
          <span class="price">$1,{n:03d}.50</span>
        </div>
        """
        for n in range(start, start + count)
    )
    return f"<html><body><div class='grid'>{items}</div></body></html>"


FAST_ENGINE_OPTIONS = {
    "pre_navigation_delay_ms": (0, 0),
    "post_navigation_delay_ms": (0, 0),
    "backoff_base_ms": 0,
}


def make_config(**overrides) -> ScrapingConfig:
    values = {
        "urlPatterns": ["https://cjdropshipping.com/list/cat1"],
        "rateLimit": 100,
        "maxRetries": 5,
        "timeoutSeconds": 30,
        "captchaHandling": "skip",
        "robotsCompliance": False,
        "proxyRotation": False,
    }
    values.update(overrides)
    return ScrapingConfig.model_validate(values)


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by all sessions of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def repository(session_factory) -> JobRepository:
    return JobRepository(session_factory)
