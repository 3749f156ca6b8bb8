"""Tests for the scraper utility layer.

Tests cover:
- Sliding-window rate limiting
- Fingerprints, delays and backoff
- URL normalization, pattern matching and number parsing
- Proxy rotation
- robots.txt policy
- Navigation retry policy
"""

import asyncio
import random
import time
from decimal import Decimal

import httpx
import pytest

from scrapeforge.core.exceptions import NavigationError
from scrapeforge.scrapers.utils.browser_manager import build_extra_headers, build_stealth_script
from scrapeforge.scrapers.utils.fingerprint import (
    LANGUAGES,
    SCREEN_RESOLUTIONS,
    TIMEZONES,
    backoff_delay,
    generate_fingerprint,
    random_delay_ms,
)
from scrapeforge.scrapers.utils.normalizer import (
    extract_domain,
    extract_int,
    extract_number,
    normalize_url,
    url_matches_patterns,
)
from scrapeforge.scrapers.utils.proxy_manager import ProxyManager
from scrapeforge.scrapers.utils.rate_limiter import SlidingWindowRateLimiter
from scrapeforge.scrapers.utils.retry import navigation_retrying
from scrapeforge.scrapers.utils.robots import RobotsPolicy
from scrapeforge.scrapers.utils.user_agents import USER_AGENTS


# ============================================================================
# TESTS: RATE LIMITER
# ============================================================================

class TestSlidingWindowRateLimiter:
    """Test the per-job sliding-window throttle."""

    async def test_requests_under_limit_do_not_wait(self):
        limiter = SlidingWindowRateLimiter(requests_per_second=5)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()

        assert time.monotonic() - start < 0.2
        assert limiter.in_window == 5

    async def test_window_never_holds_more_than_limit(self):
        limiter = SlidingWindowRateLimiter(requests_per_second=3, window_seconds=0.2)
        completions = []

        for _ in range(9):
            await limiter.acquire()
            completions.append(time.monotonic())

        for i, ts in enumerate(completions):
            in_window = [t for t in completions[i:] if t - ts < 0.2]
            assert len(in_window) <= 3

    async def test_saturated_window_waits_for_oldest(self):
        limiter = SlidingWindowRateLimiter(requests_per_second=2, window_seconds=0.2)

        start = time.monotonic()
        for _ in range(3):
            await limiter.acquire()

        assert time.monotonic() - start >= 0.2

    async def test_concurrent_callers_share_the_limit(self):
        limiter = SlidingWindowRateLimiter(requests_per_second=2, window_seconds=0.2)

        start = time.monotonic()
        await asyncio.gather(*(limiter.acquire() for _ in range(4)))

        assert time.monotonic() - start >= 0.2

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(requests_per_second=0)

    def test_fractional_rate_allows_one_request(self):
        limiter = SlidingWindowRateLimiter(requests_per_second=0.5)
        assert limiter.max_requests == 1


# ============================================================================
# TESTS: FINGERPRINT AND TIMING
# ============================================================================

class TestFingerprint:
    """Test randomized browser identity generation."""

    def test_fields_come_from_pools(self):
        for _ in range(20):
            fp = generate_fingerprint()
            assert fp.user_agent in USER_AGENTS
            assert fp.viewport in SCREEN_RESOLUTIONS
            assert fp.timezone_id in TIMEZONES
            assert fp.accept_language in LANGUAGES
            assert fp.accept_language.startswith(fp.locale)
            assert fp.color_scheme in ("light", "dark")

    def test_context_options(self):
        fp = generate_fingerprint()
        options = fp.context_options()

        assert options["user_agent"] == fp.user_agent
        assert options["locale"] == fp.locale
        assert options["timezone_id"] == fp.timezone_id
        assert options["reduced_motion"] in ("reduce", "no-preference")

    def test_stealth_script_uses_fingerprint_languages(self):
        fp = generate_fingerprint()
        script = build_stealth_script(fp)

        assert "webdriver" in script
        assert f"'{fp.locale}'" in script
        assert build_extra_headers(fp)["Accept-Language"] == fp.accept_language


class TestDelays:
    """Test human-like delays and retry backoff."""

    def test_random_delay_within_bounds(self):
        for _ in range(50):
            assert 500 <= random_delay_ms(500, 2000) <= 2000

    def test_random_delay_degenerate_range(self):
        assert random_delay_ms(0, 0) == 0
        assert random_delay_ms(300, 100) == 300

    @pytest.mark.parametrize("attempt", range(0, 8))
    def test_backoff_within_jitter_bounds(self, attempt):
        theoretical = min(1000 * 2 ** attempt, 30000)
        for _ in range(20):
            delay = backoff_delay(attempt)
            assert int(theoretical * 0.8) <= delay <= theoretical * 1.2

    def test_backoff_non_decreasing_without_jitter(self, monkeypatch):
        monkeypatch.setattr(random, "random", lambda: 0.5)
        delays = [backoff_delay(attempt) for attempt in range(12)]

        assert delays == sorted(delays)
        assert delays[-1] == 30000

    def test_backoff_huge_attempt_is_capped(self):
        assert backoff_delay(10_000) <= 36000


# ============================================================================
# TESTS: NORMALIZER
# ============================================================================

class TestNormalizer:
    """Test URL and number normalization."""

    def test_normalize_url_strips_tracking(self):
        url = "https://shop.example/p/1?utm_source=x&color=red&fbclid=abc&ref=home"
        assert normalize_url(url) == "https://shop.example/p/1?color=red"

    @pytest.mark.parametrize(
        "url",
        [
            "https://shop.example/p/1?utm_source=x&b=2&a=1#reviews",
            "https://shop.example/p/1?q=a%20b&empty=",
            "https://shop.example/",
            "/relative/path?utm_source=x",
        ],
    )
    def test_normalize_url_idempotent(self, url):
        once = normalize_url(url)
        assert normalize_url(once) == once

    def test_normalize_url_keeps_parameter_order(self):
        assert normalize_url("https://a.example/?b=2&a=1") == "https://a.example/?b=2&a=1"

    def test_extract_domain(self):
        assert extract_domain("https://www.aliexpress.com/item/1.html") == "www.aliexpress.com"
        assert extract_domain("not a url") == ""

    def test_url_matches_wildcard_patterns(self):
        url = "https://www.aliexpress.com/item/1005.html"
        assert url_matches_patterns(url, ["*.aliexpress.com"])
        assert url_matches_patterns(url, ["/item/*"])
        assert not url_matches_patterns(url, ["alibaba.com"])

    def test_url_patterns_escape_regex_metacharacters(self):
        assert not url_matches_patterns("https://shopXexample.com/", ["shop.example.com"])
        assert url_matches_patterns("https://shop.example.com/?q=(a)", ["?q=(a)"])

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("$1,234.50 USD", Decimal("1234.50")),
            ("US $12.99", Decimal("12.99")),
            ("4.8 stars", Decimal("4.8")),
            ("Sold. $19.99", Decimal("19.99")),
            ("Ships in 3. days", Decimal("3")),
            ("no price", None),
            (None, None),
        ],
    )
    def test_extract_number(self, text, expected):
        assert extract_number(text) == expected

    def test_extract_int(self):
        assert extract_int("1,204 reviews") == 1204
        assert extract_int("Min. order: 50 pieces") == 50
        assert extract_int("none") is None


# ============================================================================
# TESTS: PROXY ROTATION
# ============================================================================

class TestProxyManager:
    """Test round-robin proxy rotation."""

    def test_round_robin(self):
        manager = ProxyManager(["http://p1:8080", "http://p2:8080"])
        assert [manager.get_proxy() for _ in range(4)] == [
            "http://p1:8080",
            "http://p2:8080",
            "http://p1:8080",
            "http://p2:8080",
        ]

    def test_failing_proxy_is_benched(self):
        manager = ProxyManager(["http://p1:8080", "http://p2:8080"])
        for _ in range(3):
            manager.mark_failed("http://p1:8080")

        assert {manager.get_proxy() for _ in range(4)} == {"http://p2:8080"}

    def test_success_resets_failures(self):
        manager = ProxyManager(["http://p1:8080"])
        for _ in range(3):
            manager.mark_failed("http://p1:8080")
        assert manager.get_proxy() is None

        manager.mark_success("http://p1:8080")
        assert manager.get_proxy() == "http://p1:8080"

    def test_empty_pool(self):
        manager = ProxyManager([])
        assert len(manager) == 0
        assert manager.get_proxy() is None


# ============================================================================
# TESTS: ROBOTS POLICY
# ============================================================================

def _robots_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestRobotsPolicy:
    """Test robots.txt fetching and caching."""

    async def test_disallowed_path(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(str(request.url))
            return httpx.Response(200, text="User-agent: *\nDisallow: /private/\n")

        async with _robots_client(handler) as client:
            policy = RobotsPolicy(http_client=client)
            assert await policy.can_fetch("https://shop.example/catalog") is True
            assert await policy.can_fetch("https://shop.example/private/list") is False

        assert requests == ["https://shop.example/robots.txt"]

    async def test_missing_robots_allows(self):
        async with _robots_client(lambda request: httpx.Response(404)) as client:
            policy = RobotsPolicy(http_client=client)
            assert await policy.can_fetch("https://shop.example/anything") is True

    async def test_unreachable_robots_can_deny(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _robots_client(handler) as client:
            policy = RobotsPolicy(http_client=client, allow_when_unreachable=False)
            assert await policy.can_fetch("https://shop.example/anything") is False


# ============================================================================
# TESTS: RETRY POLICY
# ============================================================================

class TestNavigationRetrying:
    """Test the tenacity-based navigation retry controller."""

    async def test_retries_until_attempts_exhausted(self):
        calls = []

        with pytest.raises(NavigationError):
            async for attempt in navigation_retrying(3, base_ms=0):
                with attempt:
                    calls.append(1)
                    raise NavigationError("https://x.example", "HTTP 500", status=500)

        assert len(calls) == 3

    async def test_stops_on_success(self):
        calls = []

        async for attempt in navigation_retrying(5, base_ms=0):
            with attempt:
                calls.append(1)
                if len(calls) < 2:
                    raise NavigationError("https://x.example", "HTTP 503", status=503)

        assert len(calls) == 2

    async def test_cancellation_stops_retrying(self):
        calls = []
        cancelled = {"value": False}

        with pytest.raises(NavigationError):
            async for attempt in navigation_retrying(
                5, base_ms=0, is_cancelled=lambda: cancelled["value"]
            ):
                with attempt:
                    calls.append(1)
                    cancelled["value"] = True
                    raise NavigationError("https://x.example", "timeout")

        assert len(calls) == 1

    async def test_zero_attempts_still_tries_once(self):
        calls = []

        with pytest.raises(NavigationError):
            async for attempt in navigation_retrying(0, base_ms=0):
                with attempt:
                    calls.append(1)
                    raise NavigationError("https://x.example", "HTTP 500")

        assert len(calls) == 1

    async def test_non_transient_errors_are_not_retried(self):
        calls = []

        with pytest.raises(KeyError):
            async for attempt in navigation_retrying(5, base_ms=0):
                with attempt:
                    calls.append(1)
                    raise KeyError("boom")

        assert len(calls) == 1
