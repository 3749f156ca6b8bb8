"""Scraper utilities for rate limiting, fingerprints, proxies and URL handling."""

from .rate_limiter import SlidingWindowRateLimiter
from .proxy_manager import ProxyManager, ProxyEntry
from .user_agents import get_random_user_agent, USER_AGENTS
from .fingerprint import (
    BrowserFingerprint,
    backoff_delay,
    generate_fingerprint,
    human_delay,
    random_delay_ms,
)
from .normalizer import (
    extract_domain,
    extract_int,
    extract_number,
    normalize_url,
    url_matches_patterns,
)
from .retry import navigation_retrying, RETRYABLE_NAVIGATION_ERRORS
from .robots import RobotsPolicy


__all__ = [
    # Rate limiting
    "SlidingWindowRateLimiter",
    # Proxy management
    "ProxyManager",
    "ProxyEntry",
    # Identity and timing
    "get_random_user_agent",
    "USER_AGENTS",
    "BrowserFingerprint",
    "generate_fingerprint",
    "random_delay_ms",
    "human_delay",
    "backoff_delay",
    # Normalization
    "normalize_url",
    "extract_domain",
    "url_matches_patterns",
    "extract_number",
    "extract_int",
    # Retry
    "navigation_retrying",
    "RETRYABLE_NAVIGATION_ERRORS",
    # Robots
    "RobotsPolicy",
]
