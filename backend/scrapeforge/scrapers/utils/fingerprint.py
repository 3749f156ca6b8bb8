"""Browser fingerprint generation and human-like timing helpers."""

import asyncio
import random
from dataclasses import dataclass
from typing import Dict, List

from scrapeforge.scrapers.utils.user_agents import get_random_user_agent


SCREEN_RESOLUTIONS: List[Dict[str, int]] = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
    {"width": 1280, "height": 720},
    {"width": 1600, "height": 900},
]

TIMEZONES: List[str] = [
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Australia/Sydney",
]

# Accept-Language values; the locale is the first entry of each
LANGUAGES: List[str] = [
    "en-US,en;q=0.9",
    "en-GB,en;q=0.9",
    "en-CA,en;q=0.9",
    "en-AU,en;q=0.9",
    "de-DE,de;q=0.9",
    "fr-FR,fr;q=0.9",
    "ja-JP,ja;q=0.9",
    "zh-CN,zh;q=0.9",
]

BACKOFF_BASE_MS = 1000
BACKOFF_CAP_MS = 30000


@dataclass(frozen=True)
class BrowserFingerprint:
    """Identity presented to the target site by one browser session."""

    user_agent: str
    viewport: Dict[str, int]
    locale: str
    timezone_id: str
    color_scheme: str  # 'light' or 'dark'
    reduced_motion: bool
    accept_language: str

    def context_options(self) -> dict:
        """Keyword arguments for ``Browser.new_context``."""
        return {
            "user_agent": self.user_agent,
            "viewport": dict(self.viewport),
            "locale": self.locale,
            "timezone_id": self.timezone_id,
            "color_scheme": self.color_scheme,
            "reduced_motion": "reduce" if self.reduced_motion else "no-preference",
        }


def generate_fingerprint() -> BrowserFingerprint:
    """Generate a randomized browser fingerprint.

    User agent, resolution, language and timezone are drawn from
    independent pools.
    """
    accept_language = random.choice(LANGUAGES)
    return BrowserFingerprint(
        user_agent=get_random_user_agent(),
        viewport=dict(random.choice(SCREEN_RESOLUTIONS)),
        locale=accept_language.split(",")[0],
        timezone_id=random.choice(TIMEZONES),
        color_scheme="light" if random.random() > 0.3 else "dark",
        reduced_motion=random.random() > 0.9,
        accept_language=accept_language,
    )


def random_delay_ms(min_ms: int, max_ms: int) -> int:
    """Pick a delay uniformly from [min_ms, max_ms]."""
    if max_ms <= min_ms:
        return max(min_ms, 0)
    return random.randint(min_ms, max_ms)


async def human_delay(min_ms: int, max_ms: int) -> int:
    """Sleep for a random human-like delay.

    Returns:
        The delay that was slept, in milliseconds
    """
    delay = random_delay_ms(min_ms, max_ms)
    if delay > 0:
        await asyncio.sleep(delay / 1000)
    return delay


def backoff_delay(
    attempt: int,
    base_ms: int = BACKOFF_BASE_MS,
    cap_ms: int = BACKOFF_CAP_MS,
) -> int:
    """Exponential backoff with jitter.

    Args:
        attempt: Zero-based attempt number
        base_ms: Delay for the first retry
        cap_ms: Upper bound before jitter

    Returns:
        ``min(base_ms * 2**attempt, cap_ms)`` scaled by a factor in [0.8, 1.2],
        in milliseconds
    """
    # Exponent is clamped so large attempt numbers cannot overflow float math
    delay = min(base_ms * (2 ** min(max(attempt, 0), 32)), cap_ms)
    return int(delay * (0.8 + random.random() * 0.4))
