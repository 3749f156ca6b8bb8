"""CAPTCHA detection and handling policies.

Detection looks for challenge widgets and for the word "captcha" in the
page text. What happens next is decided by a CaptchaPolicy; solving is not
implemented, the ``solve`` policy is a placeholder that lets the run go on.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional, Type

import structlog
from playwright.async_api import Error as PlaywrightError, Page

from scrapeforge.scrapers.base import CancellationToken

logger = structlog.get_logger(__name__)


CAPTCHA_SELECTORS = [
    "iframe[src*='recaptcha']",
    "iframe[src*='captcha']",
    "[class*='captcha']",
    "[id*='captcha']",
    ".g-recaptcha",
    "#recaptcha",
]

LogFn = Callable[[str, str], Awaitable[None]]


async def detect_captcha(page: Page) -> bool:
    """Return True if the loaded page shows a CAPTCHA challenge."""
    for selector in CAPTCHA_SELECTORS:
        if await page.query_selector(selector):
            return True

    try:
        body_text = await page.text_content("body")
    except PlaywrightError as e:
        logger.debug("captcha_text_check_failed", error=str(e))
        return False
    return bool(body_text) and "captcha" in body_text.lower()


class CaptchaPolicy(ABC):
    """What the engine does after a CAPTCHA is detected."""

    name: str = ""

    @abstractmethod
    async def handle(self, url: str, log: LogFn, token: CancellationToken) -> None:
        """Deal with the challenge on ``url``.

        Args:
            url: Page that showed the challenge
            log: Async job-log writer, called as ``log(level, message)``
            token: Cancellation token; long waits must wake up on it
        """


class PauseCaptchaPolicy(CaptchaPolicy):
    """Wait so an operator can clear the challenge by hand."""

    name = "pause"

    def __init__(self, pause_seconds: float = 60.0):
        self.pause_seconds = pause_seconds

    async def handle(self, url: str, log: LogFn, token: CancellationToken) -> None:
        await log(
            "info",
            f"Pausing {self.pause_seconds:g}s due to CAPTCHA. Waiting for manual intervention...",
        )
        if await token.sleep(self.pause_seconds):
            await log("info", "CAPTCHA pause interrupted by cancellation")


class SolveCaptchaPolicy(CaptchaPolicy):
    """Placeholder for an automated solver."""

    name = "solve"

    async def handle(self, url: str, log: LogFn, token: CancellationToken) -> None:
        await log("info", "CAPTCHA solving not yet implemented. Continuing without solving")


class SkipCaptchaPolicy(CaptchaPolicy):
    """Carry on with the page as loaded."""

    name = "skip"

    async def handle(self, url: str, log: LogFn, token: CancellationToken) -> None:
        await log("info", "Skipping CAPTCHA and continuing with the page as loaded")


CAPTCHA_POLICIES: Dict[str, Type[CaptchaPolicy]] = {
    PauseCaptchaPolicy.name: PauseCaptchaPolicy,
    SolveCaptchaPolicy.name: SolveCaptchaPolicy,
    SkipCaptchaPolicy.name: SkipCaptchaPolicy,
}


def get_captcha_policy(name: str, pause_seconds: Optional[float] = None) -> CaptchaPolicy:
    """Instantiate the policy configured by ``ScrapingConfig.captcha_handling``.

    Raises:
        ValueError: If ``name`` is not a known policy
    """
    policy_class = CAPTCHA_POLICIES.get(name)
    if policy_class is None:
        raise ValueError(f"Invalid captcha handling: {name}")
    if policy_class is PauseCaptchaPolicy and pause_seconds is not None:
        return PauseCaptchaPolicy(pause_seconds=pause_seconds)
    return policy_class()
