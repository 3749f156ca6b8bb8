"""robots.txt policy checks for scrapes run with robots compliance on."""

from typing import Dict, Optional
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import httpx
import structlog

logger = structlog.get_logger(__name__)


class RobotsPolicy:
    """Fetches and caches robots.txt rules per origin.

    When robots.txt cannot be fetched the origin is treated as allowed,
    unless ``allow_when_unreachable`` is False.
    """

    def __init__(
        self,
        user_agent: str = "*",
        timeout_seconds: float = 10.0,
        allow_when_unreachable: bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._allow_when_unreachable = allow_when_unreachable
        self._http_client = http_client
        self._cache: Dict[str, RobotFileParser] = {}

    async def can_fetch(self, url: str) -> bool:
        """Return whether ``url`` may be scraped under its origin's robots.txt."""
        parser = await self._get_parser(url)
        return parser.can_fetch(self.user_agent, url)

    async def _get_parser(self, url: str) -> RobotFileParser:
        origin = self._origin(url)
        cached = self._cache.get(origin)
        if cached is not None:
            return cached

        parser = RobotFileParser()
        robots_url = urljoin(origin, "/robots.txt")
        try:
            response = await self._fetch(robots_url)
            if response.status_code == 200 and response.text:
                parser.set_url(robots_url)
                parser.parse(response.text.splitlines())
                logger.info("robots_loaded", origin=origin)
            else:
                self._apply_fallback_policy(parser)
                logger.warning(
                    "robots_unavailable",
                    origin=origin,
                    status_code=response.status_code,
                    fallback_allow=self._allow_when_unreachable,
                )
        except httpx.HTTPError as e:
            self._apply_fallback_policy(parser)
            logger.warning(
                "robots_fetch_failed",
                origin=origin,
                error=str(e),
                fallback_allow=self._allow_when_unreachable,
            )

        self._cache[origin] = parser
        return parser

    async def _fetch(self, robots_url: str) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(robots_url, timeout=self._timeout_seconds)
        async with httpx.AsyncClient(
            timeout=self._timeout_seconds, follow_redirects=True
        ) as client:
            return await client.get(robots_url)

    def _apply_fallback_policy(self, parser: RobotFileParser) -> None:
        if self._allow_when_unreachable:
            parser.parse(["User-agent: *", "Allow: /"])
        else:
            parser.parse(["User-agent: *", "Disallow: /"])

    @staticmethod
    def _origin(url: str) -> str:
        parsed = urlparse(url)
        scheme = parsed.scheme or "https"
        return f"{scheme}://{parsed.netloc}"
