"""URL and number normalization utilities."""

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


# Tracking parameters stripped from product and target URLs
TRACKING_PARAMS = frozenset([
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "ref",
    "source",
    "fbclid",
    "gclid",
])

_NUMBER_RE = re.compile(r"[\d.,]+")


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters.

    Non-tracking parameters keep their original order and the fragment is
    preserved, so the function is idempotent.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL, or the input unchanged if it is not an absolute URL
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    if not parsed.scheme or not parsed.netloc:
        return url

    query_params = parse_qsl(parsed.query, keep_blank_values=True)
    filtered_params = [(k, v) for k, v in query_params if k not in TRACKING_PARAMS]

    return urlunparse(
        (
            parsed.scheme,
            parsed.netloc,
            parsed.path,
            parsed.params,
            urlencode(filtered_params, doseq=True),
            parsed.fragment,
        )
    )


def extract_domain(url: str) -> str:
    """Return the hostname of a URL, or an empty string if there is none."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def pattern_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a URL pattern where ``*`` is the only wildcard.

    Every other character is matched literally.
    """
    parts = [re.escape(part) for part in pattern.lower().split("*")]
    return re.compile(".*".join(parts))


def url_matches_patterns(url: str, patterns: Iterable[str]) -> bool:
    """Check whether a URL matches any of the given wildcard patterns.

    Each pattern is tested against the hostname and against the full
    lowercased URL; the search is unanchored and stops at the first match.
    """
    domain = extract_domain(url).lower()
    lowered = url.lower()
    for pattern in patterns:
        regex = pattern_to_regex(pattern)
        if regex.search(domain) or regex.search(lowered):
            return True
    return False


def extract_number(text: Optional[str]) -> Optional[Decimal]:
    """Extract the first parsable number-like run from text.

    Thousands separators (commas) are stripped: "$1,234.50 USD" -> 1234.50.

    Returns:
        Decimal value, or None if no parsable number is present
    """
    if not text:
        return None

    for match in _NUMBER_RE.finditer(text):
        cleaned = match.group(0).replace(",", "").rstrip(".")
        if not cleaned:
            continue
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            continue
    return None


def extract_int(text: Optional[str]) -> Optional[int]:
    """Keep only the digits of a text ("1,204 reviews" -> 1204)."""
    if not text:
        return None
    digits = re.sub(r"\D", "", text)
    return int(digits) if digits else None
