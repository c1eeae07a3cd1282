"""Contact email discovery for business websites.

Strategies, first hit wins:

1. Hunter.io domain search, when an API key is configured.
2. Fetch the website and score every email address found in the markup.

Network problems never raise: a timeout, an unreachable host or a non-2xx
response simply means no result, and the caller may retry later.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

HUNTER_DOMAIN_SEARCH_URL = "https://api.hunter.io/v2/domain-search"

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")

# Image filenames, placeholder domains and tracking pixels that look like emails
IGNORED_SUBSTRINGS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".webp",
    "example.com",
    "placeholder",
    "sentry",
    "wixpress",
)

PREFIX_SCORES = (
    ("info@", 30),
    ("contact@", 30),
    ("hello@", 25),
    ("sales@", 25),
    ("support@", 20),
    ("admin@", 15),
)

PENALTIES = (
    ("noreply", -50),
    ("no-reply", -50),
    ("donotreply", -50),
    ("unsubscribe", -30),
    ("privacy", -20),
)

PERSONAL_LOCAL_PART = re.compile(r"^[a-z]+@")

USER_AGENT = "Mozilla/5.0 (compatible; LeadScraperBot/1.0)"


@dataclass
class EmailFinderResult:
    email: str
    confidence: str  # high, medium, low
    source: str  # api, scraped
    found_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_url(website: str) -> str:
    website = website.strip()
    if website.startswith(("http://", "https://")):
        return website
    return f"https://{website}"


def domain_from_url(website: str) -> Optional[str]:
    try:
        hostname = urlparse(normalize_url(website)).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname[4:] if hostname.startswith("www.") else hostname


def extract_emails(html: str) -> list[str]:
    """Return the plausible email addresses in ``html``, first-seen order, no repeats."""
    candidates = EMAIL_REGEX.findall(html)

    soup = BeautifulSoup(html, "html.parser")
    for a_tag in soup.find_all("a", href=True):
        href = a_tag["href"].strip()
        if href.lower().startswith("mailto:"):
            address = unquote(href[len("mailto:"):].split("?", 1)[0]).strip()
            candidates.extend(EMAIL_REGEX.findall(address))

    seen = set()
    emails = []
    for email in candidates:
        lower = email.lower()
        if lower in seen or any(s in lower for s in IGNORED_SUBSTRINGS):
            continue
        seen.add(lower)
        emails.append(email)
    return emails


def score_email(email: str) -> int:
    lower = email.lower()
    score = 0
    for prefix, points in PREFIX_SCORES:
        if lower.startswith(prefix):
            score += points
    if PERSONAL_LOCAL_PART.match(lower):
        score += 10
    for marker, points in PENALTIES:
        if marker in lower:
            score += points
    return score


def confidence_for_score(score: int) -> str:
    if score >= 25:
        return "high"
    if score >= 10:
        return "medium"
    return "low"


def confidence_for_hunter(confidence: int) -> str:
    if confidence >= 80:
        return "high"
    if confidence >= 50:
        return "medium"
    return "low"


def pick_best_email(emails: list[str]) -> Optional[EmailFinderResult]:
    """Highest score wins; nothing scoring above zero means no answer."""
    if not emails:
        return None
    best = max(emails, key=score_email)
    score = score_email(best)
    if score <= 0:
        return None
    return EmailFinderResult(email=best, confidence=confidence_for_score(score), source="scraped")


async def find_email_with_hunter(
    domain: str,
    api_key: Optional[str],
    client: httpx.AsyncClient,
    timeout: float = 10.0,
) -> Optional[EmailFinderResult]:
    if not api_key or not domain:
        return None

    try:
        response = await client.get(
            HUNTER_DOMAIN_SEARCH_URL,
            params={"domain": domain, "api_key": api_key, "limit": 1},
            timeout=timeout,
        )
        if not response.is_success:
            logger.info(f"Hunter.io lookup for {domain} returned HTTP {response.status_code}")
            return None
        emails = (response.json().get("data") or {}).get("emails") or []
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Hunter.io lookup failed for {domain}: {e}")
        return None

    if not emails or not emails[0].get("value"):
        return None
    best = emails[0]
    return EmailFinderResult(
        email=best["value"],
        confidence=confidence_for_hunter(best.get("confidence") or 0),
        source="api",
    )


async def find_email_from_website(
    website: str,
    business_name: str,
    client: httpx.AsyncClient,
    timeout: float = 10.0,
) -> Optional[EmailFinderResult]:
    url = normalize_url(website)
    try:
        response = await client.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    except httpx.TimeoutException:
        logger.info(f"Timeout fetching {url}")
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.info(f"Error fetching {url} for {business_name}: {e}")
        return None

    if not response.is_success:
        logger.info(f"Failed to fetch {url}: {response.status_code}")
        return None

    return pick_best_email(extract_emails(response.text))


async def find_email(
    website: Optional[str],
    business_name: str,
    hunter_api_key: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 10.0,
) -> Optional[EmailFinderResult]:
    """Find a representative contact email for a business website."""
    if not website or not website.strip():
        return None

    if client is None:
        async with httpx.AsyncClient(follow_redirects=True) as own_client:
            return await find_email(website, business_name, hunter_api_key, own_client, timeout)

    if hunter_api_key:
        domain = domain_from_url(website)
        if domain:
            result = await find_email_with_hunter(domain, hunter_api_key, client, timeout)
            if result:
                return result

    return await find_email_from_website(website, business_name, client, timeout)
