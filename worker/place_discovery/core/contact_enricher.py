"""Contact e-mail enrichment for a business website or domain."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse, urlunparse

import requests
from bs4 import BeautifulSoup

from place_discovery.core.config import Settings
from place_discovery.core.errors import ProviderError, ValidationError
from place_discovery.vendors import hunter
from place_discovery.vendors.http import RetryPolicy

logger = logging.getLogger(__name__)

USER_AGENT = "PlaceDiscoveryBot/1.0"
REQUEST_TIMEOUT = 10

EMAIL_REGEX = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)


def sanitize_website(raw_url: Optional[str]) -> Optional[str]:
    """Normalise raw website strings into absolute https URLs."""

    if not raw_url:
        return None

    url = raw_url.strip()
    if not url:
        return None

    parsed = urlparse(url, scheme="https")
    if not parsed.netloc:
        parsed = urlparse(f"https://{url}")

    if not parsed.netloc:
        return None

    normalized_path = parsed.path or "/"
    if not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"

    return urlunparse(parsed._replace(path=normalized_path, fragment="", query=""))


def domain_of(website: Optional[str]) -> Optional[str]:
    sanitized = sanitize_website(website)
    if not sanitized:
        return None
    host = urlparse(sanitized).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def extract_emails(text: str) -> List[str]:
    """Return unique emails discovered in a text blob."""

    candidates = {match.group(0).lower() for match in EMAIL_REGEX.finditer(text or "")}
    return sorted(candidates)


def extract_mailto_links(soup: BeautifulSoup) -> Set[str]:
    emails: Set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href.lower().startswith("mailto:"):
            email = href.split(":", 1)[1].split("?")[0].strip().lower()
            if email:
                emails.add(email)
    return emails


def fetch_url(session: requests.Session, url: str, *, timeout: int = REQUEST_TIMEOUT) -> Optional[Tuple[str, BeautifulSoup]]:
    """Fetch a URL and return the final URL + soup when it is HTML content."""

    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return None
    content_type = response.headers.get("Content-Type", "").lower()
    if "text/html" not in content_type:
        logger.debug("Skipping non-HTML content at %s (content-type=%s)", url, content_type)
        return None
    return response.url, BeautifulSoup(response.text, "html.parser")


def scan_website(session: requests.Session, website: str) -> Set[str]:
    fetched = fetch_url(session, website)
    if not fetched:
        return set()
    _, soup = fetched
    found = set(extract_emails(soup.get_text(" ", strip=True)))
    found.update(extract_mailto_links(soup))
    return found


def enrich_contacts(
    settings: Settings,
    *,
    website: Optional[str] = None,
    domain: Optional[str] = None,
    emails: Optional[Iterable[str]] = None,
    session: Optional[requests.Session] = None,
) -> List[str]:
    """Union of Hunter results, e-mails on the landing page and the supplied ones."""
    supplied = [str(item).strip().lower() for item in emails or [] if str(item).strip()]
    invalid = [item for item in supplied if not EMAIL_REGEX.fullmatch(item)]
    if invalid:
        raise ValidationError("invalid e-mail addresses", details={"emails": invalid})

    sanitized = sanitize_website(website) if website else None
    if website and not sanitized:
        raise ValidationError("website must be a valid URL", details={"website": website})
    domain = (domain or "").strip().lower() or domain_of(sanitized)
    if not (sanitized or domain or supplied):
        raise ValidationError("one of website, domain or emails is required")

    found: Set[str] = set(supplied)

    if domain and settings.hunter_api_key:
        try:
            results = hunter.domain_search(domain, settings.hunter_api_key, RetryPolicy.from_settings(settings))
            found.update(item["value"].lower() for item in results)
        except ProviderError as exc:
            logger.warning("Hunter lookup failed for %s: %s", domain, exc)
    elif domain:
        logger.info("HUNTER_API_KEY missing; skipping Hunter lookup for %s", domain)

    if sanitized:
        owned_session = session is None
        session = session or requests.Session()
        session.headers.setdefault("User-Agent", USER_AGENT)
        try:
            found.update(scan_website(session, sanitized))
        finally:
            if owned_session:
                session.close()

    return sorted(found)
