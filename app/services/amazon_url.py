"""Amazon product URL handling: ASIN and country extraction, short links, URL building."""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

import httpx

from app.exceptions import ValidationError

logger = logging.getLogger(__name__)

SHORT_LINK_HOSTS = ("a.co", "amzn.to")
REDIRECT_TIMEOUT = 10.0
MAX_REDIRECTS = 5

ASIN_RE = re.compile(r"^[A-Z0-9]{10}$")

_ASIN_PATTERNS = (
    re.compile(r"/dp/([A-Z0-9]{10})"),
    re.compile(r"/gp/product/([A-Z0-9]{10})"),
    re.compile(r"/product/([A-Z0-9]{10})"),
    re.compile(r"/product-reviews/([A-Z0-9]{10})"),
    re.compile(r"ASIN=([A-Z0-9]{10})"),
    re.compile(r"/([A-Z0-9]{10})(?:/|\?|$)"),
)

COUNTRY_DOMAINS: dict[str, str] = {
    "us": "amazon.com",
    "gb": "amazon.co.uk",
    "uk": "amazon.co.uk",
    "ca": "amazon.ca",
    "de": "amazon.de",
    "fr": "amazon.fr",
    "it": "amazon.it",
    "es": "amazon.es",
    "jp": "amazon.co.jp",
    "au": "amazon.com.au",
    "mx": "amazon.com.mx",
    "in": "amazon.in",
    "sg": "amazon.sg",
    "br": "amazon.com.br",
    "nl": "amazon.nl",
    "tr": "amazon.com.tr",
    "ae": "amazon.ae",
    "sa": "amazon.sa",
    "se": "amazon.se",
    "pl": "amazon.pl",
    "eg": "amazon.eg",
    "be": "amazon.com.be",
}

# domain -> country, longest domain first so amazon.com.mx wins over amazon.com
_DOMAIN_COUNTRIES: tuple[tuple[str, str], ...] = tuple(
    sorted(
        ((domain, country) for country, domain in COUNTRY_DOMAINS.items() if country != "uk"),
        key=lambda item: len(item[0]),
        reverse=True,
    )
)


def _host(url: str) -> str:
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return (parsed.hostname or "").lower()


def is_short_link(url: str) -> bool:
    return _host(url) in SHORT_LINK_HOSTS


def is_amazon_host(host: str) -> bool:
    host = host.lower()
    return any(host == domain or host.endswith(f".{domain}") for domain, _ in _DOMAIN_COUNTRIES)


def expand_short_link(url: str) -> str:
    """Follow redirects of an a.co / amzn.to link and return the final Amazon URL.

    Raises:
        ValidationError: The link cannot be followed or does not land on Amazon.
    """
    try:
        with httpx.Client(follow_redirects=True, max_redirects=MAX_REDIRECTS) as client:
            resp = client.get(url, timeout=REDIRECT_TIMEOUT)
    except httpx.HTTPError as exc:
        logger.warning("Short link expansion failed for %s: %s", url, exc)
        raise ValidationError(f"Could not expand short link: {url}") from exc

    final_url = str(resp.url)
    if not is_amazon_host(_host(final_url)):
        raise ValidationError(f"Short link does not resolve to an Amazon product: {final_url}")
    logger.info("Expanded short link %s -> %s", url, final_url)
    return final_url


def extract_asin(url: str) -> str:
    """Return the 10-character ASIN from a product URL or a bare ASIN.

    Raises:
        ValidationError: No ASIN found.
    """
    candidate = (url or "").strip()
    if ASIN_RE.match(candidate):
        return candidate
    for pattern in _ASIN_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return match.group(1)
    raise ValidationError(f"Could not extract ASIN from URL: {url}")


def extract_country(url: str) -> str:
    """Two-letter country code from the Amazon domain; ``us`` when none matches."""
    host = _host(url)
    for domain, country in _DOMAIN_COUNTRIES:
        if host == domain or host.endswith(f".{domain}"):
            return country
    return "us"


def normalize_country(country: str | None) -> str:
    code = (country or "us").strip().lower()
    return "gb" if code == "uk" else code


def build_product_url(asin: str, country: str = "us") -> str:
    domain = COUNTRY_DOMAINS.get(normalize_country(country), COUNTRY_DOMAINS["us"])
    return f"https://www.{domain}/dp/{asin}/"


def parse_product_url(url: str) -> tuple[str, str, str]:
    """Resolve user input to ``(asin, country, canonical_product_url)``.

    Short links are expanded first.

    Raises:
        ValidationError: Input is empty, not an Amazon URL, or has no ASIN.
    """
    raw = (url or "").strip()
    if not raw:
        raise ValidationError("Product URL is required")
    if is_short_link(raw):
        raw = expand_short_link(raw)
    elif not ASIN_RE.match(raw) and not is_amazon_host(_host(raw)):
        raise ValidationError(f"Not an Amazon product URL: {url}")

    asin = extract_asin(raw)
    country = extract_country(raw) if not ASIN_RE.match(raw) else "us"
    return asin, country, build_product_url(asin, country)


def slugify(title: str | None, max_length: int = 80) -> str:
    if not title:
        return ""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def product_page_path(asin: str, country: str = "us", title: str | None = None) -> str:
    """Front-end path for an analyzed product, e.g. ``/amazon/us/B0XXXXXXXX/some-title``."""
    path = f"/amazon/{normalize_country(country)}/{asin}"
    slug = slugify(title)
    return f"{path}/{slug}" if slug else path
