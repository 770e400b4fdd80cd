"""Utility functions for hostnames, origins, timestamps and URL normalization."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from urllib.parse import urlparse

import tldextract

# Bundled public-suffix snapshot only; no network fetch at runtime.
_tld_extract = tldextract.TLDExtract(suffix_list_urls=())


def extract_registered_domain(url_or_domain: str) -> str:
    """Extract the registered domain from a URL or domain string.

    Examples:
        'https://www.telegraph.co.uk/news' -> 'telegraph.co.uk'
        'consent.cmp.example.com' -> 'example.com'
    """
    ext = _tld_extract(url_or_domain)
    if ext.registered_domain:
        return ext.registered_domain
    # Fallback for IPs or unusual domains
    try:
        parsed = urlparse(url_or_domain if "://" in url_or_domain else f"https://{url_or_domain}")
        return parsed.hostname or url_or_domain
    except Exception:
        return url_or_domain


def extract_hostname(url: str) -> str:
    """Extract hostname from a URL."""
    try:
        parsed = urlparse(url)
        return parsed.hostname or ""
    except Exception:
        return ""


def extract_origin(url: str) -> str:
    """Scheme + host + port of a URL, or '' for opaque URLs like about:blank."""
    try:
        parsed = urlparse(url)
    except Exception:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def cooldown_key(url: str) -> str:
    """Origin of a frame URL, falling back to its hostname."""
    return extract_origin(url) or extract_hostname(url)


def host_matches(hostname: str, entries: list[str] | tuple[str, ...]) -> bool:
    """True if hostname equals an entry or is a subdomain of one."""
    host = (hostname or "").lower().strip(".")
    if not host:
        return False
    for entry in entries:
        e = entry.lower().strip().strip(".")
        if not e:
            continue
        if host == e or host.endswith("." + e):
            return True
    return False


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000


def normalize_url(url: str) -> str:
    """Ensure URL has a scheme and strip trailing slash."""
    url = url.strip()
    if not url.startswith(("http://", "https://", "file://")):
        url = f"https://{url}"
    return url.rstrip("/")
