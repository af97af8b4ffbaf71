"""URL parsing utilities: reduce arbitrary URL/domain input to a comparable domain key."""

import ipaddress
import logging
import re
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

# Multi-part public suffixes recognised when reducing a host to its registrable domain.
MULTI_PART_SUFFIXES: tuple[str, ...] = (
    "co.uk",
    "com.au",
    "co.jp",
    "org.uk",
    "gov.uk",
    "ac.uk",
    "net.au",
    "org.au",
    "edu.au",
)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_HOSTNAME_RE = re.compile(r"^[a-z0-9.:-]+$")
_DOMAIN_SHAPE_RE = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9-]*(?:\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}")


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def registrable_domain(hostname: str) -> str:
    """
    Reduce a hostname to its registrable domain.
    Examples:
        legal.yahoo.com    -> yahoo.com
        legal.yahoo.co.uk  -> yahoo.co.uk
        192.168.0.1        -> 192.168.0.1
    """
    if not hostname:
        return ""
    if _is_ip_literal(hostname):
        return hostname
    parts = hostname.split(".")
    if len(parts) <= 2:
        return hostname
    for suffix in MULTI_PART_SUFFIXES:
        if hostname.endswith("." + suffix):
            return f"{parts[-3]}.{suffix}"
    return ".".join(parts[-2:])


def _extract_hostname(raw: str) -> str:
    candidate = raw.strip().rstrip("/")
    if not _SCHEME_RE.match(candidate):
        candidate = f"https://{candidate}"
    if "@" in candidate:
        candidate = candidate.split("@", 1)[1]
        if not _SCHEME_RE.match(candidate):
            candidate = f"https://{candidate}"
    hostname = (urlsplit(candidate).hostname or "").rstrip(".")
    if not _HOSTNAME_RE.match(hostname):
        return ""
    # "www" is only dropped when it is a subdomain label, so www.com stays www.com
    if hostname.startswith("www.") and registrable_domain(hostname) != hostname:
        hostname = hostname[4:]
    return hostname


def normalize_domain(raw: str | None) -> str:
    """
    Return the domain key for a URL, bare domain or pasted garbage. Never raises.
    Examples:
        https://www.example.com/privacy -> example.com
        http://example.com              -> example.com
        user@legal.example.co.uk        -> example.co.uk
        ""                              -> ""
    """
    if not raw or not isinstance(raw, str):
        return ""
    if _is_ip_literal(raw.strip()):
        return raw.strip()
    try:
        hostname = _extract_hostname(raw)
        if hostname:
            return registrable_domain(hostname.lower())
    except ValueError as e:
        logger.debug("Could not parse %r as a URL: %s", raw, e)
    match = _DOMAIN_SHAPE_RE.search(raw)
    if match:
        return registrable_domain(match.group(0).lower())
    return ""


def domain_matches(domain: str, candidates: list[str] | tuple[str, ...]) -> bool:
    """True if *domain* equals, or is a subdomain of, one of *candidates*."""
    return any(domain == c or domain.endswith("." + c) for c in candidates)
