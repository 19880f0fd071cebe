"""Identity and base keys for organizations.

The identity key names the cached file (``<slug>-<hash8>``). The base key
is a coarser value used only to collapse the same site in display
de-duplication. The two must not be mixed up.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from .models import Organization

HASH_SEED = 5381
_MASK32 = 0xFFFFFFFF

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_DOMAIN_RE = re.compile(r"([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
_HOST_RE = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)
_TOKEN_SPLIT_RE = re.compile(r"\s+|,|;|\||\bor\b", re.IGNORECASE)
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

GENERIC_HOSTS_EXACT = frozenset({
    "facebook.com",
    "linkedin.com",
    "media.licdn.com",
    "drive.google.com",
    "dropbox.com",
})
GENERIC_HOST_SUFFIXES = (
    ".linkedin.com",
    ".googleusercontent.com",
    ".dropboxusercontent.com",
    ".framer.ai",
)
GENERIC_HOST_PREFIXES = ("scontent.",)


def slugify_name(name: Optional[str]) -> str:
    slug = _SLUG_RE.sub("-", str(name or "").lower()).strip("-")
    return slug or "logo"


def short_hash(text: Optional[str]) -> str:
    """8-hex-digit DJB2-xor hash over UTF-16 code units.

    Code units (not code points) keep keys identical to the ones the map
    page computes in the browser for names outside the BMP.
    """
    data = str(text or "").encode("utf-16-le")
    h = HASH_SEED
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (((h << 5) + h) ^ unit) & _MASK32
    return f"{h:08x}"


def fingerprint(org: Organization) -> str:
    return f"{org.name}|{org.website}|{org.logo_url}"


def derive_key(org: Organization) -> str:
    return f"{slugify_name(org.name)}-{short_hash(fingerprint(org))}"


def is_generic_host(host: Optional[str]) -> bool:
    h = str(host or "").lower()
    if not h:
        return False
    if h in GENERIC_HOSTS_EXACT:
        return True
    if h.startswith(GENERIC_HOST_PREFIXES):
        return True
    return h.endswith(GENERIC_HOST_SUFFIXES)


def host_from_website(website: Optional[str]) -> Optional[str]:
    """First domain-looking substring of a free-text website field."""
    match = _DOMAIN_RE.search(str(website or "").strip())
    if not match:
        return None
    host = match.group(1).lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def derive_base_key(org: Organization) -> str:
    host = host_from_website(org.website)
    if host and not is_generic_host(host):
        return host
    return slugify_name(org.name)


def extract_hostname(website: Optional[str]) -> Optional[str]:
    """Hostname of the first parseable candidate in a website field.

    The field may hold several candidates ("a.com or b.org", "a.com, b.com").
    """
    raw = str(website or "").strip()
    if not raw:
        return None
    for token in _TOKEN_SPLIT_RE.split(raw):
        token = (token or "").strip()
        if not token:
            continue
        candidate = token if _SCHEME_RE.match(token) else f"https://{token}"
        try:
            host = (urlsplit(candidate).hostname or "").lower()
        except ValueError:
            host = ""
        if host.startswith("www."):
            host = host[4:]
        if host and _HOST_RE.match(host):
            return host
    return None
