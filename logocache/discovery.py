"""Suggest logo URLs for rows that have none.

This is the old hostname-keyed lookup (page scrape, common paths, favicon
provider) kept as an operator aid: results go to a CSV for someone to
review and paste into the sheet's logo column. Nothing here writes into
the logo cache.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup

from .keys import extract_hostname, is_generic_host
from .models import Organization

FAVICON_PROVIDER = "https://www.google.com/s2/favicons?domain={host}&sz=64"
PAGE_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

COMMON_LOGO_PATHS = (
    "/logo.png",
    "/logo.svg",
    "/assets/logo.png",
    "/images/logo.png",
    "/img/logo.png",
    "/static/logo.png",
)

SOURCE_PAGE = "page"
SOURCE_COMMON_PATH = "common-path"
SOURCE_FAVICON = "favicon"

DISCOVERED_FIELDNAMES = ["name", "website", "candidate_url", "source"]


@dataclass(frozen=True)
class DiscoveredLogo:
    name: str
    website: str
    candidate_url: str = ""
    source: str = ""

    def as_row(self) -> dict:
        return {
            "name": self.name,
            "website": self.website,
            "candidate_url": self.candidate_url,
            "source": self.source,
        }


def favicon_url(hostname: str) -> str:
    return FAVICON_PROVIDER.format(host=hostname)


def _absolute(src: str, page_url: str) -> str:
    src = (src or "").strip()
    if src.startswith("//"):
        return f"{urlsplit(page_url).scheme or 'https'}:{src}"
    return urljoin(page_url, src)


def _looks_like_small_favicon(url: str) -> bool:
    lowered = url.lower()
    return "favicon" in lowered and "32" not in lowered and "64" not in lowered


def _has_word(tag, word: str) -> bool:
    for attr in ("class", "id", "alt"):
        value = tag.get(attr)
        if isinstance(value, list):
            value = " ".join(value)
        if value and word in str(value).lower():
            return True
    return False


def find_logo_candidates(html: str, page_url: str) -> List[str]:
    """Candidate logo URLs in priority order, made absolute and de-duplicated."""
    soup = BeautifulSoup(html or "", "html.parser")
    found: List[str] = []

    meta = soup.find("meta", attrs={"property": "og:image"})
    if meta and meta.get("content"):
        found.append(meta["content"])

    for word in ("logo", "brand"):
        for img in soup.find_all("img", src=True):
            if _has_word(img, word):
                found.append(img["src"])

    for img in soup.find_all("img", src=True):
        if "logo" in img["src"].lower():
            found.append(img["src"])

    header = soup.find("header")
    if header is not None:
        img = header.find("img", src=True)
        if img is not None:
            found.append(img["src"])

    for rel in ("apple-touch-icon", "icon", "shortcut icon"):
        for link in soup.find_all("link", href=True):
            rels = link.get("rel") or []
            if isinstance(rels, str):
                rels = rels.split()
            if " ".join(r.lower() for r in rels) == rel:
                found.append(link["href"])

    meta = soup.find("meta", attrs={"name": "twitter:image"})
    if meta and meta.get("content"):
        found.append(meta["content"])

    candidates: List[str] = []
    for raw in found:
        if raw.strip().startswith("data:"):
            continue
        url = _absolute(raw, page_url)
        if _looks_like_small_favicon(url) or url in candidates:
            continue
        candidates.append(url)
    return candidates


class LogoDiscoverer:
    """Scrape one site at a time, pausing between requests to the same site."""

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout: float = 10.0,
        delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.timeout = timeout
        self.delay = delay
        self._sleep = sleep

    def _pause(self) -> None:
        if self.delay > 0:
            self._sleep(self.delay)

    def _fetch_page(self, url: str) -> Optional[str]:
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": PAGE_USER_AGENT},
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            logging.debug("Page fetch failed for %s: %s", url, exc)
            return None
        if response.status_code // 100 != 2:
            return None
        return response.text

    def _probe(self, url: str) -> bool:
        try:
            response = self.session.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException:
            return False
        return response.status_code // 100 == 2

    def discover(self, org: Organization) -> DiscoveredLogo:
        host = extract_hostname(org.website)
        if not host or is_generic_host(host):
            return DiscoveredLogo(org.name, org.website)

        site_root = f"https://{host}"
        first_token = org.website.split()[0].rstrip(",;") if org.website.strip() else ""
        page_url = first_token if extract_hostname(first_token) == host else site_root

        html = self._fetch_page(page_url)
        if html:
            candidates = find_logo_candidates(html, page_url)
            if candidates:
                return DiscoveredLogo(org.name, org.website, candidates[0], SOURCE_PAGE)

        for path in COMMON_LOGO_PATHS:
            self._pause()
            candidate = site_root + path
            if self._probe(candidate):
                return DiscoveredLogo(org.name, org.website, candidate, SOURCE_COMMON_PATH)

        return DiscoveredLogo(org.name, org.website, favicon_url(host), SOURCE_FAVICON)
