"""Decide where an organization's logo comes from and fetch it.

Policy: an explicit ``logo_url`` is the only network source in the
per-row chain. When it fails the row gets a placeholder, never a favicon
(favicons come from unrelated brands often enough to be worse than a
blank tile). Favicon and page-scrape lookups live in ``discovery``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from requests.adapters import HTTPAdapter

from .imaging import DEFAULT_PLACEHOLDER_COLOR, DEFAULT_PLACEHOLDER_SIZE, make_placeholder
from .models import Organization

FROM_LOGO_URL = "from-logo-url"
PLACEHOLDER = "placeholder"

DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; LogoCache/1.0)"
DEFAULT_POOL_SIZE = 10

_DRIVE_FILE_RE = re.compile(r"/d/([^/]+)")


class FetchError(RuntimeError):
    """A single candidate URL could not be fetched."""


class ResolutionFailure(RuntimeError):
    """No image could be produced for an organization."""


@dataclass(frozen=True)
class ResolvedLogo:
    data: bytes
    source_kind: str
    source_url: str = ""


def build_session(
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    pool_size: int = DEFAULT_POOL_SIZE,
) -> requests.Session:
    """Session with pooling, a default timeout and no automatic retries.

    ``pool_size`` should be at least the number of workers sharing the session.
    """
    pool_size = max(pool_size, DEFAULT_POOL_SIZE)
    sess = requests.Session()
    sess.headers.update({
        "User-Agent": user_agent,
        "Accept": "image/avif,image/webp,image/png,image/svg+xml,image/*;q=0.8,*/*;q=0.5",
    })
    # a failed candidate is not retried; it degrades to the next fallback
    adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=pool_size)
    sess.mount("http://", adapter)
    sess.mount("https://", adapter)
    original_get = sess.get

    def get_with_timeout(*args, **kwargs):
        kwargs.setdefault("timeout", timeout)
        return original_get(*args, **kwargs)

    sess.get = get_with_timeout  # type: ignore
    return sess


def normalize_logo_url(url: str) -> str:
    """Rewrite share links to their direct-download form.

    drive.google.com/file/d/<id>/view -> drive.google.com/uc?export=download&id=<id>
    dropbox.com/...?dl=0              -> same URL with dl=1
    Anything else (or anything unparseable) is returned unchanged.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
        host = (parts.hostname or "").lower()
    except ValueError:
        return raw
    if not parts.scheme or not host:
        return raw

    if "drive.google.com" in host:
        match = _DRIVE_FILE_RE.search(parts.path)
        if match and match.group(1):
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"
        return raw

    if "dropbox.com" in host:
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "dl"]
        query.append(("dl", "1"))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))

    return raw


def fetch_bytes(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> bytes:
    """GET ``url`` following redirects; non-2xx or an empty body is a failure."""
    client = session or requests
    try:
        response = client.get(
            url,
            headers={"User-Agent": user_agent},
            timeout=timeout,
            allow_redirects=True,
        )
    except requests.Timeout as exc:
        raise FetchError(f"Timeout fetching {url}") from exc
    except requests.RequestException as exc:  # DNS, connection reset, redirect loop
        raise FetchError(f"Request error for {url}: {exc}") from exc

    if response.status_code // 100 != 2:
        raise FetchError(f"HTTP {response.status_code} for {url}")

    content = response.content or b""
    if not content:
        raise FetchError(f"Empty body from {url}")
    return content


class LogoResolver:
    """Per-row logo resolution: logo_url, else placeholder."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        placeholder_size: int = DEFAULT_PLACEHOLDER_SIZE,
        placeholder_color: str = DEFAULT_PLACEHOLDER_COLOR,
        pool_size: int = DEFAULT_POOL_SIZE,
    ):
        self.session = session if session is not None else build_session(timeout, user_agent, pool_size)
        self.timeout = timeout
        self.user_agent = user_agent
        self.placeholder_size = placeholder_size
        self.placeholder_color = placeholder_color

    def placeholder(self) -> ResolvedLogo:
        return ResolvedLogo(make_placeholder(self.placeholder_size, self.placeholder_color), PLACEHOLDER)

    def fetch_logo_url(self, logo_url: str) -> ResolvedLogo:
        target = normalize_logo_url(logo_url)
        data = fetch_bytes(target, session=self.session, timeout=self.timeout, user_agent=self.user_agent)
        return ResolvedLogo(data, FROM_LOGO_URL, target)

    def resolve(self, org: Organization, *, logo_only: bool = False) -> ResolvedLogo:
        """Return image bytes for ``org`` or raise ResolutionFailure.

        ResolutionFailure is only raised in logo-only mode, where a missing
        or failing logo_url is reported instead of papered over.
        """
        logo_url = org.logo_url.strip()
        if logo_url:
            try:
                return self.fetch_logo_url(logo_url)
            except FetchError as exc:
                logging.debug("logo_url failed for %s: %s", org.name, exc)
                if logo_only:
                    raise ResolutionFailure(str(exc)) from exc
                return self.placeholder()

        if logo_only:
            raise ResolutionFailure("no logo_url (logo-only mode)")
        return self.placeholder()
