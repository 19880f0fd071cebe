"""Write resolved logos to the cache directory, one file per identity key."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .imaging import to_png_or_raw
from .keys import derive_key
from .models import Organization
from .resolver import LogoResolver, ResolutionFailure

CACHE_EXTS = ("png", "svg", "jpg", "webp", "gif")
CANONICAL_EXT = "png"

SAVED = "saved"
SKIPPED = "skipped"
ERROR = "error"


@dataclass(frozen=True)
class WriteResult:
    status: str
    key: str
    detail: str = ""
    source_kind: str = ""
    path: Optional[Path] = None


def existing_cache_file(logos_dir: Path, key: str, exts: Iterable[str] = CACHE_EXTS) -> Optional[Path]:
    """Cached file for ``key``; extensions match case-insensitively, as in list_cache_files."""
    if not logos_dir.is_dir():
        return None
    by_suffix = {
        p.suffix.lower(): p
        for p in logos_dir.glob(f"{key}.*")
        if p.stem == key and p.is_file()
    }
    for ext in exts:
        found = by_suffix.get(f".{ext}")
        if found is not None:
            return found
    return None


def list_cache_files(logos_dir: Path, exts: Iterable[str] = CACHE_EXTS) -> List[Path]:
    """Cache files directly under ``logos_dir`` (the archive is not included)."""
    if not logos_dir.is_dir():
        return []
    wanted = {f".{ext}" for ext in exts}
    return sorted(
        p for p in logos_dir.iterdir()
        if p.is_file() and p.suffix.lower() in wanted
    )


def atomic_write(path: Path, data: bytes) -> None:
    """Write through a temp file in the same directory, then rename over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class CacheWriter:
    def __init__(self, logos_dir: Path, resolver: LogoResolver):
        self.logos_dir = Path(logos_dir)
        self.resolver = resolver

    def path_for(self, key: str) -> Path:
        return self.logos_dir / f"{key}.{CANONICAL_EXT}"

    def write_if_needed(self, org: Organization, *, force: bool = False, logo_only: bool = False) -> WriteResult:
        """Resolve and store the logo for ``org`` unless a cached file exists.

        Without ``force`` an existing ``<key>.<ext>`` short-circuits before
        any network access. Failures come back as an ``error`` result; they
        are never raised, so one bad row cannot stop a batch.
        """
        key = derive_key(org)

        if not force:
            existing = existing_cache_file(self.logos_dir, key)
            if existing is not None:
                return WriteResult(SKIPPED, key, "exists", path=existing)

        try:
            resolved = self.resolver.resolve(org, logo_only=logo_only)
        except ResolutionFailure as exc:
            return WriteResult(SKIPPED, key, f"logo-only: {exc}")

        payload, reencoded = to_png_or_raw(resolved.data)
        if not reencoded:
            logging.debug("%s: could not re-encode %s bytes, writing raw", key, len(resolved.data))

        target = self.path_for(key)
        try:
            atomic_write(target, payload)
        except OSError as exc:
            logging.warning("%s: write failed: %s", key, exc)
            return WriteResult(ERROR, key, f"write failed: {exc}", resolved.source_kind)

        detail = "png" if reencoded else "raw"
        return WriteResult(SAVED, key, detail, resolved.source_kind, target)
