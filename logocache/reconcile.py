"""Bring the cache directory in line with the sheet without deleting anything."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .cache import SAVED, CacheWriter, WriteResult, existing_cache_file, list_cache_files
from .keys import derive_key
from .models import Organization
from .normalize import normalize_rows
from .pool import DEFAULT_CONCURRENCY, run_pool
from .resolver import FROM_LOGO_URL

ARCHIVE_DIRNAME = "_archive"


@dataclass
class ReconcileSummary:
    rows: int = 0
    expected: int = 0
    existing_before: int = 0
    created: int = 0
    placeholders: int = 0
    moved_to_archive: int = 0
    errors: int = 0
    final_count: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "rows": self.rows,
            "expected": self.expected,
            "existingBefore": self.existing_before,
            "created": self.created,
            "placeholders": self.placeholders,
            "movedToArchive": self.moved_to_archive,
            "errors": self.errors,
            "finalCount": self.final_count,
        }


def iter_archive_names(archive_dir: Path, filename: str) -> Iterable[Path]:
    """Yield ``name.ext``, then ``name-1.ext``, ``name-2.ext`` ..."""
    stem, dot, ext = filename.rpartition(".")
    if not dot:
        stem, ext = filename, ""
    suffix = f".{ext}" if ext else ""
    yield archive_dir / filename
    idx = 1
    while True:
        yield archive_dir / f"{stem}-{idx}{suffix}"
        idx += 1


def move_to_archive(path: Path, archive_dir: Path) -> Path:
    """Move ``path`` into ``archive_dir``; an archived file is never overwritten."""
    archive_dir.mkdir(parents=True, exist_ok=True)
    for candidate in iter_archive_names(archive_dir, path.name):
        if candidate.exists():
            continue
        os.rename(path, candidate)
        return candidate
    raise RuntimeError("unreachable")  # pragma: no cover


def expected_keys(orgs: Sequence[Organization]) -> Dict[str, Organization]:
    """Identity key -> first organization deriving it, in sheet order."""
    keyed: Dict[str, Organization] = {}
    for org in orgs:
        keyed.setdefault(derive_key(org), org)
    return keyed


class Reconciler:
    def __init__(
        self,
        writer: CacheWriter,
        *,
        archive_dir: Optional[Path] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.writer = writer
        self.logos_dir = writer.logos_dir
        self.archive_dir = Path(archive_dir) if archive_dir else self.logos_dir / ARCHIVE_DIRNAME
        self.concurrency = concurrency

    def reconcile(self, rows: Sequence[Sequence[str]]) -> ReconcileSummary:
        return self.reconcile_organizations(normalize_rows(rows))

    def reconcile_organizations(self, orgs: Sequence[Organization]) -> ReconcileSummary:
        return asyncio.run(self.reconcile_async(orgs))

    async def reconcile_async(self, orgs: Sequence[Organization]) -> ReconcileSummary:
        self.logos_dir.mkdir(parents=True, exist_ok=True)
        keyed = expected_keys(orgs)
        summary = ReconcileSummary(rows=len(orgs), expected=len(keyed))

        before = list_cache_files(self.logos_dir)
        summary.existing_before = len(before)

        missing: List[Organization] = [
            org for key, org in keyed.items()
            if existing_cache_file(self.logos_dir, key) is None
        ]
        logging.info("Reconcile: %d expected, %d on disk, %d missing", len(keyed), len(before), len(missing))

        def on_result(org: Organization, result: WriteResult) -> None:
            if result.status != SAVED:
                summary.errors += 1
                logging.warning("%s: %s", org.name, result.detail)
            elif result.source_kind == FROM_LOGO_URL:
                summary.created += 1
            else:
                summary.placeholders += 1

        def on_error(org: Organization, exc: BaseException) -> None:
            summary.errors += 1
            logging.warning("%s: unexpected error: %s", org.name, exc)

        await run_pool(
            missing,
            lambda org: self.writer.write_if_needed(org),
            on_result=on_result,
            on_error=on_error,
            concurrency=self.concurrency,
        )

        for path in list_cache_files(self.logos_dir):
            if path.stem in keyed:
                continue
            try:
                dest = move_to_archive(path, self.archive_dir)
            except OSError as exc:
                summary.errors += 1
                logging.warning("Could not archive %s: %s", path.name, exc)
                continue
            summary.moved_to_archive += 1
            logging.info("Archived %s -> %s", path.name, dest.name)

        summary.final_count = len(list_cache_files(self.logos_dir))
        return summary
