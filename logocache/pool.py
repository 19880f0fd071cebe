"""Bounded worker pool for per-row work.

Workers are asyncio tasks pulling from one queue; the blocking part of
each unit (HTTP, disk) runs in a thread via ``asyncio.to_thread``.
Results are folded back on the event loop, so counters need no locks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from .cache import ERROR, SAVED, SKIPPED, CacheWriter, WriteResult
from .models import Organization
from .resolver import FROM_LOGO_URL, PLACEHOLDER

DEFAULT_CONCURRENCY = 6
LIMIT_MIN = 1
LIMIT_MAX = 5000

T = TypeVar("T")
R = TypeVar("R")


def clamp_limit(value: Optional[int]) -> Optional[int]:
    """``None`` for no limit; otherwise clamp to 1..5000. Non-positive means no limit."""
    if value is None or value <= 0:
        return None
    return max(LIMIT_MIN, min(LIMIT_MAX, value))


@dataclass
class BatchStats:
    processed: int = 0
    saved: int = 0
    saved_from_logo_url: int = 0
    saved_placeholder: int = 0
    skipped: int = 0
    skipped_exists: int = 0
    skipped_logo_only: int = 0
    errors: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)

    def record(self, org: Organization, result: WriteResult) -> None:
        if result.status == SAVED:
            self.saved += 1
            if result.source_kind == FROM_LOGO_URL:
                self.saved_from_logo_url += 1
            elif result.source_kind == PLACEHOLDER:
                self.saved_placeholder += 1
        elif result.status == SKIPPED:
            self.skipped += 1
            if result.detail == "exists":
                self.skipped_exists += 1
            else:
                self.skipped_logo_only += 1
        else:
            self.record_error(org, result.key, result.detail)

    def record_error(self, org: Organization, key: str, detail: str) -> None:
        self.errors += 1
        self.failures.append({"name": org.name, "key": key, "detail": detail})

    def as_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "saved": self.saved,
            "savedFromLogoUrl": self.saved_from_logo_url,
            "savedPlaceholder": self.saved_placeholder,
            "skipped": self.skipped,
            "skippedExists": self.skipped_exists,
            "skippedLogoOnly": self.skipped_logo_only,
            "errors": self.errors,
        }


async def run_pool(
    items: Iterable[T],
    work: Callable[[T], R],
    *,
    on_result: Callable[[T, R], None],
    on_error: Callable[[T, BaseException], None],
    concurrency: int = DEFAULT_CONCURRENCY,
    limit: Optional[int] = None,
) -> int:
    """Run blocking ``work`` over ``items`` with at most ``concurrency`` in flight.

    ``limit`` caps how many items are taken from the queue. An exception
    from one unit goes to ``on_error`` and the worker moves on. Returns the
    number of items taken.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    queue: asyncio.Queue = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    taken = 0

    async def worker() -> None:
        nonlocal taken
        while True:
            if limit is not None and taken >= limit:
                return
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            taken += 1
            try:
                result = await asyncio.to_thread(work, item)
            except Exception as exc:
                on_error(item, exc)
            else:
                on_result(item, result)

    await asyncio.gather(*(worker() for _ in range(concurrency)))
    return taken


async def populate_cache_async(
    orgs: Iterable[Organization],
    writer: CacheWriter,
    *,
    force: bool = False,
    logo_only: bool = False,
    concurrency: int = DEFAULT_CONCURRENCY,
    limit: Optional[int] = None,
    stats: Optional[BatchStats] = None,
) -> BatchStats:
    stats = stats if stats is not None else BatchStats()

    def work(org: Organization) -> WriteResult:
        return writer.write_if_needed(org, force=force, logo_only=logo_only)

    def on_result(org: Organization, result: WriteResult) -> None:
        stats.processed += 1
        stats.record(org, result)
        if result.status == ERROR:
            logging.warning("%s: %s", org.name, result.detail)
        else:
            logging.debug("%s -> %s (%s)", org.name, result.status, result.detail or result.source_kind)

    def on_error(org: Organization, exc: BaseException) -> None:
        stats.processed += 1
        stats.record_error(org, "", str(exc))
        logging.warning("%s: unexpected error: %s", org.name, exc)

    await run_pool(
        orgs,
        work,
        on_result=on_result,
        on_error=on_error,
        concurrency=concurrency,
        limit=clamp_limit(limit),
    )
    return stats


def populate_cache(
    orgs: Iterable[Organization],
    writer: CacheWriter,
    *,
    force: bool = False,
    logo_only: bool = False,
    concurrency: int = DEFAULT_CONCURRENCY,
    limit: Optional[int] = None,
) -> BatchStats:
    """Synchronous wrapper around :func:`populate_cache_async`."""
    return asyncio.run(
        populate_cache_async(
            orgs,
            writer,
            force=force,
            logo_only=logo_only,
            concurrency=concurrency,
            limit=limit,
        )
    )
