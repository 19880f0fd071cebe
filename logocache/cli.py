"""Command-line entry points.

Each command reads the whole sheet, so GOOGLE_SHEET_ID and
GOOGLE_SHEETS_API_KEY must be set (environment, .env.local or .env).
Batch commands always finish with a JSON summary; individual row
failures show up in its counts, not in the exit status.

Usage (from the site root):
    logocache-cache [--limit=N] [--force] [--logo-only]
    logocache-reconcile
    logocache-report-missing
    logocache-report-needs-sourcing
    logocache-dedupe-audit
    logocache-discover [--limit=N]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .cache import CacheWriter
from .discovery import DISCOVERED_FIELDNAMES, DiscoveredLogo, LogoDiscoverer
from .models import Organization
from .normalize import normalize_rows
from .pool import clamp_limit, populate_cache, run_pool
from .reconcile import Reconciler
from .report import (
    DUPLICATES_CSV,
    MISSING_CSV,
    NEEDS_SOURCING_CSV,
    audit_base_key_dedupe,
    build_gap_report,
    find_needs_sourcing,
    write_csv,
    write_duplicates_csv,
    write_missing_csv,
    write_needs_sourcing_csv,
)
from .resolver import LogoResolver, build_session
from .settings import ConfigurationError, Settings, load_settings
from .sheets import SheetsError, fetch_sheet_rows

LOG_FORMAT = "%(asctime)s %(levelname)s [LOGOS]: %(message)s"
DISCOVERED_CSV = "discovered-logos.csv"
COLLAPSED_PREVIEW = 50


def parse_limit(value: str) -> Optional[int]:
    """``--limit`` value; unparseable or non-positive means no limit."""
    try:
        return clamp_limit(int(value))
    except (TypeError, ValueError):
        return None


def _base_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging",
    )
    return parser


def configure_logging(verbose: bool, settings: Settings) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_organizations(settings: Settings) -> List[Organization]:
    """Read the configured sheet. Raises ConfigurationError or SheetsError."""
    settings.require_sheet_credentials()
    rows = fetch_sheet_rows(
        settings.sheet_id,
        settings.sheet_api_key,
        value_range=settings.sheet_range,
    )
    orgs = normalize_rows(rows)
    logging.info("Loaded %d organizations from sheet", len(orgs))
    return orgs


def build_writer(settings: Settings) -> CacheWriter:
    fetch = settings.fetch
    resolver = LogoResolver(
        timeout=fetch.timeout,
        user_agent=fetch.user_agent,
        placeholder_size=fetch.placeholder_size,
        placeholder_color=fetch.placeholder_color,
        pool_size=fetch.concurrency,
    )
    return CacheWriter(settings.paths.logos_dir, resolver)


def _startup(args: argparse.Namespace) -> Optional[tuple]:
    settings = load_settings()
    configure_logging(args.verbose, settings)
    try:
        orgs = load_organizations(settings)
    except ConfigurationError as exc:
        logging.error("%s", exc)
        return None
    except SheetsError as exc:
        logging.error("Could not read sheet: %s", exc)
        return None
    return settings, orgs


def _print_json(payload: dict, stream=None) -> None:
    print(json.dumps(payload, indent=2), file=stream or sys.stdout)


def cache_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Fetch and cache one logo per sheet row into public/logos.")
    parser.add_argument(
        "--limit",
        type=parse_limit,
        default=None,
        metavar="N",
        help="Process at most N rows (1-5000)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-fetch logos even if a cached file exists",
    )
    parser.add_argument(
        "--logo-only",
        action="store_true",
        help="Never write placeholders; rows without a usable logo_url are skipped",
    )
    args = parser.parse_args(argv)

    started = _startup(args)
    if started is None:
        return 1
    settings, orgs = started

    writer = build_writer(settings)
    settings.paths.logos_dir.mkdir(parents=True, exist_ok=True)
    stats = populate_cache(
        orgs,
        writer,
        force=args.force,
        logo_only=args.logo_only,
        concurrency=settings.fetch.concurrency,
        limit=args.limit,
    )
    for failure in stats.failures:
        logging.debug("failed: %s", failure)
    logging.info("Logos: %s", settings.paths.logos_dir)
    _print_json(stats.as_dict())
    return 0


def reconcile_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser(
        "Create missing logos and move files no longer in the sheet to public/logos/_archive."
    )
    args = parser.parse_args(argv)

    started = _startup(args)
    if started is None:
        return 1
    settings, orgs = started

    reconciler = Reconciler(
        build_writer(settings),
        archive_dir=settings.paths.archive_dir,
        concurrency=settings.fetch.concurrency,
    )
    summary = reconciler.reconcile_organizations(orgs)
    _print_json(summary.as_dict())
    return 0


def report_missing_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Write missing-logos.csv and duplicate-logo-bases.csv.")
    args = parser.parse_args(argv)

    started = _startup(args)
    if started is None:
        return 1
    settings, orgs = started

    paths = settings.paths
    report = build_gap_report(
        orgs,
        paths.logos_dir,
        output_prefix=paths.relative_to_root(paths.logos_dir),
    )
    missing_path = write_missing_csv(Path.cwd() / MISSING_CSV, report)
    duplicates_path = write_duplicates_csv(Path.cwd() / DUPLICATES_CSV, report)

    print(f"Summary: {json.dumps(report.summary, indent=2)}", file=sys.stderr)
    print(f"Wrote {len(report.missing_rows)} rows to {missing_path}", file=sys.stderr)
    print(f"Wrote {len(report.duplicate_rows)} rows to {duplicates_path}", file=sys.stderr)
    return 0


def report_needs_sourcing_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Write needs-sourcing.csv: rows with neither website nor logo_url.")
    args = parser.parse_args(argv)

    started = _startup(args)
    if started is None:
        return 1
    _, orgs = started

    needs = find_needs_sourcing(orgs)
    out_path = write_needs_sourcing_csv(Path.cwd() / NEEDS_SOURCING_CSV, needs)
    print(f"Wrote {len(needs)} rows to {out_path}", file=sys.stderr)
    return 0


def dedupe_audit_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Show which tier-one rows the map collapses by base key.")
    args = parser.parse_args(argv)

    started = _startup(args)
    if started is None:
        return 1
    _, orgs = started

    audit = audit_base_key_dedupe(orgs)
    _print_json(audit.as_dict())
    if audit.collapsed:
        print("\nCollapsed (deduped away):")
        for entry in audit.collapsed[:COLLAPSED_PREVIEW]:
            print(f"- {entry['name']} | {entry['website']} | key={entry['base_key']}")
    return 0


def discover_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser(
        "Suggest logo URLs for rows without logo_url (writes discovered-logos.csv)."
    )
    parser.add_argument(
        "--limit",
        type=parse_limit,
        default=None,
        metavar="N",
        help="Process at most N rows (1-5000)",
    )
    args = parser.parse_args(argv)

    started = _startup(args)
    if started is None:
        return 1
    settings, orgs = started

    fetch = settings.fetch
    discoverer = LogoDiscoverer(
        build_session(fetch.timeout, fetch.user_agent, fetch.concurrency),
        timeout=fetch.timeout,
        delay=fetch.scrape_delay,
    )
    targets = [org for org in orgs if not org.has_logo_url and org.website]
    found: List[DiscoveredLogo] = []
    errors = 0

    def on_result(org: Organization, result: DiscoveredLogo) -> None:
        found.append(result)
        logging.info("%s -> %s", org.name, result.candidate_url or "(none)")

    def on_error(org: Organization, exc: BaseException) -> None:
        nonlocal errors
        errors += 1
        logging.warning("%s: %s", org.name, exc)

    asyncio.run(run_pool(
        targets,
        discoverer.discover,
        on_result=on_result,
        on_error=on_error,
        concurrency=fetch.concurrency,
        limit=args.limit,
    ))

    out_path = write_csv(
        Path.cwd() / DISCOVERED_CSV,
        DISCOVERED_FIELDNAMES,
        [item.as_row() for item in found],
    )
    summary = {
        "candidates": len(targets),
        "processed": len(found) + errors,
        "found": sum(1 for item in found if item.candidate_url),
        "errors": errors,
    }
    _print_json(summary, sys.stderr)
    print(f"Wrote {len(found)} rows to {out_path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(cache_main())
