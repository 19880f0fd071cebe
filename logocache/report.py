"""Read-only diagnostics over sheet data and the cache directory.

Two different "duplicate" notions live here on purpose:

* gap report duplicates: rows whose identity keys collide (the same
  name/website/logo_url entered twice);
* the base-key dedupe audit: rows the map page would collapse because they
  share a site host (or, for generic hosts, a name slug).
"""

from __future__ import annotations

import csv
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .cache import CANONICAL_EXT, existing_cache_file
from .keys import derive_base_key, derive_key
from .models import Organization
from .normalize import normalize_rows

MISSING_CSV = "missing-logos.csv"
DUPLICATES_CSV = "duplicate-logo-bases.csv"
NEEDS_SOURCING_CSV = "needs-sourcing.csv"

MISSING_FIELDNAMES = ["name", "website", "logo_url", "output_path"]
DUPLICATE_FIELDNAMES = ["base", "name", "website", "logo_url", "output_path"]
NEEDS_SOURCING_FIELDNAMES = ["name", "category", "website", "logo_url"]

TIER_ONE_VALUES = {"1", "tier 1", "tier1", "t1"}


@dataclass
class GapReport:
    missing_rows: List[Dict[str, str]] = field(default_factory=list)
    duplicate_rows: List[Dict[str, str]] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)


@dataclass
class DedupeAudit:
    total_rows: int = 0
    tier_one_rows: int = 0
    unique: List[Dict[str, str]] = field(default_factory=list)
    collapsed: List[Dict[str, str]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "tierOneRows": self.tier_one_rows,
            "uniqueAfterDedupe": len(self.unique),
            "collapsedCount": len(self.collapsed),
        }


def output_path_for(key: str, output_prefix: str = "public/logos") -> str:
    return f"{output_prefix.rstrip('/')}/{key}.{CANONICAL_EXT}"


def group_by_key(orgs: Sequence[Organization]) -> "OrderedDict[str, List[Organization]]":
    groups: "OrderedDict[str, List[Organization]]" = OrderedDict()
    for org in orgs:
        groups.setdefault(derive_key(org), []).append(org)
    return groups


def build_gap_report(
    orgs: Sequence[Organization],
    logos_dir: Path,
    *,
    output_prefix: str = "public/logos",
) -> GapReport:
    """Rows with no cached file and rows sharing an identity key."""
    groups = group_by_key(orgs)
    report = GapReport()

    missing_keys = [key for key in groups if existing_cache_file(Path(logos_dir), key) is None]
    for key in missing_keys:
        for org in groups[key]:
            report.missing_rows.append({
                "name": org.name,
                "website": org.website,
                "logo_url": org.logo_url,
                "output_path": output_path_for(key, output_prefix),
            })

    duplicate_keys = [key for key, members in groups.items() if len(members) > 1]
    for key in duplicate_keys:
        for org in groups[key]:
            report.duplicate_rows.append({
                "base": key,
                "name": org.name,
                "website": org.website,
                "logo_url": org.logo_url,
                "output_path": output_path_for(key, output_prefix),
            })

    report.summary = {
        "totalRows": len(orgs),
        "withLogoUrl": sum(1 for org in orgs if org.has_logo_url),
        "uniqueKeys": len(groups),
        "existingLocalKeys": len(groups) - len(missing_keys),
        "missingLocalKeys": len(missing_keys),
        "missingRowsExpanded": len(report.missing_rows),
        "duplicateKeysCount": len(duplicate_keys),
    }
    return report


def report_missing(
    rows: Sequence[Sequence[str]],
    logos_dir: Path,
    *,
    output_prefix: str = "public/logos",
) -> GapReport:
    """Gap report straight from a header-first sheet table."""
    return build_gap_report(normalize_rows(rows), logos_dir, output_prefix=output_prefix)


def find_needs_sourcing(orgs: Sequence[Organization]) -> List[Dict[str, str]]:
    """Rows with neither a website nor a logo_url; someone has to look these up."""
    return [
        {
            "name": org.name,
            "category": org.category,
            "website": org.website,
            "logo_url": org.logo_url,
        }
        for org in orgs
        if not org.website.strip() and not org.logo_url.strip()
    ]


def is_tier_one(tier: Optional[str]) -> bool:
    return str(tier or "").strip().lower() in TIER_ONE_VALUES


def audit_base_key_dedupe(orgs: Sequence[Organization]) -> DedupeAudit:
    """Replay the map's tier-one base-key de-duplication and list what it drops."""
    audit = DedupeAudit(total_rows=len(orgs))
    seen = set()
    for org in orgs:
        if not is_tier_one(org.tier):
            continue
        audit.tier_one_rows += 1
        base = derive_base_key(org)
        entry = {"name": org.name, "website": org.website, "base_key": base}
        if base in seen:
            audit.collapsed.append(entry)
        else:
            seen.add(base)
            audit.unique.append(entry)
    return audit


def write_csv(path: Path, fieldnames: Sequence[str], rows: Sequence[Dict[str, str]]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(fieldnames), quoting=csv.QUOTE_ALL)
        writer.writeheader()
        for row in rows:
            writer.writerow({name: row.get(name, "") for name in fieldnames})
    return path


def write_missing_csv(path: Path, report: GapReport) -> Path:
    return write_csv(path, MISSING_FIELDNAMES, report.missing_rows)


def write_duplicates_csv(path: Path, report: GapReport) -> Path:
    return write_csv(path, DUPLICATE_FIELDNAMES, report.duplicate_rows)


def write_needs_sourcing_csv(path: Path, rows: Sequence[Dict[str, str]]) -> Path:
    return write_csv(path, NEEDS_SOURCING_FIELDNAMES, rows)
