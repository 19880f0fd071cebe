"""Turn raw sheet rows into :class:`Organization` records."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from .models import Organization

# header synonym -> canonical field; columns are scanned left to right and
# the first non-empty value for a canonical field wins
HEADER_SYNONYMS: Dict[str, str] = {
    "name": "name",
    "organization": "name",
    "organisation": "name",
    "company": "name",
    "org": "name",
    "website": "website",
    "url": "website",
    "link": "website",
    "site": "website",
    "logo_url": "logo_url",
    "logo": "logo_url",
    "logo_link": "logo_url",
    "category": "category",
    "type": "category",
    "sector": "category",
    "group": "category",
    "tier": "tier",
}

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_header(header: Optional[str]) -> str:
    return str(header or "").strip().lower()


def normalize_website(website: Optional[str]) -> str:
    """Trim and add ``https://`` when the value has no http(s) scheme."""
    value = str(website or "").strip()
    if value and not _SCHEME_RE.match(value):
        value = f"https://{value}"
    return value


def map_headers(headers: Sequence[str]) -> List[Optional[str]]:
    """Canonical field for each column position (``None`` for ignored columns)."""
    return [HEADER_SYNONYMS.get(normalize_header(h)) for h in headers]


def row_to_organization(column_fields: Sequence[Optional[str]], row: Sequence[str]) -> Optional[Organization]:
    values: Dict[str, str] = {}
    for idx, canonical in enumerate(column_fields):
        if canonical is None or values.get(canonical):
            continue
        cell = row[idx] if idx < len(row) else ""
        cell = str(cell if cell is not None else "").strip()
        if cell:
            values[canonical] = cell

    name = values.get("name", "")
    if not name:
        return None

    return Organization(
        name=name,
        website=normalize_website(values.get("website")),
        logo_url=values.get("logo_url", ""),
        category=values.get("category", ""),
        tier=values.get("tier", ""),
    )


def normalize_rows(rows: Sequence[Sequence[str]]) -> List[Organization]:
    """Map a header-first table to organizations, keeping row order.

    Rows with a blank name are dropped; an empty table or a header-only
    table yields an empty list.
    """
    if not rows:
        return []

    column_fields = map_headers(rows[0])
    organizations: List[Organization] = []
    for row in rows[1:]:
        org = row_to_organization(column_fields, row or [])
        if org is not None:
            organizations.append(org)
    return organizations
