from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Organization:
    """One sheet row after header mapping and ingestion cleanup.

    ``name`` is never blank. ``website`` is stored in its normalized form
    (trimmed, ``https://`` added when no scheme was given) and is the only
    form ever hashed or fetched.
    """

    name: str
    website: str = ""
    logo_url: str = ""
    category: str = ""
    tier: str = ""

    @property
    def has_logo_url(self) -> bool:
        return bool(self.logo_url.strip())
