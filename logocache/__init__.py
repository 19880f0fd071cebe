"""Logo cache pipeline for the ecosystem map."""

from .keys import derive_base_key, derive_key
from .models import Organization
from .normalize import normalize_rows

__all__ = ["Organization", "derive_base_key", "derive_key", "normalize_rows"]
