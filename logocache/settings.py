from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Type

from dotenv import load_dotenv


ENV_PREFIX = "LOGO_CACHE_"
ENV_FILES = (".env.local", ".env")

SHEET_ID_KEY = "GOOGLE_SHEET_ID"
SHEET_API_KEY_KEY = "GOOGLE_SHEETS_API_KEY"


class ConfigurationError(RuntimeError):
    """Raised when a required setting (sheet id, API key) is missing."""


def _coerce_value(expected_type: Type[Any], raw: str) -> Optional[Any]:
    try:
        if expected_type in (bool, "bool"):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        if expected_type in (int, "int"):
            return int(raw)
        if expected_type in (float, "float"):
            return float(raw)
        return raw
    except ValueError:
        return None


def _env_lookup(*candidates: str) -> Optional[str]:
    for key in candidates:
        if key in os.environ:
            return os.environ[key]
    return None


def load_env_files(project_root: Path) -> None:
    """Load .env.local then .env; variables already set in the environment win."""
    for name in ENV_FILES:
        candidate = project_root / name
        if candidate.is_file():
            load_dotenv(candidate, override=False)


@dataclass
class FetchDefaults:
    concurrency: int = 6
    timeout: float = 10.0
    placeholder_size: int = 64
    placeholder_color: str = "#e2e8f0"
    user_agent: str = "Mozilla/5.0 (compatible; LogoCache/1.0)"
    scrape_delay: float = 0.5

    @classmethod
    def from_env(cls) -> "FetchDefaults":
        overrides: Dict[str, Any] = {}
        base = cls()
        for f in fields(base):
            raw = _env_lookup(f"{ENV_PREFIX}{f.name}".upper())
            if raw is None:
                continue
            coerced = _coerce_value(f.type, raw)
            if coerced is not None:
                overrides[f.name] = coerced
        if overrides:
            return cls(**overrides)
        return base

    def as_dict(self) -> Dict[str, Any]:
        return {
            "concurrency": self.concurrency,
            "timeout": self.timeout,
            "placeholder_size": self.placeholder_size,
            "placeholder_color": self.placeholder_color,
            "user_agent": self.user_agent,
            "scrape_delay": self.scrape_delay,
        }


@dataclass
class Paths:
    project_root: Path = field(
        default_factory=lambda: Path(_env_lookup(f"{ENV_PREFIX}PROJECT_ROOT") or Path.cwd())
    )
    logos_dir: Path = field(init=False)
    archive_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        self.project_root = Path(self.project_root)
        logos_override = _env_lookup(f"{ENV_PREFIX}LOGOS_DIR")
        if logos_override:
            logos_dir = Path(logos_override)
            if not logos_dir.is_absolute():
                logos_dir = self.project_root / logos_dir
        else:
            logos_dir = self.project_root / "public" / "logos"
        self.logos_dir = logos_dir
        self.archive_dir = self.logos_dir / "_archive"

    def relative_to_root(self, path: Path) -> str:
        """Path as shown in reports, e.g. ``public/logos/acme-1a2b3c4d.png``."""
        try:
            return Path(path).relative_to(self.project_root).as_posix()
        except ValueError:
            return Path(path).as_posix()


@dataclass
class Settings:
    paths: Paths = field(default_factory=Paths)
    fetch: FetchDefaults = field(default_factory=FetchDefaults.from_env)
    sheet_id: str = field(default_factory=lambda: (_env_lookup(SHEET_ID_KEY) or "").strip())
    sheet_api_key: str = field(default_factory=lambda: (_env_lookup(SHEET_API_KEY_KEY) or "").strip())
    sheet_range: str = field(default_factory=lambda: os.getenv(f"{ENV_PREFIX}SHEET_RANGE", "A:Z"))
    log_level: str = field(default_factory=lambda: os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper())

    def require_sheet_credentials(self) -> None:
        missing = []
        if not self.sheet_id:
            missing.append(SHEET_ID_KEY)
        if not self.sheet_api_key:
            missing.append(SHEET_API_KEY_KEY)
        if missing:
            raise ConfigurationError(f"Missing {' or '.join(missing)}")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    root = Path(_env_lookup(f"{ENV_PREFIX}PROJECT_ROOT") or Path.cwd())
    load_env_files(root)
    return Settings()
