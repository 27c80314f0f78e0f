# lfs_ingest/core/config.py
import os
from pathlib import Path
from typing import Iterable, List

from dotenv import load_dotenv

# Load environment variables (.env.local wins over .env)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env.local")
load_dotenv(dotenv_path=BASE_DIR / ".env")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def parse_bool(value) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def _env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def _env_list(name: str, default: Iterable[str]) -> List[str]:
    raw = _env(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    """Central settings for the floorball ingestion jobs."""

    # 🔧 DATABASE SETTINGS
    SUPABASE_URL = _env("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = _env("SUPABASE_SERVICE_ROLE_KEY") or _env("SUPABASE_SERVICE_KEY")

    # 🔧 UPSTREAM SITE
    LFS_BASE_URL = _env("LFS_BASE_URL", "https://www.floorball.lv")
    LFS_CALENDAR_AJAX_URL = _env(
        "LFS_CALENDAR_AJAX_URL", "https://www.floorball.lv/ajax/ajax_chempionats_kalendars.php"
    )
    LFS_SKATERS_URL = _env("LFS_SKATERS_URL")
    LFS_SKATERS_ENDPOINT = _env("LFS_SKATERS_ENDPOINT")
    LFS_SKATERS_FORM = _env("LFS_SKATERS_FORM")
    LFS_GOALIES_URL = _env("LFS_GOALIES_URL")
    LFS_GOALIES_ENDPOINT = _env("LFS_GOALIES_ENDPOINT")
    LFS_GOALIES_FORM = _env("LFS_GOALIES_FORM")
    LFS_USER_AGENT = _env(
        "LFS_USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    )
    LFS_COOKIE = _env("LFS_COOKIE")

    # 🔧 HTTP
    RETRY_ATTEMPTS = int(_env("RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF_MS = int(_env("RETRY_BACKOFF_MS", "750"))
    MIN_REQUEST_GAP_MS = int(_env("MIN_REQUEST_GAP_MS", "1000"))
    REQUEST_TIMEOUT = 30

    # 🔧 BATCHING
    BATCH_SIZE = 500
    LOOKUP_CHUNK = 300
    PAGE_SIZE = 1000

    # 🔧 CALENDAR
    DEFAULT_SEASON = _env("LFS_SEASON", "2025")
    DEFAULT_LEAGUE = _env("LFS_LEAGUE", "vv")
    CALENDAR_SEASON_CODE = _env("LFS_CALENDAR_SEASON_CODE", "34")
    CALENDAR_PAGE_SIZE = int(_env("LFS_CALENDAR_PAGE_SIZE", "100"))
    CALENDAR_MONTHS = _env_list("LFS_CALENDAR_MONTHS", ["09", "10", "11", "12", "01", "02", "03", "04"])

    # 🔧 FLAGS
    DEBUG_SAVE_HTML = parse_bool(os.getenv("DEBUG_SAVE_HTML"))
    INGEST_DEBUG = parse_bool(os.getenv("INGEST_DEBUG"))
    CI = parse_bool(os.getenv("CI"))
    CACHE_DIR = BASE_DIR / ".cache"

    # 🔧 LOGGING CONFIGURATION
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
    LOG_DATE_FORMAT = "%H:%M:%S"

    @classmethod
    def validate_config(cls, require: Iterable[str] = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")):
        """Check that every setting a job needs is present."""
        errors = []

        for name in require:
            if not getattr(cls, name, None):
                errors.append(f"{name} not set")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True


STATS_SETTINGS = (
    "LFS_SKATERS_URL",
    "LFS_SKATERS_ENDPOINT",
    "LFS_SKATERS_FORM",
    "LFS_GOALIES_URL",
    "LFS_GOALIES_ENDPOINT",
    "LFS_GOALIES_FORM",
    "LFS_USER_AGENT",
    "LFS_COOKIE",
)

# Export main config instance
config = Config()
