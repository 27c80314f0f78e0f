# lfs_ingest/utils/logger.py
import logging
import sys
from typing import Any, Dict, Set, Tuple

from lfs_ingest.core.config import config


def resolve_level(cfg=config) -> int:
    """INGEST_DEBUG forces DEBUG; otherwise LOG_LEVEL (unknown names fall back to INFO)."""
    if cfg.INGEST_DEBUG:
        return logging.DEBUG
    return getattr(logging, str(cfg.LOG_LEVEL).upper(), logging.INFO)


# Basic formatting setup
logging.basicConfig(
    level=resolve_level(),
    format=config.LOG_FORMAT,
    datefmt=config.LOG_DATE_FORMAT,
    stream=sys.stdout,
)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module."""
    return logging.getLogger(name)


def fmt_fields(fields: Dict[str, Any]) -> str:
    """Render a dict as `key=value` pairs for tagged warnings."""
    return " ".join(f"{k}={v!r}" for k, v in fields.items())


class WarningTracker:
    """Per-run memory of warnings already emitted.

    Passed explicitly into parsing/pricing code so that each run (and each
    test) starts from a clean slate.
    """

    def __init__(self):
        self._seen: Set[Tuple[str, str]] = set()
        self.counts: Dict[str, int] = {}

    def first(self, tag: str, key: Any) -> bool:
        """True the first time (tag, key) is seen; counts every occurrence."""
        self.counts[tag] = self.counts.get(tag, 0) + 1
        marker = (tag, str(key))
        if marker in self._seen:
            return False
        self._seen.add(marker)
        return True

    def warn_once(self, logger: logging.Logger, tag: str, key: Any, **fields: Any) -> None:
        if self.first(tag, key):
            logger.warning(f"{tag} {fmt_fields(fields)}".rstrip())
