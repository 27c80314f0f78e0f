# lfs_ingest/utils/debug_cache.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from lfs_ingest.core.config import config
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def save_debug_response(filename: str, raw: str, cache_dir: Optional[Path] = None) -> Optional[Path]:
    """Dump a raw upstream response for later inspection; never fails the caller."""
    target_dir = Path(cache_dir) if cache_dir is not None else config.CACHE_DIR
    path = target_dir / filename
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(raw or "", encoding="utf-8")
    except OSError as e:
        logger.warning(f"[debug] Failed to write {path}: {e}")
        return None
    logger.info(f"[debug] saved {len(raw or '')} chars to {path}")
    return path
