# lfs_ingest/processors/ajax_rows.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

DATA_ARRAY_KEYS = ("data", "aaData", "rows", "items", "results")


def extract_data_array(payload: Any) -> List[Any]:
    """Return the row list of an AJAX payload, whatever shape it came in."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in DATA_ARRAY_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def infer_header_texts(sample: Any) -> List[str]:
    if isinstance(sample, list):
        return [f"col_{i}" for i in range(len(sample))]
    if isinstance(sample, dict):
        return list(sample.keys())
    return []


def row_to_record(row: Any, header_texts: Sequence[str]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    if isinstance(row, list):
        return {
            (header_texts[i] if i < len(header_texts) else f"col_{i}"): value
            for i, value in enumerate(row)
        }
    if isinstance(row, dict):
        return row
    return None


def value_to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def total_records(payload: Any) -> Optional[int]:
    """DataTables total (iTotalDisplayRecords / iTotalRecords), if reported."""
    if not isinstance(payload, dict):
        return None
    for key in ("iTotalDisplayRecords", "iTotalRecords", "recordsFiltered", "recordsTotal"):
        value = payload.get(key)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None
