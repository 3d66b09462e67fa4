"""
In-memory session storage.

Datasets are stored as engine rows (list of dicts) per session, with the
column list and upload metadata alongside. Nothing here is persisted;
dashboards go through core/dashboards.py.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.errors import DatasetNotFound
from core.values import Row
from engine.search import RowScanner

# session_id -> {table_name: rows}
SESSIONS: Dict[str, Dict[str, List[Row]]] = {}

# session_id -> {content_hash: table_name}
SESS_HASHES: Dict[str, Dict[str, str]] = {}

# session_id -> {table_name: metadata}
SESS_META: Dict[str, Dict[str, dict]] = {}

# (session_id, table_name) -> active search scanner
SCANNERS: Dict[Tuple[str, str], RowScanner] = {}


def get_session(session_id: str) -> Dict[str, List[Row]]:
    if session_id not in SESSIONS:
        SESSIONS[session_id] = {}
    return SESSIONS[session_id]


def get_session_hashes(session_id: str) -> Dict[str, str]:
    if session_id not in SESS_HASHES:
        SESS_HASHES[session_id] = {}
    return SESS_HASHES[session_id]


def get_session_meta(session_id: str) -> Dict[str, dict]:
    if session_id not in SESS_META:
        SESS_META[session_id] = {}
    return SESS_META[session_id]


def unique_table_name(session_id: str, base: str) -> str:
    sess = get_session(session_id)
    base = base or "table"
    name = base
    i = 1
    while name in sess:
        i += 1
        name = f"{base}_{i}"
    return name


def add_dataset(
    session_id: str,
    base_name: str,
    rows: List[Row],
    columns: List[str],
    *,
    meta: Optional[Dict[str, Any]] = None,
    content_hash: Optional[str] = None,
) -> str:
    """Store *rows* under a fresh table name and return that name."""
    name = unique_table_name(session_id, base_name)
    get_session(session_id)[name] = rows
    if content_hash:
        get_session_hashes(session_id)[content_hash] = name
    get_session_meta(session_id)[name] = {
        "created_at": datetime.utcnow().isoformat() + "Z",
        "n_rows": len(rows),
        "n_cols": len(columns),
        "columns": list(columns),
        **(meta or {}),
    }
    SCANNERS.pop((session_id, name), None)
    return name


def get_rows(session_id: str, table_name: str) -> List[Row]:
    sess = get_session(session_id)
    if table_name not in sess:
        raise DatasetNotFound(table_name)
    return sess[table_name]


def get_columns(session_id: str, table_name: str) -> List[str]:
    get_rows(session_id, table_name)
    return list(get_session_meta(session_id).get(table_name, {}).get("columns", []))


def get_scanner(session_id: str, table_name: str, chunk_size: int) -> RowScanner:
    """Scanner for a dataset, created on first use and kept between requests."""
    key = (session_id, table_name)
    scanner = SCANNERS.get(key)
    if scanner is None:
        scanner = RowScanner(get_rows(session_id, table_name), chunk_size)
        SCANNERS[key] = scanner
    return scanner
