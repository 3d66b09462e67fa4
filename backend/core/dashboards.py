"""
JSON-file dashboard store.

All dashboards live in one JSON array on disk. Listing strips the row
payload so the catalogue stays small; fetching one returns everything.
A *snapshot* carries its rows and headers, a *layout* only its charts.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from core.errors import DashboardExists, DashboardNotFound, InvalidDashboard
from core.models import SavedDashboard

logger = logging.getLogger("uvicorn.error")


class DashboardStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> List[SavedDashboard]:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("[]", encoding="utf-8")
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        out: List[SavedDashboard] = []
        for item in raw:
            try:
                out.append(SavedDashboard.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable dashboard entry in %s: %s", self.path, e)
        return out

    def _write(self, dashboards: List[SavedDashboard]) -> None:
        payload = [d.model_dump(mode="json") for d in dashboards]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def list(self) -> List[dict]:
        """Dashboard metadata without `data` / `file_headers`."""
        with self._lock:
            dashboards = self._read()
        return [d.model_dump(mode="json", exclude={"data", "file_headers"}) for d in dashboards]

    def get(self, dashboard_id: str) -> SavedDashboard:
        with self._lock:
            for d in self._read():
                if d.id == dashboard_id:
                    return d
        raise DashboardNotFound(dashboard_id)

    def create(self, dashboard: SavedDashboard) -> SavedDashboard:
        if not dashboard.id or not dashboard.name or not dashboard.charts:
            raise InvalidDashboard("Invalid dashboard data provided")
        if dashboard.is_snapshot and dashboard.data is None:
            raise InvalidDashboard("Snapshot dashboards must include their data")
        with self._lock:
            dashboards = self._read()
            if any(d.id == dashboard.id for d in dashboards):
                raise DashboardExists(f"Dashboard with id {dashboard.id} already exists")
            dashboards.append(dashboard)
            self._write(dashboards)
        logger.info("Saved dashboard %s (%s, snapshot=%s)", dashboard.id, dashboard.name, dashboard.is_snapshot)
        return dashboard

    def delete(self, dashboard_id: str) -> None:
        with self._lock:
            dashboards = self._read()
            kept = [d for d in dashboards if d.id != dashboard_id]
            if len(kept) == len(dashboards):
                raise DashboardNotFound(dashboard_id)
            self._write(kept)
        logger.info("Deleted dashboard %s", dashboard_id)


_store: Optional[DashboardStore] = None


def get_store() -> DashboardStore:
    global _store
    if _store is None:
        from core.config import get_settings
        _store = DashboardStore(get_settings().dashboards_path)
    return _store


def set_store(store: DashboardStore) -> None:
    """Swap the process-wide store (tests point it at a temp file)."""
    global _store
    _store = store
