"""
Resumable substring search over every field of every row.

Each ``scan`` call looks at exactly one chunk from the cursor, so a caller
can show matches as they accumulate and keep asking for more until the scan
is complete. A different query starts over.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from core.values import Row, to_text


def row_matches(row: Row, needle: str) -> bool:
    """True when any non-null field contains *needle* (already lowercased)."""
    for value in row.values():
        if value is None:
            continue
        if needle in to_text(value).lower():
            return True
    return False


@dataclass
class ScanStatus:
    query: str
    cursor: int
    total: int
    new_matches: int
    match_count: int

    @property
    def complete(self) -> bool:
        return self.cursor >= self.total

    @property
    def progress(self) -> int:
        return 100 if self.total <= 0 else round(min(self.cursor, self.total) / self.total * 100)


class RowScanner:
    def __init__(self, rows: Sequence[Row], chunk_size: int = 5000) -> None:
        self.rows = rows
        self.chunk_size = max(1, int(chunk_size))
        self.query = ""
        self.cursor = 0
        self.matches: List[Row] = []

    @property
    def complete(self) -> bool:
        return self.cursor >= len(self.rows)

    def reset(self, query: str = "") -> None:
        self.query = query
        self.cursor = 0
        self.matches = []

    def scan(self, query: str) -> ScanStatus:
        """Scan the next chunk for *query*; a new query resets the scan first."""
        if query != self.query:
            self.reset(query)
        if not query:
            return self._status(0)

        needle = query.lower()
        end = min(self.cursor + self.chunk_size, len(self.rows))
        found = [row for row in self.rows[self.cursor:end] if row_matches(row, needle)]
        self.matches.extend(found)
        self.cursor = end
        return self._status(len(found))

    def _status(self, new_matches: int) -> ScanStatus:
        return ScanStatus(
            query=self.query,
            cursor=self.cursor,
            total=len(self.rows),
            new_matches=new_matches,
            match_count=len(self.matches),
        )


def full_scan(rows: Sequence[Row], query: str) -> List[Row]:
    """Single-pass reference search."""
    if not query:
        return []
    needle = query.lower()
    return [row for row in rows if row_matches(row, needle)]


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    page: int = 1
    per_page: int = 50
    total: int = 0
    total_pages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "total_pages": self.total_pages,
        }


def paginate(items: Sequence[Any], page: int = 1, per_page: int = 50) -> Page:
    per_page = max(1, int(per_page))
    page = max(1, int(page))
    start = (page - 1) * per_page
    return Page(
        items=list(items[start:start + per_page]),
        page=page,
        per_page=per_page,
        total=len(items),
        total_pages=math.ceil(len(items) / per_page),
    )
