"""Distinct-value frequency table for a single column."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from core.models import ValueSummaryEntry
from core.values import Row, is_blank, to_text
from engine.chunking import ChunkedTask

BLANK_LABEL = "(Blank)"
SORT_KEYS = ("value", "count")
DIRECTIONS = ("ascending", "descending")


class ValueTabulator(ChunkedTask):
    """Count occurrences of each non-blank value plus one blank bucket."""

    def __init__(self, rows: Sequence[Row], column: str, chunk_size: int = 5000) -> None:
        super().__init__(rows, chunk_size)
        self.column = column
        self.counts: Dict[str, int] = {}
        self.blank_count = 0

    def consume(self, row: Row) -> None:
        value = row.get(self.column)
        if is_blank(value):
            self.blank_count += 1
            return
        key = to_text(value)
        self.counts[key] = self.counts.get(key, 0) + 1

    def result(self) -> List[ValueSummaryEntry]:
        entries = [ValueSummaryEntry(value=v, count=c) for v, c in self.counts.items()]
        if self.blank_count > 0:
            entries.append(ValueSummaryEntry(value=BLANK_LABEL, count=self.blank_count))
        return entries


def _value_key(entry: ValueSummaryEntry) -> Tuple[str, str]:
    return (entry.value.casefold(), entry.value)


def sort_summary(
    entries: Sequence[ValueSummaryEntry],
    key: str = "count",
    direction: str = "descending",
) -> List[ValueSummaryEntry]:
    """
    Sort summary rows by value or count.

    Value sorting keeps the ``(Blank)`` bucket last in either direction;
    count sorting treats it like any other row. Ties keep input order.
    """
    if key not in SORT_KEYS:
        raise ValueError(f"sort key must be one of {SORT_KEYS}, got {key!r}")
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
    reverse = direction == "descending"

    if key == "count":
        return sorted(entries, key=lambda e: e.count, reverse=reverse)

    blanks = [e for e in entries if e.value == BLANK_LABEL]
    others = sorted((e for e in entries if e.value != BLANK_LABEL), key=_value_key, reverse=reverse)
    return others + blanks


def next_sort(current: Tuple[str, str], key: str) -> Tuple[str, str]:
    """Sort state after a header click on *key*.

    Clicking the active ascending column flips it to descending; switching to
    count starts descending; anything else starts ascending.
    """
    cur_key, cur_dir = current
    direction = "ascending"
    if cur_key == key and cur_dir == "ascending":
        direction = "descending"
    if key == "count" and cur_key != "count":
        direction = "descending"
    return key, direction
