"""
Grouped aggregation for bar / line / area / radar charts, and the
``{name, value}`` shape used by pie, funnel and treemap.

Counting rule for measures, kept on purpose: a numeric cell adds its value,
a blank cell adds nothing, and any other non-numeric cell adds 1. This is
not the KPI rule (engine/kpi.py skips non-numeric cells entirely).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from core.values import Row, is_blank, to_number
from engine.chunking import ChunkedTask

logger = logging.getLogger("uvicorn.error")

NA_KEY = "N/A"


def group_key(value: Any) -> Any:
    """Key a row falls under; None means the row is skipped."""
    if value is None:
        return None
    if is_blank(value):
        return NA_KEY
    return value


def measure_contribution(value: Any) -> float:
    number = to_number(value)
    if number is not None:
        return number
    if is_blank(value):
        return 0.0
    return 1.0


class GroupAggregator(ChunkedTask):
    """Sum each measure per distinct dimension value, in first-seen order."""

    def __init__(
        self,
        rows: Sequence[Row],
        dimension: str,
        measures: Sequence[str],
        chunk_size: int = 5000,
    ) -> None:
        super().__init__(rows, chunk_size)
        self.dimension = dimension
        self.measures = [m for m in measures if m]
        self._groups: Dict[Any, Dict[str, Any]] = {}
        self.skipped = 0

    def consume(self, row: Row) -> None:
        key = group_key(row.get(self.dimension))
        if key is None:
            self.skipped += 1
            return
        acc = self._groups.get(key)
        if acc is None:
            acc = {self.dimension: key}
            for m in self.measures:
                acc[m] = 0.0
            self._groups[key] = acc
        for m in self.measures:
            acc[m] += measure_contribution(row.get(m))

    def result(self) -> List[Dict[str, Any]]:
        if self.skipped:
            logger.debug("Aggregation on '%s' skipped %d rows without a value", self.dimension, self.skipped)
        return [dict(acc) for acc in self._groups.values()]


def to_name_value(groups: Sequence[Dict[str, Any]], dimension: str, measure: str) -> List[Dict[str, Any]]:
    """Collapse grouped rows to ``{name, value}`` pairs for a single measure."""
    return [{"name": g[dimension], "value": g.get(measure, 0.0)} for g in groups]


def donut_total(pairs: Sequence[Dict[str, Any]]) -> float:
    return float(sum(p["value"] for p in pairs))
