"""
Chart-specific shapes that are not plain grouped sums.

Chart data contract:
- heatmap: y_labels x x_labels matrix of {x, y, value} cells plus global
  min/max for the colour scale. Empty cells are 0.
- gantt: {task, start_padding, duration} in milliseconds, offset from the
  earliest valid start date. The renderer stacks an invisible lead-in bar
  and a visible duration bar.
- scatter: one point per row, both measures coerced with 0 as fallback.

These run in a single synchronous pass. Heatmap cells are computed by
filtering rows per cell, so cost grows as rows x cells; callers keep the
row count bounded with the quick-preview cap.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from core.models import GanttEntry, GanttResult, HeatmapCell, HeatmapResult
from core.values import Row, is_blank, to_date, to_number, to_text
from engine.aggregate import NA_KEY

logger = logging.getLogger("uvicorn.error")


def _label(value: Any) -> Any:
    return NA_KEY if value is None else value


def _sorted_labels(rows: Sequence[Row], key: str) -> List[Any]:
    distinct: Dict[Any, None] = {}
    for row in rows:
        distinct.setdefault(_label(row.get(key)), None)
    return sorted(distinct, key=to_text)


def build_heatmap(rows: Sequence[Row], dim_y: str, dim_x: str, measure: str) -> HeatmapResult:
    """Sum *measure* for every (y, x) label pair."""
    y_labels = _sorted_labels(rows, dim_y)
    x_labels = _sorted_labels(rows, dim_x)

    lo: Optional[float] = None
    hi: Optional[float] = None
    matrix: List[List[HeatmapCell]] = []
    for y in y_labels:
        row_match = [r for r in rows if _label(r.get(dim_y)) == y]
        cells: List[HeatmapCell] = []
        for x in x_labels:
            matching = [r for r in row_match if _label(r.get(dim_x)) == x]
            value = sum((to_number(r.get(measure)) or 0.0) for r in matching)
            lo = value if lo is None or value < lo else lo
            hi = value if hi is None or value > hi else hi
            cells.append(HeatmapCell(x=x, y=y, value=value))
        matrix.append(cells)

    return HeatmapResult(
        matrix=matrix,
        y_labels=y_labels,
        x_labels=x_labels,
        min=lo if lo is not None else 0.0,
        max=hi if hi is not None else 0.0,
        measure_key=measure,
    )


def _ms(delta) -> float:
    return delta.total_seconds() * 1000.0


def build_gantt(rows: Sequence[Row], task_key: str, start_key: str, end_key: str) -> GanttResult:
    """Floating-bar schedule anchored at the earliest valid start date."""
    spans = []
    dropped = 0
    for row in rows:
        task = row.get(task_key)
        start = to_date(row.get(start_key))
        end = to_date(row.get(end_key))
        if is_blank(task) or start is None or end is None or end < start:
            dropped += 1
            continue
        spans.append((task, start, end))

    if dropped:
        logger.debug("Gantt dropped %d rows (blank task, bad date or end before start)", dropped)
    if not spans:
        return GanttResult()

    anchor = min(s for _, s, _ in spans)
    entries = [
        GanttEntry(
            task=task,
            start_padding=_ms(start - anchor),
            duration=_ms(end - start),
            start_date=start.date().isoformat(),
            end_date=end.date().isoformat(),
        )
        for task, start, end in spans
    ]
    return GanttResult(anchor=anchor.isoformat(), entries=entries)


def build_scatter(
    rows: Sequence[Row],
    x_measure: str,
    y_measure: str,
    dimension: Optional[str] = None,
) -> List[Dict[str, Any]]:
    points: List[Dict[str, Any]] = []
    for row in rows:
        point: Dict[str, Any] = {}
        if dimension:
            point[dimension] = row.get(dimension)
        point[x_measure] = to_number(row.get(x_measure)) or 0.0
        point[y_measure] = to_number(row.get(y_measure)) or 0.0
        points.append(point)
    return points
