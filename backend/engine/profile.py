"""
Column profiling: completeness and inferred type per column.

Used by the column details view and to pre-sort the column pickers
(dimensions first, measures next).
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import pandas as pd

from core.models import ColumnCompleteness, ColumnInfo, ColumnType
from core.utils import example_values, pct
from core.values import Row, column_names, infer_column_type, is_blank

PROFILE_MAX_ROWS = 2000


def column_completeness(rows: Sequence[Row], column: str) -> ColumnCompleteness:
    """Filled vs blank row counts for one column over the whole row set."""
    total = len(rows)
    non_empty = sum(1 for row in rows if not is_blank(row.get(column)))
    blank = total - non_empty
    return ColumnCompleteness(
        column=column,
        total_rows=total,
        non_empty_rows=non_empty,
        blank_rows=blank,
        filled_pct=pct(non_empty, total, 1),
        blank_pct=pct(blank, total, 1),
    )


def profile_columns(rows: Sequence[Row], columns: Optional[Sequence[str]] = None) -> List[ColumnInfo]:
    """
    Profile each column.

    Completeness is exact; cardinality and examples come from the first
    PROFILE_MAX_ROWS rows so large uploads stay cheap.
    """
    cols = list(columns) if columns is not None else column_names(rows)
    sample = list(rows[:PROFILE_MAX_ROWS])
    work_df = pd.DataFrame.from_records(sample, columns=cols) if sample else pd.DataFrame(columns=cols)

    out: List[ColumnInfo] = []
    for c in cols:
        s = work_df[c] if c in work_df.columns else pd.Series(dtype=object)
        unique = int(s.astype("string").str.strip().replace("", pd.NA).nunique(dropna=True)) if len(s) else 0
        out.append(ColumnInfo(
            name=c,
            inferred_type=infer_column_type(sample, c),
            completeness=column_completeness(rows, c),
            cardinality=unique,
            examples=example_values(s.dropna().tolist(), 3),
        ))
    return out


def suggest_slots(profile: Sequence[ColumnInfo]) -> dict:
    """Split columns into likely dimensions and likely measures."""
    dims = [c.name for c in profile if c.inferred_type in (ColumnType.categorical, ColumnType.date)]
    measures = [c.name for c in profile if c.inferred_type == ColumnType.numeric]
    return {"dimensions": dims, "measures": measures}
