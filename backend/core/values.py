"""
Cell value coercion.

Rows are plain ``dict``s of column name -> scalar (str, int, float, bool or
None). Every engine operation reads cells through the helpers here so blank
detection and numeric/date parsing behave the same everywhere.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from core.models import ColumnType
from core.utils import df_to_records_safe, smart_numeric_value

Row = Dict[str, Any]

TYPE_SAMPLE_ROWS = 500
TYPE_RATIO = 0.8

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NA or value is pd.NaT


def is_blank(value: Any) -> bool:
    """None, NaN/NA, or anything whose string form trims to empty."""
    if _is_missing(value):
        return True
    return str(value).strip() == ""


def to_number(value: Any) -> Optional[float]:
    """Strict numeric coercion; returns None when the value is not a number.

    Booleans count as 1/0. Strings must be a plain decimal or exponent
    literal: no currency, digit separators or inf/nan spellings. Non-finite
    results are rejected.
    """
    if _is_missing(value):
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, np.integer, np.floating)):
        out = float(value)
        return out if math.isfinite(out) else None
    text = str(value).strip()
    if not _NUMBER_RE.fullmatch(text):
        return None
    out = float(text)
    return out if math.isfinite(out) else None


def to_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse a cell as a timestamp; None when it is not a valid date.

    Numbers are read as epoch milliseconds. Timezone-aware values are shifted
    to UTC and made naive so they compare with naive ones.
    """
    if _is_missing(value) or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (pd.Timestamp, datetime, date)):
            ts = pd.Timestamp(value)
        elif isinstance(value, (int, float, np.integer, np.floating)):
            ts = pd.to_datetime(float(value), unit="ms", errors="coerce")
        else:
            text = str(value).strip()
            if not text:
                return None
            ts = pd.to_datetime(text, errors="coerce")
    except (ValueError, OverflowError, TypeError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def to_text(value: Any) -> str:
    """String form used for keys and text matching."""
    if _is_missing(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Row normalisation
# ---------------------------------------------------------------------------

def _plain_scalar(value: Any) -> Any:
    if _is_missing(value):
        return None
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        out = float(value)
        return None if math.isnan(out) or math.isinf(out) else out
    if isinstance(value, float) and math.isinf(value):
        return None
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    return value


def normalize_rows(source: Any) -> List[Row]:
    """Turn a DataFrame or an iterable of mappings into engine rows."""
    if isinstance(source, pd.DataFrame):
        records = df_to_records_safe(source)
    else:
        records = [dict(r) for r in source]
    return [{str(k): _plain_scalar(v) for k, v in rec.items()} for rec in records]


def column_names(rows: Sequence[Row]) -> List[str]:
    """Column names in first-seen order across all rows."""
    seen: Dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Type inference
# ---------------------------------------------------------------------------

def infer_column_type(rows: Iterable[Row], column: str, *, sample: int = TYPE_SAMPLE_ROWS) -> ColumnType:
    """Classify a column as numeric, date or categorical from a leading sample.

    Numeric detection is lenient (currency, percentages and k/M/B suffixes
    count) because it only drives labelling, never aggregation.
    """
    values = []
    for i, row in enumerate(rows):
        if i >= sample:
            break
        v = row.get(column)
        if not is_blank(v):
            values.append(v)
    if not values:
        return ColumnType.empty

    numeric = sum(1 for v in values if not math.isnan(smart_numeric_value(v)))
    if numeric / len(values) >= TYPE_RATIO:
        return ColumnType.numeric

    dated = sum(1 for v in values if not isinstance(v, (int, float)) and to_date(v) is not None)
    if dated / len(values) >= TYPE_RATIO:
        return ColumnType.date
    return ColumnType.categorical
