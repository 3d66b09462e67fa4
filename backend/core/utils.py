"""
Shared utility helpers.

Pure functions — no I/O, no side effects.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd


# ---------------------------------------------------------------------------
# DataFrame safety
# ---------------------------------------------------------------------------

def df_json_safe(df: pd.DataFrame) -> pd.DataFrame:
    """Replace +/-inf -> NaN, then NaN -> None so JSON serialization works."""
    if df.empty:
        return df
    tmp = df.replace([np.inf, -np.inf], np.nan)
    tmp = tmp.astype(object)
    return tmp.where(pd.notna(tmp), None)


def df_to_records_safe(df: pd.DataFrame) -> list[dict]:
    """Convert DataFrame to list of dicts with JSON-safe values."""
    return df_json_safe(df).to_dict(orient="records")


# ---------------------------------------------------------------------------
# Header normalisation
# ---------------------------------------------------------------------------

def dedupe_headers(headers: Iterable[Any]) -> List[Optional[str]]:
    """Trim headers and make them unique.

    Repeats become ``"Name (2)"``, ``"Name (3)"``, skipping any suffix that is
    already taken; blank headers map to None so callers can drop those columns.
    """
    texts = [
        "" if raw is None or (isinstance(raw, float) and math.isnan(raw)) else str(raw).strip()
        for raw in headers
    ]
    counts: Dict[str, int] = {}
    used = {t for t in texts if t}
    taken = set()
    out: List[Optional[str]] = []
    for text in texts:
        if not text or text.lower().startswith("unnamed:"):
            out.append(None)
            continue
        if text not in taken:
            taken.add(text)
            out.append(text)
            continue
        n = counts.get(text, 1) + 1
        while f"{text} ({n})" in used or f"{text} ({n})" in taken:
            n += 1
        counts[text] = n
        name = f"{text} ({n})"
        taken.add(name)
        out.append(name)
    return out


# ---------------------------------------------------------------------------
# Smart numeric parsing (currency, SI suffixes, percentages)
# ---------------------------------------------------------------------------

_SUFFIX_MAP = {
    "k": 1_000.0,
    "m": 1_000_000.0,
    "mm": 1_000_000.0,
    "b": 1_000_000_000.0,
    "bn": 1_000_000_000.0,
    "t": 1_000_000_000_000.0,
}


def smart_numeric_value(val) -> float:
    """Parse a single value that might be currency, SI-suffixed, or percentage."""
    if val is None:
        return np.nan
    if isinstance(val, bool):
        return np.nan
    if isinstance(val, (int, float)):
        return float(val)
    text = str(val).strip()
    if not text:
        return np.nan
    text = text.replace(",", "").replace("$", "").replace("€", "").replace("£", "")
    if text.endswith("%"):
        inner = text[:-1].strip()
        try:
            return float(inner) / 100.0
        except ValueError:
            return np.nan
    lower = text.lower()
    if lower in {"n/a", "na", "nan", "none", "null", "-", "--", "—"}:
        return np.nan

    for suffix in sorted(_SUFFIX_MAP.keys(), key=len, reverse=True):
        if lower.endswith(suffix):
            num_part = text[: -len(suffix)]
            try:
                return float(num_part) * _SUFFIX_MAP[suffix]
            except ValueError:
                return np.nan

    try:
        return float(text)
    except ValueError:
        return np.nan


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def pct(n: int, d: int, digits: int = 2) -> float:
    """Percentage rounded to *digits*; zero-safe."""
    return 0.0 if d <= 0 else round(100.0 * n / d, digits)


def example_values(values: Iterable[Any], k: int = 3) -> List[str]:
    """Return up to *k* unique non-null example values as short strings."""
    seen: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v)[:80]
        if s not in seen:
            seen.append(s)
        if len(seen) >= k:
            break
    return seen
