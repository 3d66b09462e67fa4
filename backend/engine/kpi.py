"""KPI card reduction: one measure, whole row set, one number."""

from __future__ import annotations

from typing import Optional, Sequence

from core.models import KpiAggregation, KpiResult
from core.values import Row, to_number
from engine.chunking import ChunkedTask

CURRENCY_WORDS = ("revenue", "sale", "income")


class KpiReducer(ChunkedTask):
    """Rolling sum/count/min/max over cells that parse as numbers.

    Non-numeric cells are skipped here, unlike grouped aggregation.
    """

    def __init__(
        self,
        rows: Sequence[Row],
        measure: str,
        aggregation: KpiAggregation = KpiAggregation.sum,
        chunk_size: int = 20000,
    ) -> None:
        super().__init__(rows, chunk_size)
        self.measure = measure
        self.aggregation = KpiAggregation(aggregation)
        self.total_sum = 0.0
        self.contributors = 0
        self.low: Optional[float] = None
        self.high: Optional[float] = None
        if self.aggregation == KpiAggregation.count:
            # count never looks at cell values
            self.index = self.total

    def consume(self, row: Row) -> None:
        v = to_number(row.get(self.measure))
        if v is None:
            return
        self.total_sum += v
        self.contributors += 1
        if self.low is None or v < self.low:
            self.low = v
        if self.high is None or v > self.high:
            self.high = v

    def result(self) -> float:
        agg = self.aggregation
        if agg == KpiAggregation.count:
            return float(self.total)
        if agg == KpiAggregation.sum:
            return self.total_sum
        if agg == KpiAggregation.average:
            return self.total_sum / self.contributors if self.contributors else 0.0
        if agg == KpiAggregation.min:
            return self.low if self.low is not None else 0.0
        return self.high if self.high is not None else 0.0


def target_progress(value: float, target: Optional[float]) -> Optional[float]:
    """Percent of target reached; None without a positive target."""
    if target is None or target <= 0:
        return None
    return value / target * 100


def is_currency_label(title: str) -> bool:
    lower = (title or "").lower()
    return any(word in lower for word in CURRENCY_WORDS)


def kpi_result(
    value: float,
    *,
    aggregation: KpiAggregation,
    target: Optional[float] = None,
    label: str = "",
) -> KpiResult:
    return KpiResult(
        label=label,
        aggregation=aggregation,
        value=value,
        target=target,
        target_progress=target_progress(value, target),
        is_currency=is_currency_label(label),
    )
