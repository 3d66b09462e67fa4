"""
Chart builder.

Takes a DashboardChart + row set -> ChartResult with pre-aggregated data.
The frontend simply renders what it receives.

Chart data contract (ChartResult.data):
- bar / line / area / radar: rows of {dimension: key, measure: sum, ...}
- pie / funnel / treemap: rows of {name, value}; donut pies also set `total`
- heatmap: HeatmapResult
- gantt: GanttResult
- scatter: rows of {x_measure, y_measure}
- kpi: KpiResult
- value-summary: ValueSummaryEntry rows, count-descending

Charts other than KPI and value summary work on the quick-preview slice of a
large dataset unless `full_data` is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from core.config import Settings, get_settings
from core.models import (
    NAME_VALUE_CHARTS,
    ChartResult,
    ChartType,
    DashboardChart,
    GanttResult,
    HeatmapResult,
    KpiAggregation,
    ResultStatus,
    is_complete,
)
from core.values import Row
from engine.aggregate import GroupAggregator, donut_total, to_name_value
from engine.chunking import ChunkedTask, ProgressCallback, RunSuperseded, drive, report_progress, run_sync
from engine.kpi import KpiReducer, kpi_result
from engine.shapes import build_gantt, build_heatmap, build_scatter
from engine.value_summary import ValueTabulator, sort_summary

logger = logging.getLogger("uvicorn.error")

MSG_INCOMPLETE = "Configuration incomplete: fill in the required columns for this chart."
MSG_EMPTY = "Not enough data to display chart."
MSG_GANTT_EMPTY = "Not enough valid data to display Gantt chart. Check start/end dates."


def is_large(rows: Sequence[Row], settings: Settings) -> bool:
    return len(rows) > settings.data_warning_threshold


def viz_rows(rows: Sequence[Row], settings: Settings, full_data: bool = False) -> Sequence[Row]:
    """Rows charts are drawn from: the leading slice of a large dataset unless full_data."""
    if is_large(rows, settings) and not full_data:
        return rows[: settings.max_rows_for_viz]
    return rows


@dataclass
class ChartJob:
    """A chunked task (or None for single-pass shapes) and how to wrap its output."""
    chart: DashboardChart
    row_count: int
    task: Optional[ChunkedTask]
    finish: Callable[[Any], ChartResult]


def _envelope(chart: DashboardChart, data: Any, row_count: int, *, empty_message: str = MSG_EMPTY) -> ChartResult:
    empty = (
        data is None
        or (isinstance(data, list) and not data)
        or (isinstance(data, HeatmapResult) and not data.matrix)
        or (isinstance(data, GanttResult) and not data.entries)
    )
    return ChartResult(
        chart_id=chart.id,
        chart_type=chart.chart_type,
        status=ResultStatus.empty if empty else ResultStatus.ok,
        data=data,
        row_count=row_count,
        message=empty_message if empty else None,
    )


def plan_chart(
    chart: DashboardChart,
    rows: Sequence[Row],
    *,
    settings: Optional[Settings] = None,
    full_data: bool = False,
) -> ChartJob:
    """Pick the computation for a chart kind. Nothing heavy runs here."""
    settings = settings or get_settings()
    kind = chart.chart_type
    measures = [m for m in chart.measures if m]

    if not is_complete(chart):
        def incomplete(_: Any) -> ChartResult:
            return ChartResult(
                chart_id=chart.id,
                chart_type=kind,
                status=ResultStatus.incomplete,
                data=[],
                message=MSG_INCOMPLETE,
            )
        return ChartJob(chart, 0, None, incomplete)

    if kind == ChartType.kpi:
        aggregation = chart.kpi_aggregation or KpiAggregation.sum
        reducer = KpiReducer(rows, measures[0], aggregation, settings.kpi_chunk_size)

        def finish_kpi(value: float) -> ChartResult:
            data = kpi_result(value, aggregation=aggregation, target=chart.kpi_target, label=chart.title)
            return ChartResult(chart_id=chart.id, chart_type=kind, data=data, row_count=len(rows))
        return ChartJob(chart, len(rows), reducer, finish_kpi)

    if kind == ChartType.value_summary:
        tabulator = ValueTabulator(rows, chart.dimension, settings.calc_chunk_size)
        return ChartJob(chart, len(rows), tabulator, lambda entries: _envelope(chart, sort_summary(entries), len(rows)))

    work = viz_rows(rows, settings, full_data)
    n = len(work)

    if kind == ChartType.heatmap:
        return ChartJob(chart, n, None, lambda _: _envelope(
            chart, build_heatmap(work, chart.dimension, chart.dimension2, measures[0]), n))
    if kind == ChartType.gantt:
        return ChartJob(chart, n, None, lambda _: _envelope(
            chart, build_gantt(work, chart.dimension, measures[0], measures[1]), n,
            empty_message=MSG_GANTT_EMPTY))
    if kind == ChartType.scatter:
        return ChartJob(chart, n, None, lambda _: _envelope(
            chart, build_scatter(work, measures[0], measures[1], chart.dimension or None), n))

    aggregator = GroupAggregator(work, chart.dimension, measures, settings.calc_chunk_size)

    def finish_groups(groups: list) -> ChartResult:
        if kind in NAME_VALUE_CHARTS:
            pairs = to_name_value(groups, chart.dimension, measures[0])
            result = _envelope(chart, pairs, n)
            if kind == ChartType.pie and chart.is_donut and pairs:
                result.total = donut_total(pairs)
            return result
        return _envelope(chart, groups, n)
    return ChartJob(chart, n, aggregator, finish_groups)


def build_chart_sync(
    chart: DashboardChart,
    rows: Sequence[Row],
    *,
    settings: Optional[Settings] = None,
    full_data: bool = False,
) -> ChartResult:
    job = plan_chart(chart, rows, settings=settings, full_data=full_data)
    raw = run_sync(job.task) if job.task is not None else None
    return job.finish(raw)


async def build_chart(
    chart: DashboardChart,
    rows: Sequence[Row],
    *,
    settings: Optional[Settings] = None,
    full_data: bool = False,
    on_progress: Optional[ProgressCallback] = None,
    is_current: Optional[Callable[[], bool]] = None,
) -> ChartResult:
    """Build one chart on the event loop, yielding between chunks.

    Raises ``RunSuperseded`` if ``is_current`` turns false before the result
    is ready.
    """
    job = plan_chart(chart, rows, settings=settings, full_data=full_data)
    if job.task is not None:
        raw = await drive(job.task, on_progress=on_progress, is_current=is_current)
        return job.finish(raw)

    result = job.finish(None)
    await report_progress(on_progress, 100)
    if is_current is not None and not is_current():
        raise RunSuperseded()
    logger.debug("Built %s chart '%s' in one pass (%d rows)", chart.chart_type.value, chart.title, job.row_count)
    return result
