"""
Core Pydantic models for the dashboard engine.

All domain types live here so every module shares the same vocabulary.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Chart configuration
# ---------------------------------------------------------------------------

class ChartType(str, Enum):
    bar = "bar"
    line = "line"
    pie = "pie"
    area = "area"
    scatter = "scatter"
    radar = "radar"
    funnel = "funnel"
    treemap = "treemap"
    heatmap = "heatmap"
    gantt = "gantt"
    kpi = "kpi"
    value_summary = "value-summary"


class KpiAggregation(str, Enum):
    sum = "sum"
    average = "average"
    count = "count"
    min = "min"
    max = "max"


# (dimensions, minimum measures, maximum measures or None for unbounded)
CHART_ARITY: Dict[ChartType, Tuple[int, int, Optional[int]]] = {
    ChartType.bar: (1, 1, None),
    ChartType.line: (1, 1, None),
    ChartType.area: (1, 1, None),
    ChartType.radar: (1, 1, None),
    ChartType.pie: (1, 1, 1),
    ChartType.funnel: (1, 1, 1),
    ChartType.treemap: (1, 1, 1),
    ChartType.scatter: (0, 2, 2),
    ChartType.heatmap: (2, 1, 1),
    ChartType.gantt: (1, 2, 2),
    ChartType.kpi: (0, 1, 1),
    ChartType.value_summary: (1, 0, 0),
}

# Kinds whose grouped rows collapse to {name, value} pairs.
NAME_VALUE_CHARTS = {ChartType.pie, ChartType.funnel, ChartType.treemap}


class DashboardChart(BaseModel):
    id: str = Field(default_factory=lambda: f"chart_{uuid.uuid4().hex[:12]}")
    title: str = ""
    chart_type: ChartType = ChartType.bar
    dimension: str = ""
    dimension2: Optional[str] = None
    measures: List[str] = Field(default_factory=list)
    is_stacked: Optional[bool] = None
    is_donut: Optional[bool] = None
    kpi_target: Optional[float] = None
    kpi_aggregation: Optional[KpiAggregation] = None


def is_complete(chart: DashboardChart) -> bool:
    """True when every slot the chart kind requires is filled."""
    dims, min_measures, _ = CHART_ARITY[chart.chart_type]
    if dims >= 1 and not chart.dimension:
        return False
    if dims >= 2 and not chart.dimension2:
        return False
    filled = [m for m in chart.measures if m]
    return len(filled) >= min_measures


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ResultStatus(str, Enum):
    ok = "ok"
    empty = "empty"
    incomplete = "incomplete"


class HeatmapCell(BaseModel):
    x: Any = None
    y: Any = None
    value: float = 0.0


class HeatmapResult(BaseModel):
    matrix: List[List[HeatmapCell]] = Field(default_factory=list)
    y_labels: List[Any] = Field(default_factory=list)
    x_labels: List[Any] = Field(default_factory=list)
    min: float = 0.0
    max: float = 0.0
    measure_key: str = ""


class GanttEntry(BaseModel):
    task: Any
    start_padding: float        # ms since the anchor
    duration: float             # ms
    start_date: str
    end_date: str


class GanttResult(BaseModel):
    anchor: Optional[str] = None
    entries: List[GanttEntry] = Field(default_factory=list)


class KpiResult(BaseModel):
    label: str = ""
    aggregation: KpiAggregation = KpiAggregation.sum
    value: float = 0.0
    target: Optional[float] = None
    target_progress: Optional[float] = None
    is_currency: bool = False


class ValueSummaryEntry(BaseModel):
    value: str
    count: int


class ChartResult(BaseModel):
    chart_id: str
    chart_type: ChartType
    status: ResultStatus = ResultStatus.ok
    data: Any = None
    row_count: int = 0
    total: Optional[float] = None         # donut centre label
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Column profile
# ---------------------------------------------------------------------------

class ColumnType(str, Enum):
    numeric = "numeric"
    date = "date"
    categorical = "categorical"
    empty = "empty"


class ColumnCompleteness(BaseModel):
    column: str
    total_rows: int
    non_empty_rows: int
    blank_rows: int
    filled_pct: float
    blank_pct: float


class ColumnInfo(BaseModel):
    name: str
    inferred_type: ColumnType = ColumnType.categorical
    completeness: ColumnCompleteness
    cardinality: int = 0
    examples: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Templates & persistence
# ---------------------------------------------------------------------------

class TemplateField(BaseModel):
    key: str
    label: str
    description: str = ""
    type: str = "dimension"               # dimension | measure | time


class TemplateChart(BaseModel):
    title: str
    chart_type: ChartType
    dimension_key: str = ""
    dimension2_key: Optional[str] = None
    measure_keys: List[str] = Field(default_factory=list)
    is_stacked: Optional[bool] = None
    is_donut: Optional[bool] = None
    kpi_target: Optional[float] = None
    kpi_aggregation: Optional[KpiAggregation] = None


class Template(BaseModel):
    id: str
    name: str
    description: str = ""
    required_fields: List[TemplateField] = Field(default_factory=list)
    charts: List[TemplateChart] = Field(default_factory=list)


class SavedDashboard(BaseModel):
    id: str = Field(default_factory=lambda: f"dashboard_{uuid.uuid4().hex[:12]}")
    name: str = ""
    charts: List[DashboardChart] = Field(default_factory=list)
    created_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")
    data: Optional[List[Dict[str, Any]]] = None
    file_headers: Optional[List[str]] = None
    is_snapshot: bool = False


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class KpiRequest(BaseModel):
    measure: str
    aggregation: KpiAggregation = KpiAggregation.sum
    target: Optional[float] = None
    title: str = ""


class ValueSummaryRequest(BaseModel):
    column: str
    sort_key: str = "count"               # value | count
    direction: str = "descending"         # ascending | descending


class SearchRequest(BaseModel):
    query: str
    reset: bool = False
    page: int = 1
    per_page: Optional[int] = None


class DashboardBuildRequest(BaseModel):
    charts: List[DashboardChart]
    full_data: bool = False
