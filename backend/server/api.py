"""
Dashboard API routes, mounted as a sub-router on the main FastAPI app.

Charts build synchronously by default: POST /api/datasets/{name}/charts
returns the ChartResult. With ?stream=1 the build runs in the background and
GET /api/runs/{run_id}/events streams its progress over SSE.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from fastapi import APIRouter, HTTPException, Query, Request

from core.config import get_settings
from core.dashboards import get_store
from core.errors import DashboardExists, DashboardNotFound, DatasetNotFound, InvalidDashboard
from core.models import (
    ChartType,
    DashboardBuildRequest,
    DashboardChart,
    KpiRequest,
    SavedDashboard,
    SearchRequest,
    ValueSummaryRequest,
)
from core.storage import add_dataset, get_columns, get_rows, get_scanner
from core.templates import TEMPLATES, charts_from_template, get_template
from core.values import Row, column_names, normalize_rows
from engine.build import build_chart, is_large
from engine.chunking import run_sync
from engine.profile import column_completeness, profile_columns, suggest_slots
from engine.search import paginate
from engine.value_summary import ValueTabulator, next_sort, sort_summary
from server.runs import REGISTRY, run_chart, run_chart_stream, slot_key
from server.sse import SSEChannel, SSEEvent, EVT_RESULT, sse_response

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["dashboard"])

# Track active SSE channels for streaming runs
_active_channels: Dict[str, SSEChannel] = {}


def _require_session_id(request: Request) -> str:
    sid = request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header.")
    return sid


def _rows(sid: str, name: str) -> List[Row]:
    try:
        return get_rows(sid, name)
    except DatasetNotFound:
        raise HTTPException(status_code=404, detail=f"Dataset '{name}' not found")


def _columns(sid: str, name: str) -> List[str]:
    rows = _rows(sid, name)
    return get_columns(sid, name) or column_names(rows)


def _require_column(sid: str, name: str, column: str) -> None:
    if column not in _columns(sid, name):
        raise HTTPException(status_code=404, detail=f"Column '{column}' not found in '{name}'")


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------

@router.get("/datasets/{name}/columns")
async def dataset_columns(request: Request, name: str):
    """Column profile plus suggested dimension / measure pickers."""
    sid = _require_session_id(request)
    rows = _rows(sid, name)
    profile = profile_columns(rows, _columns(sid, name))
    return {
        "dataset": name,
        "columns": [c.model_dump() for c in profile],
        "suggested": suggest_slots(profile),
    }


@router.get("/datasets/{name}/columns/{column}/completeness")
async def dataset_column_completeness(request: Request, name: str, column: str):
    sid = _require_session_id(request)
    _require_column(sid, name, column)
    return column_completeness(_rows(sid, name), column).model_dump()


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------

@router.post("/datasets/{name}/charts")
async def build_dataset_chart(
    request: Request,
    name: str,
    chart: DashboardChart,
    full_data: bool = Query(False),
    stream: bool = Query(False),
):
    """
    Build one chart.

    A newer request for the same chart id supersedes this one: a synchronous
    build that loses the race answers 409, a streamed one emits `superseded`.
    """
    sid = _require_session_id(request)
    rows = _rows(sid, name)
    slot = slot_key(sid, name, chart.id)
    ticket = REGISTRY.start(slot)

    if stream:
        channel = SSEChannel(prefix=ticket.run_id)
        _active_channels[ticket.run_id] = channel

        async def _bg():
            try:
                await run_chart_stream(REGISTRY, ticket, chart, rows, channel, full_data=full_data)
            finally:
                _active_channels.pop(ticket.run_id, None)

        asyncio.create_task(_bg())
        return {"run_id": ticket.run_id, "chart_id": chart.id, "streaming": True}

    try:
        result = await run_chart(REGISTRY, ticket, chart, rows, full_data=full_data)
    except Exception as e:
        logger.exception("Chart build failed")
        raise HTTPException(status_code=500, detail=f"Chart build failed: {e}")
    if result is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer request for this chart.")
    return result.model_dump(mode="json")


@router.get("/runs/{run_id}/events")
async def stream_run_events(
    request: Request,
    run_id: str,
    session_id: str = Query(None, alias="session_id"),
):
    """
    SSE endpoint: streams events for a chart run.

    EventSource doesn't support custom headers, so session_id is passed
    as a query parameter.
    """
    sid = session_id or request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing session_id query parameter.")

    channel = _active_channels.get(run_id)
    if channel is None:
        # Run already finished: replay the slot's published result, if any
        slot = REGISTRY.slot_of(run_id)
        latest = REGISTRY.latest(slot) if slot else None
        if latest is None:
            raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found.")

        async def _completed():
            yield SSEEvent(
                event=EVT_RESULT,
                data={"run_id": run_id, "result": latest.model_dump(mode="json")},
            ).format()

        return sse_response(_completed())

    async def _stream():
        async for event_str in channel:
            yield event_str

    return sse_response(_stream())


@router.post("/datasets/{name}/dashboard")
async def build_dashboard(request: Request, name: str, body: DashboardBuildRequest):
    """Build every chart of a dashboard in order."""
    sid = _require_session_id(request)
    rows = _rows(sid, name)
    settings = get_settings()

    results = []
    for chart in body.charts:
        try:
            result = await build_chart(chart, rows, settings=settings, full_data=body.full_data)
        except Exception as e:
            logger.exception("Dashboard chart '%s' failed", chart.title)
            raise HTTPException(status_code=500, detail=f"Chart '{chart.title}' failed: {e}")
        results.append(result.model_dump(mode="json"))

    return {
        "dataset": name,
        "row_count": len(rows),
        "is_large": is_large(rows, settings),
        "preview_rows": min(len(rows), settings.max_rows_for_viz) if not body.full_data else len(rows),
        "charts": results,
    }


@router.post("/datasets/{name}/kpi")
async def build_kpi(request: Request, name: str, body: KpiRequest):
    sid = _require_session_id(request)
    _require_column(sid, name, body.measure)
    chart = DashboardChart(
        title=body.title or body.measure,
        chart_type=ChartType.kpi,
        measures=[body.measure],
        kpi_target=body.target,
        kpi_aggregation=body.aggregation,
    )
    result = await build_chart(chart, _rows(sid, name))
    return result.model_dump(mode="json")


@router.post("/datasets/{name}/value-summary")
async def build_value_summary(request: Request, name: str, body: ValueSummaryRequest):
    sid = _require_session_id(request)
    _require_column(sid, name, body.column)
    rows = _rows(sid, name)

    entries = run_sync(ValueTabulator(rows, body.column, get_settings().calc_chunk_size))
    try:
        entries = sort_summary(entries, body.sort_key, body.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "column": body.column,
        "total_rows": len(rows),
        "entries": [e.model_dump() for e in entries],
        "sort": {"key": body.sort_key, "direction": body.direction},
        "next_sort": {
            key: dict(zip(("key", "direction"), next_sort((body.sort_key, body.direction), key)))
            for key in ("value", "count")
        },
    }


@router.post("/datasets/{name}/search")
async def search_rows(request: Request, name: str, body: SearchRequest):
    """
    Scan the next chunk of rows for `query` and return the requested page of
    matches found so far. Call again until `complete` is true.
    """
    sid = _require_session_id(request)
    _rows(sid, name)
    settings = get_settings()

    scanner = get_scanner(sid, name, settings.search_chunk_size)
    if body.reset:
        scanner.reset(body.query)
    status = scanner.scan(body.query)
    page = paginate(scanner.matches, body.page, body.per_page or settings.results_per_page)

    return {
        "query": status.query,
        "progress": status.progress,
        "complete": status.complete,
        "scanned": status.cursor,
        "total_rows": status.total,
        "new_matches": status.new_matches,
        "match_count": status.match_count,
        "page": page.to_dict(),
    }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@router.get("/templates")
async def list_templates():
    return {"templates": [t.model_dump() for t in TEMPLATES]}


@router.post("/templates/{template_id}/charts")
async def template_charts(template_id: str, mapping: Dict[str, str]):
    """Resolve a template against a {field_key: column} mapping."""
    template = get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    charts = charts_from_template(template, mapping)
    return {"template": template_id, "charts": [c.model_dump(mode="json") for c in charts]}


# ---------------------------------------------------------------------------
# Saved dashboards
# ---------------------------------------------------------------------------

@router.get("/dashboards")
async def list_dashboards():
    return {"dashboards": get_store().list()}


@router.post("/dashboards", status_code=201)
async def create_dashboard(body: SavedDashboard):
    try:
        saved = get_store().create(body)
    except DashboardExists as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidDashboard as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": saved.id, "name": saved.name, "is_snapshot": saved.is_snapshot}


@router.get("/dashboards/{dashboard_id}")
async def get_dashboard(dashboard_id: str):
    try:
        return get_store().get(dashboard_id).model_dump(mode="json")
    except DashboardNotFound:
        raise HTTPException(status_code=404, detail="Dashboard not found")


@router.delete("/dashboards/{dashboard_id}")
async def delete_dashboard(dashboard_id: str):
    try:
        get_store().delete(dashboard_id)
    except DashboardNotFound:
        raise HTTPException(status_code=404, detail="Dashboard not found")
    return {"ok": True, "id": dashboard_id}


@router.post("/dashboards/{dashboard_id}/load")
async def load_dashboard(request: Request, dashboard_id: str):
    """
    Open a saved dashboard in this session.

    Snapshots restore their rows as a new dataset; layouts only return their
    charts for the caller to apply to a dataset of its choice.
    """
    sid = _require_session_id(request)
    try:
        dashboard = get_store().get(dashboard_id)
    except DashboardNotFound:
        raise HTTPException(status_code=404, detail="Dashboard not found")

    table = None
    if dashboard.is_snapshot and dashboard.data is not None:
        rows = normalize_rows(dashboard.data)
        headers = dashboard.file_headers or column_names(rows)
        table = add_dataset(
            sid, dashboard.name or dashboard.id, rows, headers,
            meta={"file_name": dashboard.name, "source": "dashboard", "dashboard_id": dashboard.id},
        )
        logger.info("Restored snapshot %s as dataset %s (%d rows)", dashboard.id, table, len(rows))

    return {
        "id": dashboard.id,
        "name": dashboard.name,
        "is_snapshot": dashboard.is_snapshot,
        "table": table,
        "charts": [c.model_dump(mode="json") for c in dashboard.charts],
    }
