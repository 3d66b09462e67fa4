"""
Chart runs and supersession.

Every chart on screen owns a *slot* (session, dataset, chart id). Starting a
run for a slot makes every earlier run for that slot stale: the stale run
stops at its next chunk boundary and its result is never published. Only the
latest run's result is kept per slot.
"""

from __future__ import annotations

import itertools
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from core.config import Settings, get_settings
from core.models import ChartResult, ChartType, DashboardChart
from core.values import Row
from engine.build import build_chart, is_large
from engine.chunking import RunSuperseded
from server.sse import (
    SSEChannel,
    EVT_ERROR,
    EVT_PROGRESS,
    EVT_RESULT,
    EVT_RUN_STARTED,
    EVT_SUPERSEDED,
    EVT_WARNING,
)

logger = logging.getLogger("uvicorn.error")

MAX_RESULTS = 256


def slot_key(session_id: str, dataset: str, chart_id: str) -> str:
    return f"{session_id}:{dataset}:{chart_id}"


@dataclass(frozen=True)
class RunTicket:
    slot: str
    seq: int
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class RunRegistry:
    """
    Tracks the newest run per slot and the last result it published.

    A slot stays in ``_current`` only while its newest run is in flight.
    Published results and the run_id -> slot index are LRU-bounded by
    *max_results* so late subscribers can still replay recent results.
    """

    def __init__(self, max_results: int = MAX_RESULTS) -> None:
        self._seq = itertools.count(1)
        self._max = max_results
        self._current: Dict[str, int] = {}
        self._results: "OrderedDict[str, ChartResult]" = OrderedDict()
        self._runs: "OrderedDict[str, str]" = OrderedDict()

    def start(self, slot: str) -> RunTicket:
        ticket = RunTicket(slot=slot, seq=next(self._seq))
        self._current[slot] = ticket.seq
        self._runs[ticket.run_id] = slot
        if len(self._runs) > self._max:
            self._runs.popitem(last=False)
        return ticket

    def is_current(self, ticket: RunTicket) -> bool:
        return self._current.get(ticket.slot) == ticket.seq

    def publish(self, ticket: RunTicket, result: ChartResult) -> bool:
        """Store *result* for the slot; a stale ticket is refused."""
        if not self.is_current(ticket):
            return False
        self._results[ticket.slot] = result
        self._results.move_to_end(ticket.slot)
        if len(self._results) > self._max:
            self._results.popitem(last=False)
        return True

    def latest(self, slot: str) -> Optional[ChartResult]:
        return self._results.get(slot)

    def slot_of(self, run_id: str) -> Optional[str]:
        return self._runs.get(run_id)

    def finish(self, ticket: RunTicket) -> None:
        # older runs of the slot stay stale: their seq never matches a missing entry
        if self.is_current(ticket):
            del self._current[ticket.slot]

    def in_flight(self) -> int:
        return len(self._current)


REGISTRY = RunRegistry()


async def run_chart(
    registry: RunRegistry,
    ticket: RunTicket,
    chart: DashboardChart,
    rows: Sequence[Row],
    *,
    settings: Optional[Settings] = None,
    full_data: bool = False,
) -> Optional[ChartResult]:
    """Build and publish without a channel. Returns None when superseded."""
    try:
        result = await build_chart(
            chart, rows,
            settings=settings, full_data=full_data,
            is_current=lambda: registry.is_current(ticket),
        )
        return result if registry.publish(ticket, result) else None
    except RunSuperseded:
        logger.info("Run %s for %s superseded", ticket.run_id, ticket.slot)
        return None
    finally:
        registry.finish(ticket)


async def run_chart_stream(
    registry: RunRegistry,
    ticket: RunTicket,
    chart: DashboardChart,
    rows: Sequence[Row],
    channel: SSEChannel,
    *,
    settings: Optional[Settings] = None,
    full_data: bool = False,
) -> None:
    """
    Build one chart in the background, streaming events to *channel*.

    Events: run_started, progress (0-100), then exactly one of result,
    superseded or error. The channel is always closed at the end.
    """
    settings = settings or get_settings()

    async def on_progress(value: int) -> None:
        await channel.emit(EVT_PROGRESS, {"run_id": ticket.run_id, "progress": value})

    logger.info("Run %s started for %s (%s)", ticket.run_id, ticket.slot, chart.chart_type.value)
    try:
        await channel.emit(EVT_RUN_STARTED, {
            "run_id": ticket.run_id,
            "chart_id": chart.id,
            "chart_type": chart.chart_type.value,
            "row_count": len(rows),
        })
        previewed = chart.chart_type not in (ChartType.kpi, ChartType.value_summary)
        if previewed and is_large(rows, settings) and not full_data:
            await channel.emit(EVT_WARNING, {
                "message": (
                    f"Large dataset ({len(rows):,} rows): showing a quick preview of the "
                    f"first {settings.max_rows_for_viz:,} rows."
                ),
            })

        result = await build_chart(
            chart, rows,
            settings=settings, full_data=full_data,
            on_progress=on_progress,
            is_current=lambda: registry.is_current(ticket),
        )
        if not registry.publish(ticket, result):
            raise RunSuperseded()
        logger.info("Run %s for %s complete (%s, %d rows)", ticket.run_id, ticket.slot, result.status.value, result.row_count)
        await channel.emit(EVT_RESULT, {"run_id": ticket.run_id, "result": result.model_dump(mode="json")})
    except RunSuperseded:
        logger.info("Run %s for %s superseded", ticket.run_id, ticket.slot)
        await channel.emit(EVT_SUPERSEDED, {"run_id": ticket.run_id})
    except Exception as e:
        logger.exception("Chart run %s failed", ticket.run_id)
        await channel.emit(EVT_ERROR, {"run_id": ticket.run_id, "message": str(e)})
    finally:
        registry.finish(ticket)
        await channel.close()
