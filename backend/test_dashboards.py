"""
Tests for dashboard persistence and template resolution.
"""

import json

import pytest

from core.dashboards import DashboardStore
from core.errors import DashboardExists, DashboardNotFound, InvalidDashboard
from core.models import ChartType, DashboardChart, SavedDashboard
from core.templates import TEMPLATES, charts_from_template, get_template


@pytest.fixture
def store(tmp_path):
    return DashboardStore(tmp_path / "nested" / "dashboards.json")


def _layout(id="dashboard_a"):
    return SavedDashboard(
        id=id,
        name="Layout A",
        charts=[DashboardChart(chart_type=ChartType.bar, dimension="Region", measures=["Sales"])],
    )


class TestDashboardStore:
    def test_file_created_on_first_read(self, store):
        assert store.list() == []
        assert json.loads(store.path.read_text()) == []

    def test_create_get_delete(self, store):
        store.create(_layout())
        assert store.get("dashboard_a").name == "Layout A"
        store.delete("dashboard_a")
        with pytest.raises(DashboardNotFound):
            store.get("dashboard_a")
        with pytest.raises(DashboardNotFound):
            store.delete("dashboard_a")

    def test_duplicate_id(self, store):
        store.create(_layout())
        with pytest.raises(DashboardExists):
            store.create(_layout())

    def test_invalid(self, store):
        with pytest.raises(InvalidDashboard):
            store.create(SavedDashboard(name="empty"))
        with pytest.raises(InvalidDashboard):
            store.create(_layout().model_copy(update={"is_snapshot": True}))

    def test_list_omits_data(self, store):
        snap = _layout("dashboard_s").model_copy(update={
            "is_snapshot": True,
            "data": [{"Region": "East", "Sales": 1}],
            "file_headers": ["Region", "Sales"],
        })
        store.create(snap)
        (entry,) = store.list()
        assert entry["is_snapshot"] is True
        assert "data" not in entry and "file_headers" not in entry
        assert store.get("dashboard_s").data == [{"Region": "East", "Sales": 1}]

    def test_survives_reopen(self, store):
        store.create(_layout())
        again = DashboardStore(store.path)
        assert [d["id"] for d in again.list()] == ["dashboard_a"]

    def test_unreadable_entries_skipped(self, store):
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(json.dumps([{"id": "x", "charts": "nope"}, _layout().model_dump(mode="json")]))
        assert [d["id"] for d in store.list()] == ["dashboard_a"]


class TestTemplates:
    def test_catalogue_ids(self):
        assert [t.id for t in TEMPLATES] == [
            "sales-analytics",
            "marketing-performance",
            "population-analysis",
            "public-health-analysis",
            "education-statistics",
            "project-management",
        ]

    def test_chart_keys_are_required_fields(self):
        for template in TEMPLATES:
            keys = {f.key for f in template.required_fields}
            for chart in template.charts:
                assert chart.dimension_key in keys
                assert set(chart.measure_keys) <= keys

    def test_unmapped_charts_dropped(self):
        template = get_template("marketing-performance")
        charts = charts_from_template(template, {"channel": "Source", "conversions": "Conv"})
        assert len(charts) == 1
        assert charts[0].chart_type == ChartType.funnel
        assert charts[0].measures == ["Conv"]

    def test_partial_measures_kept(self):
        template = get_template("marketing-performance")
        charts = charts_from_template(template, {"campaignDate": "Date", "clicks": "Clicks"})
        assert [(c.dimension, c.measures) for c in charts] == [("Date", ["Clicks"])]

    def test_fresh_ids(self):
        template = get_template("project-management")
        mapping = {"taskName": "Task", "startDate": "Start", "endDate": "End", "status": "Status"}
        first = charts_from_template(template, mapping)
        second = charts_from_template(template, mapping)
        assert len(first) == 2
        assert {c.id for c in first}.isdisjoint(c.id for c in second)
        assert get_template("nope") is None
