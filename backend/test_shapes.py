"""
Tests for heatmap, gantt and scatter shapes.
"""

import pytest

from engine.shapes import build_gantt, build_heatmap, build_scatter

DAY_MS = 24 * 60 * 60 * 1000


class TestGantt:
    def test_end_before_start_is_dropped(self):
        rows = [
            {"Task": "Design", "Start": "2024-01-10", "End": "2024-01-05"},
            {"Task": "Build", "Start": "2024-02-01", "End": "2024-02-03"},
        ]
        gantt = build_gantt(rows, "Task", "Start", "End")
        assert len(gantt.entries) == 1
        entry = gantt.entries[0]
        assert entry.task == "Build"
        assert entry.start_padding == 0
        assert entry.duration == 2 * DAY_MS
        assert (entry.start_date, entry.end_date) == ("2024-02-01", "2024-02-03")

    def test_anchor_is_earliest_start(self):
        rows = [
            {"Task": "B", "Start": "2024-01-03", "End": "2024-01-04"},
            {"Task": "A", "Start": "2024-01-01", "End": "2024-01-01"},
        ]
        gantt = build_gantt(rows, "Task", "Start", "End")
        assert gantt.anchor.startswith("2024-01-01")
        assert [e.start_padding for e in gantt.entries] == [2 * DAY_MS, 0]
        assert gantt.entries[1].duration == 0

    @pytest.mark.parametrize("row", [
        {"Task": "", "Start": "2024-01-01", "End": "2024-01-02"},
        {"Task": None, "Start": "2024-01-01", "End": "2024-01-02"},
        {"Task": "X", "Start": "someday", "End": "2024-01-02"},
        {"Task": "X", "Start": "2024-01-01", "End": None},
    ])
    def test_invalid_rows_give_empty_result(self, row):
        gantt = build_gantt([row], "Task", "Start", "End")
        assert gantt.entries == []
        assert gantt.anchor is None


class TestHeatmap:
    @pytest.fixture
    def rows(self):
        return [
            {"Region": "West", "Quarter": "Q1", "Sales": 10},
            {"Region": "East", "Quarter": "Q2", "Sales": 5},
            {"Region": "East", "Quarter": "Q1", "Sales": "x"},
            {"Region": "East", "Quarter": "Q1", "Sales": 7},
            {"Region": None, "Quarter": "Q2", "Sales": 1},
        ]

    def test_labels_sorted_and_na(self, rows):
        hm = build_heatmap(rows, "Region", "Quarter", "Sales")
        assert hm.y_labels == ["East", "N/A", "West"]
        assert hm.x_labels == ["Q1", "Q2"]
        assert hm.measure_key == "Sales"

    def test_cells_sum_and_fill_zero(self, rows):
        hm = build_heatmap(rows, "Region", "Quarter", "Sales")
        values = [[c.value for c in line] for line in hm.matrix]
        assert values == [[7.0, 5.0], [0.0, 1.0], [10.0, 0.0]]
        assert (hm.min, hm.max) == (0.0, 10.0)
        assert hm.matrix[0][1].x == "Q2" and hm.matrix[0][1].y == "East"

    def test_empty(self):
        hm = build_heatmap([], "a", "b", "c")
        assert hm.matrix == [] and hm.min == 0.0 and hm.max == 0.0


class TestScatter:
    def test_points_coerce_with_zero_fallback(self):
        rows = [{"x": "3", "y": 4, "name": "a"}, {"x": "bad", "y": None, "name": "b"}]
        assert build_scatter(rows, "x", "y") == [{"x": 3.0, "y": 4.0}, {"x": 0.0, "y": 0.0}]
        assert build_scatter(rows, "x", "y", "name")[1] == {"name": "b", "x": 0.0, "y": 0.0}
