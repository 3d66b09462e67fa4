"""
Tests for the resumable row scanner and result pagination.
"""

import pytest

from engine.search import RowScanner, full_scan, paginate, row_matches


@pytest.fixture
def five_rows():
    return [
        {"id": 1, "name": "Alpha widget"},
        {"id": 2, "name": "Beta"},
        {"id": 3, "name": "Gamma"},
        {"id": 4, "name": "WIDGET delta"},
        {"id": 5, "name": "Epsilon"},
    ]


class TestRowScanner:
    def test_three_calls_over_five_rows(self, five_rows):
        scanner = RowScanner(five_rows, chunk_size=2)

        first = scanner.scan("widget")
        assert (first.cursor, first.new_matches, first.complete) == (2, 1, False)

        second = scanner.scan("widget")
        assert (second.cursor, second.new_matches) == (4, 1)

        third = scanner.scan("widget")
        assert third.cursor == len(five_rows)
        assert third.complete
        assert third.progress == 100
        assert [r["id"] for r in scanner.matches] == [1, 4]

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 7])
    @pytest.mark.parametrize("query", ["a", "widget", "ELTA", "5", "zzz"])
    def test_resumable_equals_full_scan(self, five_rows, chunk_size, query):
        scanner = RowScanner(five_rows, chunk_size)
        while not scanner.scan(query).complete:
            pass
        assert scanner.matches == full_scan(five_rows, query)

    def test_new_query_restarts(self, five_rows):
        scanner = RowScanner(five_rows, chunk_size=2)
        scanner.scan("widget")
        status = scanner.scan("gamma")
        assert status.cursor == 2
        assert status.match_count == 0
        assert scanner.query == "gamma"

    def test_empty_query_does_nothing(self, five_rows):
        scanner = RowScanner(five_rows, chunk_size=2)
        status = scanner.scan("")
        assert status.cursor == 0 and status.match_count == 0

    def test_scan_after_complete_is_stable(self, five_rows):
        scanner = RowScanner(five_rows, chunk_size=10)
        scanner.scan("a")
        before = list(scanner.matches)
        status = scanner.scan("a")
        assert status.new_matches == 0
        assert scanner.matches == before

    def test_skips_null_fields(self):
        assert not row_matches({"a": None, "b": ""}, "none")
        assert row_matches({"a": 12.0}, "12")


class TestPaginate:
    def test_pages(self):
        items = list(range(120))
        page = paginate(items, page=3, per_page=50)
        assert page.items == list(range(100, 120))
        assert page.total_pages == 3
        assert page.to_dict()["total"] == 120

    def test_out_of_range_and_empty(self):
        assert paginate(list(range(10)), page=5, per_page=4).items == []
        empty = paginate([], page=1, per_page=50)
        assert empty.total_pages == 0 and empty.items == []
        assert paginate([1, 2], page=0, per_page=0).page == 1
