"""
End-to-end tests for the HTTP API using FastAPI's TestClient.
"""

import json
import uuid

import pytest
from fastapi.testclient import TestClient

from core.dashboards import DashboardStore, set_store
from main import app

CSV = b"Region,Sales,Sales,\nEast,100,1,x\nWest,50,2,y\nEast,bad,3,z\n"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def headers():
    return {"X-Session-Id": f"test-{uuid.uuid4().hex}"}


@pytest.fixture
def sample(client, headers):
    resp = client.post("/datasets/sample", headers=headers)
    assert resp.status_code == 200
    return resp.json()["table"]


@pytest.fixture
def store(tmp_path):
    s = DashboardStore(tmp_path / "dashboards.json")
    set_store(s)
    return s


def _events(text):
    out = []
    for block in text.strip().split("\n\n"):
        lines = block.split("\n")
        event = next(l[len("event: "):] for l in lines if l.startswith("event: "))
        data = json.loads("\n".join(l[len("data: "):] for l in lines if l.startswith("data: ")))
        out.append((event, data))
    return out


class TestUpload:
    def test_upload_dedupes_headers(self, client, headers):
        resp = client.post("/upload", headers=headers, files={"file": ("sales.csv", CSV, "text/csv")})
        assert resp.status_code == 200
        body = resp.json()
        assert body["table"] == "sales"
        assert body["rows"] == 3
        assert body["columns"] == ["Region", "Sales", "Sales (2)", "_col_4"]

    def test_duplicate_upload_conflict(self, client, headers):
        files = {"file": ("sales.csv", CSV, "text/csv")}
        assert client.post("/upload", headers=headers, files=files).status_code == 200
        dup = client.post("/upload", headers=headers, files=files)
        assert dup.status_code == 409
        assert dup.json()["table"] == "sales"

    def test_missing_session(self, client):
        assert client.get("/datasets").status_code == 400

    def test_uploaded_rows_aggregate(self, client, headers):
        client.post("/upload", headers=headers, files={"file": ("sales.csv", CSV, "text/csv")})
        chart = {"id": "c1", "chart_type": "bar", "dimension": "Region", "measures": ["Sales"]}
        resp = client.post("/api/datasets/sales/charts", headers=headers, json=chart)
        assert resp.status_code == 200
        data = {g["Region"]: g["Sales"] for g in resp.json()["data"]}
        assert data == {"East": 101.0, "West": 50.0}

    def test_infinity_text_is_not_numeric(self, client, headers):
        csv = b"Region,Sales\nEast,100\nEast,inf\nWest,oops\n"
        client.post("/upload", headers=headers, files={"file": ("odd.csv", csv, "text/csv")})
        kpi = client.post("/api/datasets/odd/kpi", headers=headers, json={"measure": "Sales", "aggregation": "max"})
        assert kpi.status_code == 200
        assert kpi.json()["data"]["value"] == 100.0

        chart = {"id": "c_odd", "chart_type": "bar", "dimension": "Region", "measures": ["Sales"]}
        data = client.post("/api/datasets/odd/charts", headers=headers, json=chart).json()["data"]
        assert {g["Region"]: g["Sales"] for g in data} == {"East": 101.0, "West": 1.0}


class TestDatasets:
    def test_list_and_preview(self, client, headers, sample):
        listing = client.get("/datasets", headers=headers).json()["datasets"]
        assert [d["name"] for d in listing] == [sample]

        page = client.get(f"/datasets/{sample}/preview?offset=1&limit=2", headers=headers).json()
        assert page["returned_rows"] == 2
        assert page["rows"][0]["Customer Name"] == "Jane Smith"
        assert page["has_more"] is True
        assert page["next_offset"] == 3

    def test_preview_missing(self, client, headers):
        assert client.get("/datasets/nope/preview", headers=headers).status_code == 404

    def test_columns(self, client, headers, sample):
        body = client.get(f"/api/datasets/{sample}/columns", headers=headers).json()
        assert body["suggested"]["measures"] == ["Quantity", "Unit Price", "Total Sale Amount"]
        country = client.get(f"/api/datasets/{sample}/columns/Country/completeness", headers=headers).json()
        assert country["filled_pct"] == 100.0
        missing = client.get(f"/api/datasets/{sample}/columns/Nope/completeness", headers=headers)
        assert missing.status_code == 404


class TestCharts:
    def test_missing_dataset(self, client, headers):
        chart = {"chart_type": "bar", "dimension": "a", "measures": ["b"]}
        assert client.post("/api/datasets/nope/charts", headers=headers, json=chart).status_code == 404

    def test_kpi(self, client, headers, sample):
        body = {"measure": "Total Sale Amount", "aggregation": "sum", "title": "Total Sale Amount", "target": 4150}
        data = client.post(f"/api/datasets/{sample}/kpi", headers=headers, json=body).json()["data"]
        assert data["value"] == 2075.0
        assert data["target_progress"] == pytest.approx(50.0)
        assert data["is_currency"] is True

    def test_value_summary(self, client, headers, sample):
        body = {"column": "Country"}
        resp = client.post(f"/api/datasets/{sample}/value-summary", headers=headers, json=body).json()
        assert resp["entries"][0] == {"value": "USA", "count": 2}
        assert sum(e["count"] for e in resp["entries"]) == resp["total_rows"] == 4
        assert resp["next_sort"]["value"] == {"key": "value", "direction": "ascending"}

        bad = client.post(
            f"/api/datasets/{sample}/value-summary", headers=headers,
            json={"column": "Country", "sort_key": "size"},
        )
        assert bad.status_code == 400

    def test_search(self, client, headers, sample):
        resp = client.post(f"/api/datasets/{sample}/search", headers=headers, json={"query": "technology"}).json()
        assert resp["complete"] is True
        assert resp["match_count"] == 2
        assert [r["Product"] for r in resp["page"]["items"]] == ["Laptop", "Monitor"]

    def test_dashboard_build(self, client, headers, sample):
        charts = [
            {"chart_type": "pie", "dimension": "Category", "measures": ["Total Sale Amount"], "is_donut": True},
            {"chart_type": "gantt", "dimension": "Product", "measures": []},
        ]
        resp = client.post(f"/api/datasets/{sample}/dashboard", headers=headers, json={"charts": charts}).json()
        pie, gantt = resp["charts"]
        assert pie["total"] == 2075.0
        assert gantt["status"] == "incomplete"
        assert resp["is_large"] is False

    def test_streamed_chart(self, client, headers, sample):
        chart = {"id": "stream_me", "chart_type": "bar", "dimension": "Country", "measures": ["Quantity"]}
        started = client.post(f"/api/datasets/{sample}/charts?stream=1", headers=headers, json=chart).json()
        assert started["streaming"] is True

        resp = client.get(f"/api/runs/{started['run_id']}/events?session_id={headers['X-Session-Id']}")
        assert resp.status_code == 200
        event, data = _events(resp.text)[-1]
        assert event == "result"
        groups = {g["Country"]: g["Quantity"] for g in data["result"]["data"]}
        assert groups == {"USA": 7.0, "Canada": 1.0, "Germany": 2.0}

    def test_unknown_run(self, client, headers):
        assert client.get("/api/runs/nope/events", headers=headers).status_code == 404


class TestTemplates:
    def test_catalogue(self, client):
        templates = client.get("/api/templates").json()["templates"]
        assert len(templates) == 6

    def test_charts_from_mapping(self, client):
        mapping = {"region": "Country", "salesRevenue": "Total Sale Amount", "productCategory": "Category"}
        charts = client.post("/api/templates/sales-analytics/charts", json=mapping).json()["charts"]
        assert [c["title"] for c in charts] == ["Sales Revenue by Region", "Sales by Category"]

    def test_unknown_template(self, client):
        assert client.post("/api/templates/nope/charts", json={}).status_code == 404


class TestDashboards:
    def _snapshot(self):
        return {
            "id": "dashboard_test",
            "name": "Regional",
            "charts": [{"id": "c1", "chart_type": "bar", "dimension": "Region", "measures": ["Sales"]}],
            "data": [{"Region": "East", "Sales": 1}, {"Region": "West", "Sales": 2}],
            "file_headers": ["Region", "Sales"],
            "is_snapshot": True,
        }

    def test_crud(self, client, headers, store):
        assert client.post("/api/dashboards", json=self._snapshot()).status_code == 201
        assert client.post("/api/dashboards", json=self._snapshot()).status_code == 409

        listing = client.get("/api/dashboards").json()["dashboards"]
        assert len(listing) == 1
        assert "data" not in listing[0] and "file_headers" not in listing[0]

        full = client.get("/api/dashboards/dashboard_test").json()
        assert len(full["data"]) == 2

        assert client.delete("/api/dashboards/dashboard_test").status_code == 200
        assert client.delete("/api/dashboards/dashboard_test").status_code == 404
        assert client.get("/api/dashboards/dashboard_test").status_code == 404

    def test_invalid(self, client, store):
        assert client.post("/api/dashboards", json={"name": "No charts"}).status_code == 400

    def test_load_snapshot(self, client, headers, store):
        client.post("/api/dashboards", json=self._snapshot())
        loaded = client.post("/api/dashboards/dashboard_test/load", headers=headers).json()
        assert loaded["table"] == "Regional"

        chart = loaded["charts"][0]
        result = client.post(f"/api/datasets/{loaded['table']}/charts", headers=headers, json=chart).json()
        assert result["data"] == [{"Region": "East", "Sales": 1.0}, {"Region": "West", "Sales": 2.0}]
