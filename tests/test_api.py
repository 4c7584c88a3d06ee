import pytest
from fastapi.testclient import TestClient

import api.main as api_main
from api.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_meta_dimensions(client):
    response = client.get("/meta/dimensions")
    assert response.status_code == 200
    body = response.json()
    ids = [d["id"] for d in body["dimensions"]]
    assert ids[0] == "brand"
    assert "gross_sales_value" in ids
    assert "market" in body["filterable"]


def test_meta_guidance(client):
    body = client.get("/meta/guidance").json()
    assert [g["label"] for g in body["guidance"]][:2] == ["TRENDS", "VOL LY"]


def test_meta_values(client, sales_records):
    body = client.post("/meta/values", json={"records": sales_records}).json()
    brand = next(d for d in body["dimensions"] if d["id"] == "brand")
    assert brand["values"] == ["Acme", "Zenith"]


def test_report_endpoint(client, record):
    records = [record(market="NY", case_equivalent_volume=100), record(market="CA", case_equivalent_volume=200)]
    response = client.post("/report", json={"records": records})
    assert response.status_code == 200
    result = response.json()["result"]
    assert result == {"rows": [], "columns": [], "data": [[300.0]], "value_format": "number"}


def test_report_endpoint_invalid_measure(client, sales_records):
    body = client.post("/report", json={"records": sales_records, "measure": "brand"}).json()
    assert body["result"]["data"] == [[]]
    assert body["empty"] is True


def test_summary_endpoint_with_custom_guidance(client, sales_records):
    guidance = {
        "id": 10,
        "label": "GSV vs LY",
        "value": {"expression": "gross_sales_value - py_gross_sales_value"},
        "calculation": {"type": "difference"},
    }
    response = client.post(
        "/summary", json={"records": sales_records, "guidance": [guidance], "row_guidance": [guidance]}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["guidance"]["brand:Acme"]["10"]["total"] == 650
    assert body["guidance"]["total"]["10"]["monthly"]["MAR"] == 200


def test_summary_endpoint_defaults_to_catalog(client, sales_records):
    body = client.post("/summary", json={"records": sales_records}).json()
    assert set(body["guidance"]["total"]) == {"1", "2", "3", "4", "5", "6", "9"}


def test_guidance_evaluate_endpoint(client, record):
    payload = {
        "record": record(months={"JAN": 100, "FEB": 150}, py_case_equivalent_volume_months={"JAN": 80, "FEB": 0}),
        "guidance": {
            "id": 4,
            "label": "VOL % vs LY",
            "value": {"numerator": "case_equivalent_volume - py_case_equivalent_volume", "denominator": "py_case_equivalent_volume"},
            "calculation": {"type": "percentage", "format": "percent"},
        },
        "monthly": True,
    }
    body = client.post("/guidance/evaluate", json=payload).json()
    assert body["id"] == "4"
    assert body["kind"] == "percentage"
    assert body["total"] == 0
    assert body["monthly"]["JAN"] == 0.25
    assert body["monthly"]["FEB"] == 0


def test_unexpected_error_returns_500(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("kaput")

    monkeypatch.setattr(api_main, "compute_report", boom)
    response = client.post("/report", json={"records": []})
    assert response.status_code == 500
    assert response.json() == {"error": "kaput", "type": "RuntimeError"}


def test_guidance_evaluate_returns_multi_parts(client, record):
    payload = {
        "record": record(cy_3m_case_equivalent_volume=60, py_3m_case_equivalent_volume=80),
        "guidance": {
            "id": 1,
            "label": "TRENDS",
            "calculation": {
                "type": "multi_calc",
                "subCalculations": [
                    {"id": "3M", "cyField": "cy_3m_case_equivalent_volume", "pyField": "py_3m_case_equivalent_volume"},
                    {"id": "6M", "cyField": "cy_6m_case_equivalent_volume", "pyField": "py_6m_case_equivalent_volume"},
                ],
            },
        },
    }
    body = client.post("/guidance/evaluate", json=payload).json()
    assert body["kind"] == "multi_calc"
    assert body["total"] == 0
    assert body["multi"] == {"3M": -0.25, "6M": 0}
