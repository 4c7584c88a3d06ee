from __future__ import annotations

import pytest


def make_record(**fields):
    base = {
        "brand": "Acme",
        "variant": "X",
        "market": "NY",
        "customer": "Store 1",
        "variant_size_pack_desc": "X 750ml 6pk",
        "year": 2025,
        "data_type": "forecast",
    }
    base.update(fields)
    return base


@pytest.fixture
def scenario_a_records():
    return [
        make_record(month=1, case_equivalent_volume=100, data_type="actual_complete"),
        make_record(month=2, case_equivalent_volume=150, data_type="forecast"),
    ]


@pytest.fixture
def sales_records():
    return [
        make_record(
            month=1,
            data_type="actual_complete",
            case_equivalent_volume=100,
            py_case_equivalent_volume=80,
            gross_sales_value=1000,
            py_gross_sales_value=720,
        ),
        make_record(
            month=2,
            case_equivalent_volume=150,
            py_case_equivalent_volume=120,
            gross_sales_value=1500,
            py_gross_sales_value=1080,
        ),
        make_record(
            market="CA",
            variant="Y",
            variant_id="v-y",
            month=1,
            data_type="actual_complete",
            case_equivalent_volume=40,
            py_case_equivalent_volume=50,
            gross_sales_value=400,
            py_gross_sales_value=450,
        ),
        make_record(
            brand="Zenith",
            variant="Z",
            market="CA",
            month=3,
            case_equivalent_volume=10,
            py_case_equivalent_volume=0,
            gross_sales_value=200,
            py_gross_sales_value=0,
        ),
    ]


@pytest.fixture
def record():
    return make_record
