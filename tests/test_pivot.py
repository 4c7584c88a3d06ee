import copy

import pytest

from forecast_core.data import MONTH_NAMES
from forecast_core.dimensions import get_dimension
from forecast_core.filters import ReportFilter, normalize_pivot_request
from forecast_core.pivot import aggregate, run_pivot

VOLUME = get_dimension("case_equivalent_volume")
PY_VOLUME = get_dimension("py_case_equivalent_volume")
GSV = get_dimension("gross_sales_value")
MARKET = get_dimension("market")
BRAND = get_dimension("brand")
MONTH = get_dimension("month")
YEAR = get_dimension("year")


def _filter(dim_id, *values):
    return ReportFilter(dimension=get_dimension(dim_id), values=tuple(values))


def test_no_dimensions_sums_everything(record):
    records = [record(market="NY", case_equivalent_volume=100), record(market="CA", case_equivalent_volume=200)]
    result = aggregate(records, [], None, None, VOLUME)
    assert result.rows == []
    assert result.columns == []
    assert result.data == [[300]]
    assert result.value_format == "number"


def test_market_by_month(sales_records):
    result = aggregate(sales_records, [], MARKET, MONTH, VOLUME)
    assert result.rows == ["CA", "NY"]
    assert result.columns == list(MONTH_NAMES)
    ca, ny = result.data
    assert ca[:3] == [40, None, 10]
    assert ny[:3] == [100, 150, None]
    assert all(cell is None for cell in ca[3:] + ny[3:])


def test_month_headers_always_complete(record):
    assert aggregate([], [], MONTH, None, VOLUME).rows == list(MONTH_NAMES)
    sparse = [record(month=7, case_equivalent_volume=5)]
    result = aggregate(sparse, [], MONTH, None, VOLUME)
    assert result.rows == list(MONTH_NAMES)
    assert len(result.data) == 12
    assert result.data[6] == [5]
    assert [row[0] for i, row in enumerate(result.data) if i != 6] == [None] * 11


def test_empty_input_yields_nulls_not_errors():
    result = aggregate([], [_filter("market", "NY")], None, MONTH, VOLUME)
    assert result.rows == []
    assert result.columns == list(MONTH_NAMES)
    assert result.data == [[None] * 12]
    assert result.is_empty


def test_null_only_where_no_records_contribute(record):
    records = [
        record(market="NY", year=2024, case_equivalent_volume=0),
        record(market="CA", year=2025, case_equivalent_volume=5),
    ]
    result = aggregate(records, [], MARKET, YEAR, VOLUME)
    assert result.rows == ["CA", "NY"]
    assert result.columns == ["2024", "2025"]
    assert result.data == [[None, 5], [0, None]]


def test_year_headers_sort_numerically(record):
    records = [record(year=2023, case_equivalent_volume=1), record(year=9, case_equivalent_volume=2)]
    result = aggregate(records, [], YEAR, None, VOLUME)
    assert result.rows == ["9", "2023"]
    assert result.data == [[2], [1]]


def test_other_headers_sort_alphabetically(record):
    records = [record(brand=b, case_equivalent_volume=1) for b in ("Zenith", "Acme", "Monkey")]
    assert aggregate(records, [], None, BRAND, VOLUME).columns == ["Acme", "Monkey", "Zenith"]


def test_filters_are_conjunctive_and_order_independent(sales_records):
    both = [_filter("market", "CA"), _filter("brand", "Acme")]
    forward = aggregate(sales_records, both, None, None, VOLUME)
    backward = aggregate(sales_records, list(reversed(both)), None, None, VOLUME)
    assert forward.data == backward.data == [[40]]

    market_only = aggregate(sales_records, [_filter("market", "NY")], None, None, VOLUME)
    assert market_only.data == [[250]]


def test_filter_without_values_is_ignored(sales_records):
    result = aggregate(sales_records, [_filter("market")], None, None, VOLUME)
    assert result.data == [[300]]


def test_filter_matches_stringified_values(sales_records):
    result = aggregate(sales_records, [_filter("month", "1")], None, None, VOLUME)
    assert result.data == [[140]]


def test_filter_on_absent_field_excludes_record(record):
    records = [record(case_equivalent_volume=1)]
    records[0].pop("customer")
    result = aggregate(records, [_filter("customer", "Store 1")], None, None, VOLUME)
    assert result.data == [[None]]


def test_currency_measure_format(sales_records):
    result = aggregate(sales_records, [_filter("market", "CA")], None, None, GSV)
    assert result.data == [[600]]
    assert result.value_format == "currency"


@pytest.mark.parametrize("measure", [None, BRAND])
def test_invalid_measure_returns_safe_empty_result(sales_records, measure):
    result = aggregate(sales_records, [], MARKET, MONTH, measure)
    assert result.rows == []
    assert result.columns == []
    assert result.data == [[]]


def test_projected_volume_used_for_first_forecast_month(record):
    records = [
        record(month=1, data_type="actual_complete", case_equivalent_volume=100, projected_case_equivalent_volume=999),
        record(month=2, case_equivalent_volume=50, projected_case_equivalent_volume=80),
        record(month=3, case_equivalent_volume=60, projected_case_equivalent_volume=90),
    ]
    result = aggregate(records, [], MONTH, None, VOLUME)
    assert [row[0] for row in result.data[:3]] == [100, 80, 60]


def test_projected_volume_respects_control_manual_and_missing(record):
    records = [
        record(month=1, data_type="actual", case_equivalent_volume=10),
        record(market="A", month=2, case_equivalent_volume=50, projected_case_equivalent_volume=80),
        record(market="B", month=2, case_equivalent_volume=50, projected_case_equivalent_volume=80, market_area_name="Control"),
        record(market="C", month=2, case_equivalent_volume=50, projected_case_equivalent_volume=80, is_manual_input=True),
        record(market="D", month=2, case_equivalent_volume=50),
    ]
    result = aggregate(records, [_filter("month", "2")], MARKET, None, VOLUME)
    assert result.rows == ["A", "B", "C", "D"]
    assert result.data == [[80], [50], [50], [50]]


def test_projected_volume_only_for_primary_volume(record):
    records = [
        record(month=1, data_type="actual", py_case_equivalent_volume=10),
        record(month=2, py_case_equivalent_volume=50, projected_case_equivalent_volume=80),
    ]
    result = aggregate(records, [], MONTH, None, PY_VOLUME)
    assert result.data[1] == [50]


def test_inputs_are_not_mutated(sales_records):
    before = copy.deepcopy(sales_records)
    aggregate(sales_records, [_filter("market", "CA")], MARKET, MONTH, VOLUME)
    assert sales_records == before


def test_run_pivot_from_normalized_request(sales_records):
    request = normalize_pivot_request({"rows": ["brand"], "columns": ["year"], "measure": "case_equivalent_volume"})
    result = run_pivot(sales_records, request)
    assert result.rows == ["Acme", "Zenith"]
    assert result.columns == ["2025"]
    assert result.data == [[290], [10]]


def test_months_key_by_number_like_the_rollup(record):
    records = [
        record(month="01", case_equivalent_volume=5),
        record(month=1.0, case_equivalent_volume=2),
        record(month="3", case_equivalent_volume=1),
    ]
    result = aggregate(records, [], MONTH, None, VOLUME)
    assert result.data[0] == [7]
    assert result.data[2] == [1]

    filtered = aggregate(records, [_filter("month", "1")], None, None, VOLUME)
    assert filtered.data == [[7]]
