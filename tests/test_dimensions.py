from forecast_core.dimensions import (
    FILTERABLE_DIMENSIONS,
    get_dimension,
    measures,
    resolve_dimensions,
    unique_values_for_dimension,
)


def test_lookup_known_and_unknown():
    brand = get_dimension("brand")
    assert brand is not None
    assert brand.label == "Brand"
    assert not brand.is_measure
    assert get_dimension("not_a_dimension") is None
    assert get_dimension(None) is None


def test_resolve_drops_unknown_ids():
    dims = resolve_dimensions(["brand", "bogus", "year"])
    assert [d.id for d in dims] == ["brand", "year"]


def test_measures_are_summed_with_formats():
    ids = {d.id: d for d in measures()}
    assert set(ids) == {
        "case_equivalent_volume",
        "py_case_equivalent_volume",
        "gross_sales_value",
        "py_gross_sales_value",
    }
    assert all(d.aggregation == "sum" for d in ids.values())
    assert ids["gross_sales_value"].format == "currency"


def test_filterable_dimensions_sorted_by_label():
    labels = [d.label for d in FILTERABLE_DIMENSIONS]
    assert labels == sorted(labels)
    assert "data_type" not in {d.id for d in FILTERABLE_DIMENSIONS}


def test_unique_values_for_dimension_skips_blanks():
    records = [{"market": "NY"}, {"market": "CA"}, {"market": ""}, {"market": None}, {}, {"market": "NY"}]
    assert unique_values_for_dimension(records, "market") == ["CA", "NY"]
    assert unique_values_for_dimension(records, "") == []
