"""Tests for the aggregation query builder."""

from __future__ import annotations

from datetime import date

import pytest

from unitmap.exceptions import ValidationBlocked
from unitmap.schemas.map import Metric, Region, Selection, SubRegion
from unitmap.services.query_builder import build_query, validate_for_submit


def make_region() -> Region:
    return Region.model_validate(
        {"_id": {"$oid": "st-lagos"}, "state_name": "Lagos", "state_code": "LA"}
    )


def make_sub_region() -> SubRegion:
    return SubRegion.model_validate(
        {"_id": {"$oid": "lg-ikeja"}, "lga_name": "Ikeja", "lga_code": "IKJ", "state_code": "LA"}
    )


def make_selection(**overrides) -> Selection:
    fields = {
        "region": make_region(),
        "metric": Metric.REVENUE,
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 1, 31),
    }
    fields.update(overrides)
    return Selection(**fields)


class TestBuildQuery:
    """Tests for build_query."""

    def test_parameters_in_canonical_order(self):
        query = build_query(make_selection(), page_size=100)

        assert query.params == [
            ("page", "1"),
            ("page_size", "100"),
            ("start_date", "2024-01-01"),
            ("end_date", "2024-01-31"),
            ("state_id", "st-lagos"),
        ]

    def test_sub_region_filter_is_omitted_not_null(self):
        query = build_query(make_selection())

        assert query.lga_id is None
        assert "lga_id" not in dict(query.params)

    def test_sub_region_filter_appended_last(self):
        query = build_query(make_selection(sub_region=make_sub_region()), page_size=50)

        assert query.params[-1] == ("lga_id", "lg-ikeja")
        assert ("page_size", "50") in query.params

    def test_value_equal_selections_give_equal_descriptors(self):
        """Two separately built but equal selections produce the same query."""
        first = build_query(make_selection(), page_size=100)
        second = build_query(make_selection(), page_size=100)

        assert first == second
        assert first.same_query(second)

    def test_generation_does_not_change_the_query(self):
        first = build_query(make_selection(), generation=1, page_size=100)
        second = build_query(make_selection(), generation=7, page_size=100)

        assert first != second
        assert first.same_query(second)
        assert (first.generation, second.generation) == (1, 7)

    def test_metric_is_not_part_of_the_query(self):
        """Metric only affects colouring, so switching it never needs a refetch."""
        revenue = build_query(make_selection(metric=Metric.REVENUE))
        density = build_query(make_selection(metric=Metric.DENSITY))

        assert revenue.same_query(density)

    def test_page_size_defaults_to_settings(self):
        query = build_query(make_selection())

        assert query.page_size == 100

    def test_no_region_is_blocked(self):
        with pytest.raises(ValidationBlocked, match="select a state"):
            build_query(make_selection(region=None))

    def test_start_after_end_is_blocked(self):
        with pytest.raises(ValidationBlocked, match="after end date"):
            build_query(make_selection(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1)))

    def test_validate_for_submit_returns_the_region(self):
        assert validate_for_submit(make_selection()) == make_region()

    def test_single_day_range_is_allowed(self):
        query = build_query(make_selection(start_date=date(2024, 1, 5), end_date=date(2024, 1, 5)))

        assert query.start_date == query.end_date


class TestSelection:
    """Tests for Selection construction rules."""

    def test_default_selection(self):
        selection = Selection.default(date(2024, 2, 1), 30)

        assert selection.region is None
        assert selection.sub_region is None
        assert selection.metric == Metric.TTV
        assert selection.start_date == date(2024, 1, 2)
        assert selection.end_date == date(2024, 2, 1)

    def test_sub_region_must_belong_to_region(self):
        other = SubRegion(id="lg-x", name="Nassarawa", code="NAS", parent_code="KN")

        with pytest.raises(ValueError, match="must belong"):
            make_selection(sub_region=other)
