"""
Tests for list filters.
"""

import pytest

from thalassa.client import Request
from thalassa.filters import (
    FilterKey, FilterKeyValue, Filters, FilterType, LabelFilter,
)


class TestFilters:
    """Test lookups in a filter collection"""

    def test_get_label_filter(self):
        labels = LabelFilter(match_labels={"env": "prod"})
        filters = Filters([labels, FilterKeyValue(FilterKey.REGION, "nl-01")])

        assert filters.get_label_filter() is labels

    def test_get_label_filter_missing(self):
        filters = Filters([FilterKeyValue(FilterKey.REGION, "nl-01"), FilterKeyValue(FilterKey.ZONE, "zone-1")])

        assert filters.get_label_filter() is None
        assert Filters().get_label_filter() is None

    def test_get_key_value_filter(self):
        region = FilterKeyValue(FilterKey.REGION, "nl-01")
        filters = Filters([region, FilterKeyValue(FilterKey.ZONE, "zone-1")])

        assert filters.get_key_value_filter(FilterKey.REGION) is region
        assert filters.get_key_value_filter("region") is region
        assert filters.get_key_value_filter(FilterKey.VPC_IDENTITY) is None
        assert Filters().get_key_value_filter(FilterKey.REGION) is None

    def test_to_params_and_apply(self):
        filters = Filters([
            LabelFilter(match_labels={"env": "prod"}),
            FilterKeyValue(FilterKey.VPC_IDENTITY, "vpc-1"),
        ])
        request = filters.apply(Request())

        assert request.query_params == {"matchLabels[env]": "prod", "vpc": "vpc-1"}


class TestLabelFilter:
    """Test label selector parameters"""

    @pytest.mark.parametrize("labels,expected", [
        ({"env": "prod"}, {"matchLabels[env]": "prod"}),
        (
            {"env": "prod", "region": "nl-01", "version": "1.0"},
            {"matchLabels[env]": "prod", "matchLabels[region]": "nl-01", "matchLabels[version]": "1.0"},
        ),
        ({}, {}),
    ])
    def test_to_params(self, labels, expected):
        assert LabelFilter(match_labels=labels).to_params() == expected


class TestFilterKeyValue:
    """Test single field filters"""

    @pytest.mark.parametrize("key,value,expected", [
        (FilterKey.REGION, "nl-01", {"region": "nl-01"}),
        ("", "nl-01", {}),
        (FilterKey.REGION, "", {}),
        ("   ", "   ", {}),
        (" zone ", " zone-1 ", {"zone": "zone-1"}),
    ])
    def test_to_params(self, key, value, expected):
        assert FilterKeyValue(key, value).to_params() == expected


class TestFilterType:
    def test_filter_types(self):
        assert LabelFilter().filter_type() == FilterType.LABEL
        assert FilterKeyValue().filter_type() == FilterType.KEY_VALUE
        assert FilterType.KEY_VALUE.value == "keyvalue"
