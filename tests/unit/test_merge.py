# ============================================================================
# tests/unit/test_merge.py
# ============================================================================
"""
Tests for the merge/dedup engine
"""

from datetime import datetime

import pytest

from medical_reconciliation.constants.statuses import Status
from medical_reconciliation.core.merge import (
    MergeEngine,
    ObservationPolicy,
    merge_observations,
    parse_observation_date,
    refresh_statuses,
)
from medical_reconciliation.core.records import Observation
from medical_reconciliation.utils.exceptions import ConfigurationError


def values(record):
    return [obs.value for obs in record.results]


def canonical_form(records):
    """Merge result keyed by test name"""
    out = []
    for record in sorted(records, key=lambda r: r.test_name):
        data = record.to_dict()
        out.append(data)
    return out


class TestMergeObservations:
    """Test merge_observations policies"""

    def test_first_source_keeps_existing_date(self):
        existing = [Observation("210", "2024-01-10")]
        incoming = [Observation("215", "2024-01-10"), Observation("220", "2024-02-10")]

        merged = merge_observations(existing, incoming, ObservationPolicy.FIRST_SOURCE)
        assert [o.value for o in merged] == ["210", "220"]

    def test_latest_source_replaces_date(self):
        existing = [Observation("210", "2024-01-10")]
        incoming = [Observation("215", "2024-01-10")]

        merged = merge_observations(existing, incoming, ObservationPolicy.LATEST_SOURCE)
        assert [o.value for o in merged] == ["215"]

    def test_union_keeps_both(self):
        existing = [Observation("210", "2024-01-10")]
        incoming = [Observation("215", "2024-01-10"), Observation("210", "2024-01-10")]

        merged = merge_observations(existing, incoming, ObservationPolicy.UNION)
        assert [o.value for o in merged] == ["210", "215"]

    def test_date_key_is_trimmed_and_case_insensitive(self):
        existing = [Observation("5", " JAN 1 2024 ")]
        incoming = [Observation("6", "jan 1 2024")]

        merged = merge_observations(existing, incoming, ObservationPolicy.FIRST_SOURCE)
        assert [o.value for o in merged] == ["5"]

    def test_missing_dates_form_one_group(self):
        merged = merge_observations([Observation("5")], [Observation("6", "")])
        assert [o.value for o in merged] == ["5"]


class TestMergeEngine:
    """Test MergeEngine.merge"""

    def test_insert_computes_status(self, make_test_record):
        engine = MergeEngine()
        records = engine.merge([], [make_test_record("Total Cholesterol", "210", reference_range="<200")])

        assert len(records) == 1
        assert records[0].status == Status.HIGH
        assert records[0].results[0].status == Status.HIGH

    def test_fill_missing_fields_never_overwrite(self, make_test_record):
        engine = MergeEngine()
        accumulator = engine.merge([], [make_test_record("Hemoglobin", "13.5", reference_range="13-17")])
        engine.merge(accumulator, [
            make_test_record("HEMOGLOBIN", "13.5", unit="g/dL", reference_range="12-16", section="CBC")
        ])

        record = accumulator[0]
        assert record.test_name == "Hemoglobin"
        assert record.unit == "g/dL"
        assert record.reference_range == "13-17"
        assert record.section == "CBC"

    def test_same_date_same_value_collapses(self, make_test_record):
        engine = MergeEngine()
        accumulator = engine.merge([], [make_test_record("MCV", "88", date="2024-01-10")])
        engine.merge(accumulator, [make_test_record("MCV", "88", date="2024-01-10")])

        assert values(accumulator[0]) == ["88"]

    def test_same_source_same_date_different_values_kept(self, make_test_record):
        engine = MergeEngine()
        records = engine.merge([], [
            make_test_record("Total Cholesterol", "210", date="2024-01-10"),
            make_test_record("Total Cholesterol", "215", date="2024-01-10"),
            make_test_record("Total Cholesterol", "210", date="2024-01-10"),
        ])

        assert len(records) == 1
        assert values(records[0]) == ["210", "215"]

    def test_first_source_is_authoritative_per_date(self, make_test_record):
        engine = MergeEngine()
        accumulator = engine.merge([], [make_test_record("MCV", "88", date="2024-01-10")])
        engine.merge(accumulator, [
            make_test_record("MCV", "91", date="2024-01-10"),
            make_test_record("MCV", "90", date="2024-03-01"),
        ])

        assert values(accumulator[0]) == ["88", "90"]

    def test_policy_from_config(self, make_test_record):
        engine = MergeEngine({"observation_policy": "latest_source"})
        assert engine.policy == ObservationPolicy.LATEST_SOURCE

        accumulator = engine.merge([], [make_test_record("MCV", "88", date="2024-01-10")])
        engine.merge(accumulator, [make_test_record("MCV", "91", date="2024-01-10")])
        assert values(accumulator[0]) == ["91"]

    def test_unknown_policy_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            MergeEngine({"observation_policy": "newest"})

    def test_method_suffix_merges(self, make_test_record):
        engine = MergeEngine()
        records = engine.merge([], [make_test_record("Vitamin D (HPLC)", "32", date="d1")])
        engine.merge(records, [make_test_record("Vitamin D", "30", date="d2")])

        assert len(records) == 1
        assert records[0].test_name == "Vitamin D (HPLC)"
        assert values(records[0]) == ["32", "30"]

    def test_status_recomputed_after_range_fill(self, make_test_record):
        engine = MergeEngine()
        accumulator = engine.merge([], [make_test_record("Total Cholesterol", "250")])
        assert accumulator[0].status == Status.NORMAL

        engine.merge(accumulator, [make_test_record("Total Cholesterol", "250", reference_range="<200")])
        assert accumulator[0].reference_range == "<200"
        assert accumulator[0].status == Status.HIGH
        assert accumulator[0].results[0].status == Status.HIGH

    def test_values_kept_verbatim(self, make_test_record):
        records = MergeEngine().merge([], [make_test_record("CRP", "<5", reference_range="<10")])
        assert records[0].value == "<5"
        assert records[0].status == Status.NORMAL

    def test_segment_order_does_not_change_result(self, make_test_record):
        """Merging [A, B] then [C] equals merging [C] then [A, B]"""
        def batch_ab():
            return [
                make_test_record("Hemoglobin", "13.5", date="2024-01-10", unit="g/dL"),
                make_test_record("MCV", "88", date="2024-01-10"),
            ]

        def batch_c():
            return [make_test_record("Hemoglobin", "14.0", date="2024-02-10", reference_range="13-17")]

        forward = MergeEngine().merge_all([batch_ab(), batch_c()])
        backward = MergeEngine().merge_all([batch_c(), batch_ab()])

        assert canonical_form(forward) == canonical_form(backward)
        assert len(forward) == 2

    def test_latest_value_follows_date_not_merge_order(self, make_test_record):
        def older():
            return [make_test_record("Hemoglobin", "13.5", date="2024-01-10", reference_range="13-17")]

        def newer():
            return [make_test_record("Hemoglobin", "12.0", date="2024-02-10", reference_range="13-17")]

        forward = MergeEngine().merge_all([older(), newer()])
        backward = MergeEngine().merge_all([newer(), older()])

        for records in (forward, backward):
            assert values(records[0]) == ["13.5", "12.0"]
            assert (records[0].value, records[0].status) == ("12.0", Status.LOW)
        assert canonical_form(forward) == canonical_form(backward)


class TestRefreshStatuses:
    """Test refresh_statuses"""

    def test_reported_status_is_fallback(self, make_test_record):
        record = make_test_record("Marker X", "12")
        record.results[0].reported_status = "HIGH"
        refresh_statuses(record)
        assert record.status == Status.HIGH

    def test_record_without_observations_keeps_status(self, make_test_record):
        record = make_test_record("Marker X")
        record.status = Status.NOT_FOUND
        refresh_statuses(record)
        assert record.status == Status.NOT_FOUND

    def test_observations_sorted_by_date(self, make_test_record):
        record = make_test_record("MCV", "90", date="21/03/2024")
        record.results += [
            Observation("88", "2024-01-10"),
            Observation("85"),
            Observation("89", "10-Feb-2024"),
        ]
        refresh_statuses(record)

        assert values(record) == ["85", "88", "89", "90"]
        assert record.value == "90"


class TestParseObservationDate:
    """Test parse_observation_date"""

    @pytest.mark.parametrize("text,expected", [
        ("2024-01-10", datetime(2024, 1, 10)),
        ("2024-01-10 09:30", datetime(2024, 1, 10, 9, 30)),
        ("10/01/2024", datetime(2024, 1, 10)),
        ("10-Jan-2024", datetime(2024, 1, 10)),
        ("Jan 10 2024", datetime(2024, 1, 10)),
        (" JAN  10, 2024 ", datetime(2024, 1, 10)),
    ])
    def test_formats(self, text, expected):
        assert parse_observation_date(text) == expected

    @pytest.mark.parametrize("text", [None, "", "d1", "yesterday", "2024-13-45"])
    def test_unparseable(self, text):
        assert parse_observation_date(text) is None
