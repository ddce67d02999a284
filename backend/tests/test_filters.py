"""
Filter normalization and evaluation tests
"""

import pytest
from pydantic import ValidationError

from arr_filters import (
    CustomerListFilter, CustomerMovementFilter, FilterEvaluator, MovementFilter,
    ProductFilter, RevenueFilter, selected_month,
)
from arr_models import ArrSnapshotRow, PipelineSnapshotRow, PlatformTrack
from arr_month import Month
from arr_reference_index import effective_platform_track


pytestmark = pytest.mark.unit

ANCHOR = Month(2026, 2)


class TestNormalization:

    def test_empty_request_is_empty_filter(self):
        f = RevenueFilter.model_validate({})
        assert f.is_empty
        assert f.region == [] and f.year == []
        assert f.quantum_smart == "All" and f.fees_type == "All"

    def test_all_blank_and_duplicates_are_dropped(self):
        f = RevenueFilter.model_validate({"region": ["Europe", "All", "", "Europe", None]})
        assert f.region == ["Europe"]

    def test_scalar_values_become_lists(self):
        f = RevenueFilter.model_validate({"vertical": "Banking", "year": 2026})
        assert f.vertical == ["Banking"]
        assert f.year == ["2026"]

    def test_camel_case_keys(self):
        f = RevenueFilter.model_validate({"quantumSmart": "Quantum", "feesType": "Travel"})
        assert f.quantum_smart == "Quantum"
        assert f.fees_type == "Travel"
        assert not f.is_empty

    def test_blank_single_select_means_all(self):
        f = RevenueFilter.model_validate({"quantumSmart": "", "feesType": None})
        assert f.quantum_smart == "All"
        assert f.fees_type == "All"

    def test_month_names_normalized(self):
        f = RevenueFilter.model_validate({"month": ["march", "DEC"]})
        assert f.month == ["Mar", "Dec"]

    def test_unknown_keys_ignored(self):
        f = RevenueFilter.model_validate({"region": "APAC", "somethingElse": 1})
        assert f.region == ["APAC"]

    @pytest.mark.parametrize("payload", [
        {"year": ["26"]},
        {"year": ["0001"]},
        {"year": ["3000"]},
        {"month": ["Smarch"]},
        {"quantumSmart": "Hybrid"},
    ])
    def test_invalid_values_rejected(self, payload):
        with pytest.raises(ValidationError):
            RevenueFilter.model_validate(payload)

    def test_normalization_is_idempotent(self):
        raw = {"region": ["Europe", "All"], "month": "mar", "year": "2026", "quantumSmart": "SMART"}
        once = RevenueFilter.model_validate(raw)
        twice = RevenueFilter.model_validate(once.model_dump(by_alias=True))
        assert once == twice

    def test_filters_are_immutable(self):
        f = RevenueFilter()
        with pytest.raises(ValidationError):
            f.region = ["Europe"]


class TestRequestVariants:

    def test_lookback_default_and_coercion(self):
        assert MovementFilter().lookback_period == 1
        assert MovementFilter.model_validate({"lookbackPeriod": "3"}).lookback_period == 3
        assert MovementFilter.model_validate({"lookbackPeriod": ""}).lookback_period == 1

    @pytest.mark.parametrize("lookback", [0, 2, 5, 24])
    def test_lookback_outside_allowed_set_rejected(self, lookback):
        with pytest.raises(ValidationError):
            MovementFilter.model_validate({"lookbackPeriod": lookback})

    def test_sort_direction_lowercased(self):
        f = CustomerMovementFilter.model_validate({"sortField": "change", "sortDirection": "ASC"})
        assert f.sort_field == "change"
        assert f.sort_direction == "asc"
        assert CustomerMovementFilter().sort_direction is None

    def test_customer_list_flags(self):
        f = CustomerListFilter.model_validate(
            {"search": "  acme ", "renewalsInTargetYear": True, "renewalRisk": "All"}
        )
        assert f.search == "acme"
        assert f.renewals_in_target_year is True
        assert f.renewal_risk is None

    def test_product_filter_defaults(self):
        f = ProductFilter.model_validate({"productCategory": ""})
        assert f.product_category == "All"
        assert f.product_sub_category == "All"


class TestSelectedMonth:

    def test_no_period_is_anchor(self):
        assert selected_month(RevenueFilter(), ANCHOR) == ANCHOR

    def test_year_and_month(self):
        f = RevenueFilter.model_validate({"year": ["2026"], "month": ["Apr"]})
        assert selected_month(f, ANCHOR) == Month(2026, 4)

    def test_year_only_is_december(self):
        f = RevenueFilter.model_validate({"year": ["2025"]})
        assert selected_month(f, ANCHOR) == Month(2025, 12)

    def test_month_only_uses_anchor_year(self):
        f = RevenueFilter.model_validate({"month": ["Nov"]})
        assert selected_month(f, ANCHOR) == Month(2026, 11)


class TestPlatformTrack:

    def test_go_live_switches_track_at_its_month(self):
        go_live = Month.parse("2026-03-01")
        assert effective_platform_track("SMART", go_live, Month(2026, 2)) == PlatformTrack.SMART
        assert effective_platform_track("SMART", go_live, Month(2026, 3)) == PlatformTrack.QUANTUM
        assert effective_platform_track("SMART", go_live, Month(2027, 1)) == PlatformTrack.QUANTUM

    def test_go_live_overrides_label(self):
        go_live = Month(2026, 6)
        assert effective_platform_track("Quantum", go_live, Month(2026, 5)) == PlatformTrack.SMART

    def test_label_used_without_go_live(self):
        assert effective_platform_track("Quantum", None, Month(2026, 1)) == PlatformTrack.QUANTUM
        assert effective_platform_track("", None, Month(2026, 1)) == PlatformTrack.SMART


class TestEvaluator:

    def _evaluator(self, arr_dataset, **payload):
        return FilterEvaluator(RevenueFilter.model_validate(payload), arr_dataset.index)

    def _row(self, arr_dataset, sow_id, month="2026-02"):
        return next(r for r in arr_dataset.arr_rows
                    if r.sow_id == sow_id and r.snapshot_month == Month.parse(month))

    def test_empty_filter_passes_everything(self, arr_dataset):
        evaluator = self._evaluator(arr_dataset)
        assert all(evaluator.arr_row_passes(r) for r in arr_dataset.arr_rows)
        assert all(evaluator.pipeline_row_passes(r) for r in arr_dataset.pipeline_rows)

    def test_blank_region_resolved_through_sow_mapping(self, arr_dataset):
        evaluator = self._evaluator(arr_dataset, region=["Europe"])
        assert evaluator.arr_row_passes(self._row(arr_dataset, "S2"))
        assert not evaluator.arr_row_passes(self._row(arr_dataset, "S1"))

    def test_fees_type_from_sow_mapping_with_default(self, arr_dataset):
        travel = self._evaluator(arr_dataset, feesType="Travel")
        fees = self._evaluator(arr_dataset, feesType="Fees")
        assert travel.arr_row_passes(self._row(arr_dataset, "S2"))
        assert not travel.arr_row_passes(self._row(arr_dataset, "S4"))
        assert fees.arr_row_passes(self._row(arr_dataset, "S4"))

    def test_track_filter_uses_go_live(self, arr_dataset):
        quantum = self._evaluator(arr_dataset, quantumSmart="Quantum")
        # S1 goes live in Mar 2026, so it is still SMART in Feb
        assert not quantum.arr_row_passes(self._row(arr_dataset, "S1"))
        assert quantum.arr_row_passes(self._row(arr_dataset, "S2"))

    def test_pipeline_new_logo_is_quantum(self, arr_dataset):
        quantum = self._evaluator(arr_dataset, quantumSmart="Quantum")
        new_logo = next(r for r in arr_dataset.pipeline_rows if r.deal_id == "P2")
        assert quantum.pipeline_track(new_logo) == PlatformTrack.QUANTUM
        assert quantum.pipeline_row_passes(new_logo)

    def test_pipeline_track_through_name_alias(self, arr_dataset):
        evaluator = self._evaluator(arr_dataset)
        acme = next(r for r in arr_dataset.pipeline_rows if r.deal_id == "P1")
        assert evaluator.pipeline_track(acme) == PlatformTrack.SMART

    def test_pipeline_unknown_customer_fails_track_filter(self, arr_dataset):
        smart = self._evaluator(arr_dataset, quantumSmart="SMART")
        stranger = PipelineSnapshotRow(snapshot_month=ANCHOR, deal_id="X", customer_name="Nobody")
        assert not smart.pipeline_row_passes(stranger)
        assert self._evaluator(arr_dataset).pipeline_row_passes(stranger)

    def test_pipeline_segment_only_checked_when_present(self, arr_dataset):
        evaluator = self._evaluator(arr_dataset, segment=["SMB"])
        blank = PipelineSnapshotRow(snapshot_month=ANCHOR, deal_id="X", customer_name="Acme")
        other = PipelineSnapshotRow(snapshot_month=ANCHOR, deal_id="Y", customer_name="Acme",
                                    segment="Enterprise")
        assert evaluator.pipeline_row_passes(blank)
        assert not evaluator.pipeline_row_passes(other)

    def test_platform_label_filter(self, arr_dataset):
        evaluator = self._evaluator(arr_dataset, platform=["Quantum"])
        unlabeled = ArrSnapshotRow(sow_id="Z", customer_name="Z", snapshot_month=ANCHOR)
        assert unlabeled.platform_label == "SMART"
        assert not evaluator.arr_row_passes(unlabeled)
        assert evaluator.arr_row_passes(self._row(arr_dataset, "S2"))
