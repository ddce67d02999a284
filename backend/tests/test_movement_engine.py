"""
Movement summary, waterfall and movement trend tests
"""

import pytest

from arr_movement_engine import build_waterfall


class TestWaterfall:

    pytestmark = pytest.mark.unit

    def test_bridge_layout(self):
        bars = build_waterfall(1000, 1190, new_business=200, expansion=50,
                               schedule_change=-10, contraction=-30, churn=-20)
        assert [b.name for b in bars] == [
            "Starting ARR", "New Business", "Expansion", "Schedule Change",
            "Contraction", "Churn", "Ending ARR",
        ]
        assert [b.running_total for b in bars] == [1000, 1200, 1250, 1240, 1210, 1190, 1190]
        assert [b.bar_type for b in bars] == [
            "initial", "increase", "increase", "decrease", "decrease", "decrease", "final",
        ]

    def test_decrease_bars_drawn_from_lowered_bottom(self):
        bars = {b.name: b for b in build_waterfall(1000, 1190, 200, 50, -10, -30, -20)}
        assert (bars["Schedule Change"].bottom, bars["Schedule Change"].value) == (1240, 10)
        assert bars["Schedule Change"].display_value == -10
        assert (bars["Contraction"].bottom, bars["Contraction"].value) == (1210, 30)
        assert (bars["Churn"].bottom, bars["Churn"].display_value) == (1190, -20)

    def test_positive_schedule_change_is_increase(self):
        bars = {b.name: b for b in build_waterfall(100, 110, 0, 0, 10, 0, 0)}
        assert bars["Schedule Change"].bar_type == "increase"
        assert bars["Schedule Change"].bottom == 100

    def test_contraction_sign_irrelevant(self):
        negative = build_waterfall(100, 70, 0, 0, 0, -30, 0)
        positive = build_waterfall(100, 70, 0, 0, 0, 30, 0)
        assert [b.to_dict() for b in negative] == [b.to_dict() for b in positive]

    def test_ending_bar_is_actual_ending(self):
        bars = build_waterfall(1000, 1500, 0, 0, 0, 0, 0)
        assert bars[-2].running_total == 1000
        assert (bars[-1].bottom, bars[-1].value, bars[-1].running_total) == (0, 1500, 1500)


@pytest.mark.golden
class TestMovementSummary:

    def test_one_month_lookback(self, engine):
        s = engine.movement_summary()
        assert (s["startMonth"], s["endMonth"], s["lookbackPeriod"]) == ("2026-02", "2026-02", 1)
        assert s["startingARR"] == 2000
        assert s["endingARR"] == 2230
        assert (s["newBusiness"], s["expansion"], s["scheduleChange"]) == (400, 200, -20)
        assert (s["contraction"], s["churn"]) == (-50, -300)
        assert s["bridgeTotal"] == 2230
        assert s["residual"] == 0
        assert s["waterfall"][-1] == {
            "name": "Ending ARR", "bottom": 0, "value": 2230, "displayValue": 2230,
            "runningTotal": 2230, "barType": "final",
        }

    def test_lookback_window_starts_earlier(self, engine):
        s = engine.movement_summary({"lookbackPeriod": 3})
        assert (s["startMonth"], s["endMonth"]) == ("2025-12", "2026-02")
        # No Dec-25 rows: the bridge starts from zero and the residual shows it
        assert s["startingARR"] == 0
        assert s["residual"] == 2000

    def test_selected_month_moves_window(self, engine):
        s = engine.movement_summary({"year": "2026", "month": "Jan"})
        assert (s["startingARR"], s["endingARR"]) == (2000, 2000)
        assert s["newBusiness"] == s["expansion"] == s["churn"] == 0

    def test_filter_applies(self, engine):
        s = engine.movement_summary({"region": "APAC"})
        assert (s["startingARR"], s["endingARR"], s["churn"]) == (300, 0, -300)


@pytest.mark.golden
class TestMovementTrend:

    def test_months_with_data_only(self, engine):
        months = engine.movement_trend()["months"]
        assert [m["month"] for m in months] == ["2026-01", "2026-02"]

    def test_components(self, engine):
        feb = engine.movement_trend()["months"][-1]
        assert feb["date"] == "2026-02-01"
        assert feb["label"] == "Feb 26"
        assert feb["newBusiness"] == 400
        assert feb["contraction"] == -50
        assert feb["churn"] == -300
        assert feb["netChange"] == 230
