"""
Overview Metrics Engine

Point-in-time KPIs for a selected month: current and previous ARR, forecast
ARR for the month and for year end, monthly and full-year NRR/GRR, and the
ARR breakdown by region, vertical and product category.

Months after the anchor month are forecast months: their ARR is the forecast
base (the month's own aggregate, else the last non-zero actual) plus the
license ACV of open pipeline deals from the latest pipeline snapshot closing
between the anchor and the month.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from arr_aggregates import MonthlyActuals, open_pipeline, pipeline_acv
from arr_config import EngineConfig
from arr_customer_aggregator import build_customers
from arr_dataset import ArrDataset
from arr_filters import FilterEvaluator, RevenueFilter, selected_month
from arr_models import LogoType, PipelineSnapshotRow
from arr_month import Month
from utils import ZERO, growth_pct, round_currency, round_pct, safe_pct

logger = logging.getLogger(__name__)


def _is_renewal(logo: LogoType) -> bool:
    return logo.is_renewal


def _is_upsell(logo: LogoType) -> bool:
    return logo.is_expansion


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass
class RetentionRatios:
    nrr: Decimal = ZERO
    grr: Decimal = ZERO


@dataclass
class OverviewMetrics:
    selected_month: Month
    is_forecast: bool
    current_arr: Decimal
    previous_arr: Decimal
    month_forecast: Decimal
    year_end_arr: Decimal
    monthly: RetentionRatios
    full_year: RetentionRatios
    expansion: Decimal = ZERO
    contraction: Decimal = ZERO  # magnitude
    churn: Decimal = ZERO        # magnitude
    schedule_change: Decimal = ZERO
    new_business: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentARR": round_currency(self.current_arr),
            "previousARR": round_currency(self.previous_arr),
            "ytdGrowth": round_pct(growth_pct(self.current_arr, self.previous_arr)),
            "yearEndARR": round_currency(self.year_end_arr),
            "yearEndGrowth": round_pct(growth_pct(self.year_end_arr, self.current_arr)),
            "monthForecast": round_currency(self.month_forecast),
            "monthForecastGrowth": round_pct(growth_pct(self.month_forecast, self.current_arr)),
            "monthlyNRR": round_pct(self.monthly.nrr),
            "monthlyGRR": round_pct(self.monthly.grr),
            "fullYearNRR": round_pct(self.full_year.nrr),
            "fullYearGRR": round_pct(self.full_year.grr),
            "expansion": round_currency(self.expansion),
            "contraction": round_currency(self.contraction),
            "churn": round_currency(self.churn),
            "scheduleChange": round_currency(self.schedule_change),
            "newBusiness": round_currency(self.new_business),
            "isForecast": self.is_forecast,
            "selectedMonth": str(self.selected_month),
            "currentARRMonthLabel": self.selected_month.label(),
        }


@dataclass
class DimensionBreakdown:
    by_region: Dict[str, int] = field(default_factory=dict)
    by_vertical: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)

    @staticmethod
    def _sorted(values: Dict[str, int]) -> List[Dict[str, Any]]:
        ordered = sorted(values.items(), key=lambda kv: (-kv[1], kv[0]))
        return [{"name": name, "value": value} for name, value in ordered]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "byRegion": self._sorted(self.by_region),
            "byVertical": self._sorted(self.by_vertical),
            "byCategory": self._sorted(self.by_category),
        }


# =============================================================================
# ENGINE
# =============================================================================

class OverviewEngine:
    def __init__(self, dataset: ArrDataset, config: EngineConfig):
        self.dataset = dataset
        self.config = config

    @property
    def anchor(self) -> Month:
        return self.config.anchor_month

    def forecast_arr(self, actuals: MonthlyActuals, pipeline: List[PipelineSnapshotRow],
                     month: Month) -> Decimal:
        """Actual aggregate up to the anchor; forecast base + open pipeline after it"""
        if month <= self.anchor:
            return actuals.ending(month)
        return actuals.forecast_base(month, self.anchor) + pipeline_acv(pipeline, self.anchor, month)

    def monthly_retention(self, actuals: MonthlyActuals, pipeline: List[PipelineSnapshotRow],
                          month: Month, previous_arr: Decimal) -> RetentionRatios:
        """
        Actual months: (previous + expansion + schedule - |contraction| - |churn|) / previous.
        Forecast months: the forecast aggregate already embeds the month's movement, so the
        deals closing in the month and the month's new business are taken out, then
        renewal/extension (both ratios) and upsell/cross-sell (NRR only) pipeline closing in
        the month is added back. New logos closing in the month never count. GRR also drops
        expansion.
        """
        agg = actuals.get(month)
        if month <= self.anchor:
            retained = previous_arr + agg.schedule_change + agg.contraction + agg.churn
            return RetentionRatios(
                nrr=safe_pct(retained + agg.expansion, previous_arr),
                grr=safe_pct(retained, previous_arr),
            )

        before = month.previous()
        closing = pipeline_acv(pipeline, before, month)
        renewals = pipeline_acv(pipeline, before, month, _is_renewal)
        upsell = pipeline_acv(pipeline, before, month, _is_upsell)
        carried = self.forecast_arr(actuals, pipeline, month) - closing - agg.new_business
        return RetentionRatios(
            nrr=safe_pct(carried + renewals + upsell, previous_arr),
            grr=safe_pct(carried - agg.expansion + renewals, previous_arr),
        )

    def full_year_retention(self, actuals: MonthlyActuals, pipeline: List[PipelineSnapshotRow],
                            year: int) -> RetentionRatios:
        """
        January ending ARR is the denominator. The numerator adds the actual movements
        of the year's months up to the anchor, and when December is still a forecast
        month, open renewal/extension (both) and upsell/cross-sell (NRR) pipeline
        closing after the anchor within the year.
        """
        start = actuals.ending(Month(year, 1))
        expansion = schedule = contraction = churn = ZERO
        for month, agg in actuals.by_month.items():
            if month.year != year or month > self.anchor:
                continue
            expansion += agg.expansion
            schedule += agg.schedule_change
            contraction += agg.contraction
            churn += agg.churn

        renewals = upsell = ZERO
        december = Month(year, 12)
        if december > self.anchor:
            after = max(self.anchor, Month(year, 1).previous())
            renewals = pipeline_acv(pipeline, after, december, _is_renewal)
            upsell = pipeline_acv(pipeline, after, december, _is_upsell)

        retained = start + schedule + contraction + churn + renewals
        return RetentionRatios(
            nrr=safe_pct(retained + expansion + upsell, start),
            grr=safe_pct(retained, start),
        )

    def overview(self, filters: RevenueFilter) -> OverviewMetrics:
        evaluator = FilterEvaluator(filters, self.dataset.index)
        actuals = MonthlyActuals.build(self.dataset, evaluator)
        pipeline = open_pipeline(self.dataset, evaluator)
        month = selected_month(filters, self.anchor)
        is_forecast = month > self.anchor

        if is_forecast:
            current_arr = actuals.forecast_base(month, self.anchor)
        else:
            current_arr = actuals.ending(month)
        previous_arr = self.forecast_arr(actuals, pipeline, month.previous())
        agg = actuals.get(month)

        metrics = OverviewMetrics(
            selected_month=month,
            is_forecast=is_forecast,
            current_arr=current_arr,
            previous_arr=previous_arr,
            month_forecast=self.forecast_arr(actuals, pipeline, month),
            year_end_arr=self.forecast_arr(actuals, pipeline, Month(month.year, 12)),
            monthly=self.monthly_retention(actuals, pipeline, month, previous_arr),
            full_year=self.full_year_retention(actuals, pipeline, month.year),
            expansion=agg.expansion,
            contraction=abs(agg.contraction),
            churn=abs(agg.churn),
            schedule_change=agg.schedule_change,
            new_business=agg.new_business,
        )
        logger.debug(
            f"Overview {month}: current={metrics.current_arr} forecast={metrics.month_forecast} "
            f"pipeline_deals={len(pipeline)}"
        )
        return metrics

    def arr_by_dimension(self, filters: RevenueFilter) -> DimensionBreakdown:
        evaluator = FilterEvaluator(filters, self.dataset.index)
        as_of = min(selected_month(filters, self.anchor), self.anchor)
        breakdown = DimensionBreakdown()
        for customer in build_customers(self.dataset, as_of):
            if not evaluator.customer_passes(customer):
                continue
            breakdown.by_region[customer.region] = (
                breakdown.by_region.get(customer.region, 0) + customer.current_arr
            )
            breakdown.by_vertical[customer.vertical] = (
                breakdown.by_vertical.get(customer.vertical, 0) + customer.current_arr
            )
            for sub_category, amount in customer.product_arr.items():
                category = self.dataset.index.category_for(sub_category)
                breakdown.by_category[category] = breakdown.by_category.get(category, 0) + amount
        return breakdown
