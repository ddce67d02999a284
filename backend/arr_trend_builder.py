"""
Trend Builder

Monthly ARR series over the configured window. Months up to the anchor carry
the actual aggregate; later months carry a forecast built from a base ARR plus
the running totals of open renewal/extension and other pipeline ACV.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from arr_aggregates import MonthlyActuals, open_pipeline
from arr_config import EngineConfig
from arr_dataset import ArrDataset
from arr_filters import FilterEvaluator, RevenueFilter
from arr_month import Month, month_range
from utils import ZERO, round_currency

logger = logging.getLogger(__name__)


@dataclass
class TrendPoint:
    month: Month
    current_arr: Decimal = ZERO
    forecast_base: Optional[Decimal] = None
    forecast_renewals: Optional[Decimal] = None
    forecast_new_business: Optional[Decimal] = None

    @property
    def is_forecast(self) -> bool:
        return self.forecast_base is not None

    @property
    def forecasted_arr(self) -> Optional[Decimal]:
        if not self.is_forecast:
            return None
        return self.forecast_base + self.forecast_renewals + self.forecast_new_business

    def to_dict(self) -> Dict[str, Any]:
        def _opt(value):
            return None if value is None else round_currency(value)

        return {
            "month": str(self.month),
            "label": self.month.short_label(),
            "currentARR": round_currency(self.current_arr),
            "forecastedARR": _opt(self.forecasted_arr),
            "forecastBase": _opt(self.forecast_base),
            "forecastRenewals": _opt(self.forecast_renewals),
            "forecastNewBusiness": _opt(self.forecast_new_business),
            "isForecast": self.is_forecast,
        }


class TrendBuilder:
    def __init__(self, dataset: ArrDataset, config: EngineConfig):
        self.dataset = dataset
        self.config = config

    def arr_trend(self, filters: RevenueFilter) -> List[TrendPoint]:
        anchor = self.config.anchor_month
        evaluator = FilterEvaluator(filters, self.dataset.index)
        actuals = MonthlyActuals.build(self.dataset, evaluator)

        # Close month -> ACV, split into renewal/extension vs everything else
        renewals_by_month: Dict[Month, Decimal] = {}
        other_by_month: Dict[Month, Decimal] = {}
        for row in open_pipeline(self.dataset, evaluator):
            close = row.expected_close_month
            if close <= anchor:
                continue
            bucket = renewals_by_month if row.logo_type.is_renewal else other_by_month
            bucket[close] = bucket.get(close, ZERO) + row.license_acv

        points: List[TrendPoint] = []
        window = set(month_range(self.config.trend_start, self.config.trend_end))
        for month in month_range(self.config.trend_start, min(anchor, self.config.trend_end)):
            points.append(TrendPoint(month=month, current_arr=actuals.ending(month)))

        cumulative_renewals = cumulative_other = ZERO
        for month in month_range(anchor.next(), self.config.trend_end):
            cumulative_renewals += renewals_by_month.get(month, ZERO)
            cumulative_other += other_by_month.get(month, ZERO)
            if month not in window:
                continue
            points.append(TrendPoint(
                month=month,
                forecast_base=actuals.forecast_base(month, anchor),
                forecast_renewals=cumulative_renewals,
                forecast_new_business=cumulative_other,
            ))

        logger.debug(f"ARR trend: {len(points)} months, anchor {anchor}, base {actuals.last_actual(anchor)}")
        return points
