"""
Movement / Waterfall Engine

Aggregates the ARR movement components over a 1/3/6/12 month lookback ending
at the selected month and lays them out as a waterfall bridge:

    Starting ARR -> +New Business -> +Expansion -> +/-Schedule Change
                 -> -Contraction -> -Churn -> Ending ARR

The Ending ARR bar is the actual aggregate ending value of the last month, not
the bridge's running total. Source data carries rounding and other residuals,
so the two may differ; the residual is reported alongside.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from arr_aggregates import MonthlyActuals
from arr_config import EngineConfig
from arr_customer_movement import aggregate_customer_movements, movement_counts
from arr_dataset import ArrDataset
from arr_filters import CustomerMovementFilter, FilterEvaluator, MovementFilter, RevenueFilter, selected_month
from arr_models import MovementType
from arr_month import Month, lookback_window, month_range
from utils import round_currency, sort_records

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass
class WaterfallBar:
    """
    bottom/value are what a stacked bar chart draws; display_value keeps the
    sign of the movement; running_total is the bridge value after this bar.
    """
    name: str
    bottom: int
    value: int
    display_value: int
    running_total: int
    bar_type: str  # initial, increase, decrease, final

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "bottom": self.bottom,
            "value": self.value,
            "displayValue": self.display_value,
            "runningTotal": self.running_total,
            "barType": self.bar_type,
        }


def build_waterfall(starting: int, ending: int, new_business: int, expansion: int,
                    schedule_change: int, contraction: int, churn: int) -> List[WaterfallBar]:
    running = starting
    bars = [WaterfallBar("Starting ARR", 0, starting, starting, running, "initial")]

    for name, amount in (("New Business", new_business), ("Expansion", expansion)):
        bars.append(WaterfallBar(name, running, amount, amount, running + amount, "increase"))
        running += amount

    if schedule_change >= 0:
        bars.append(WaterfallBar("Schedule Change", running, schedule_change, schedule_change,
                                 running + schedule_change, "increase"))
        running += schedule_change
    else:
        magnitude = abs(schedule_change)
        bars.append(WaterfallBar("Schedule Change", running - magnitude, magnitude, schedule_change,
                                 running - magnitude, "decrease"))
        running -= magnitude

    for name, amount in (("Contraction", contraction), ("Churn", churn)):
        magnitude = abs(amount)
        bars.append(WaterfallBar(name, running - magnitude, magnitude, -magnitude,
                                 running - magnitude, "decrease"))
        running -= magnitude

    bars.append(WaterfallBar("Ending ARR", 0, ending, ending, ending, "final"))
    return bars


@dataclass
class MovementSummary:
    start_month: Month
    end_month: Month
    lookback_period: int
    starting_arr: int
    ending_arr: int
    new_business: int
    expansion: int
    schedule_change: int
    contraction: int
    churn: int
    waterfall: List[WaterfallBar] = field(default_factory=list)

    @property
    def bridge_total(self) -> int:
        return (self.starting_arr + self.new_business + self.expansion + self.schedule_change
                + self.contraction + self.churn)

    @property
    def residual(self) -> int:
        """Actual ending ARR minus the bridge's running total"""
        return self.ending_arr - self.bridge_total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startMonth": str(self.start_month),
            "endMonth": str(self.end_month),
            "lookbackPeriod": self.lookback_period,
            "startingARR": self.starting_arr,
            "endingARR": self.ending_arr,
            "newBusiness": self.new_business,
            "expansion": self.expansion,
            "scheduleChange": self.schedule_change,
            "contraction": self.contraction,
            "churn": self.churn,
            "bridgeTotal": self.bridge_total,
            "residual": self.residual,
            "waterfall": [bar.to_dict() for bar in self.waterfall],
        }


# =============================================================================
# ENGINE
# =============================================================================

class MovementEngine:
    def __init__(self, dataset: ArrDataset, config: EngineConfig):
        self.dataset = dataset
        self.config = config

    def movement_summary(self, filters: MovementFilter) -> MovementSummary:
        window = lookback_window(selected_month(filters, self.config.anchor_month),
                                 filters.lookback_period)
        evaluator = FilterEvaluator(filters, self.dataset.index)
        actuals = MonthlyActuals.build(self.dataset, evaluator, months=window)

        starting = round_currency(actuals.get(window[0]).starting)
        ending = round_currency(actuals.get(window[-1]).ending)
        months = [actuals.get(m) for m in window]
        new_business = round_currency(sum((a.new_business for a in months), 0))
        expansion = round_currency(sum((a.expansion for a in months), 0))
        schedule_change = round_currency(sum((a.schedule_change for a in months), 0))
        contraction = -abs(round_currency(sum((a.contraction for a in months), 0)))
        churn = -abs(round_currency(sum((a.churn for a in months), 0)))

        summary = MovementSummary(
            start_month=window[0],
            end_month=window[-1],
            lookback_period=filters.lookback_period,
            starting_arr=starting,
            ending_arr=ending,
            new_business=new_business,
            expansion=expansion,
            schedule_change=schedule_change,
            contraction=contraction,
            churn=churn,
            waterfall=build_waterfall(starting, ending, new_business, expansion,
                                      schedule_change, contraction, churn),
        )
        if summary.residual:
            logger.debug(
                f"Waterfall {window[0]}..{window[-1]}: ending {ending} differs from "
                f"bridge {summary.bridge_total} by {summary.residual}"
            )
        return summary

    def movement_trend(self, filters: RevenueFilter) -> List[Dict[str, Any]]:
        """Monthly movement components from the trend start through the anchor month"""
        months = month_range(self.config.trend_start, self.config.anchor_month)
        evaluator = FilterEvaluator(filters, self.dataset.index)
        actuals = MonthlyActuals.build(self.dataset, evaluator, months=months)
        trend = []
        for month in sorted(actuals.by_month):
            agg = actuals.by_month[month]
            trend.append({
                "month": str(month),
                "date": month.first_day().isoformat(),
                "label": month.short_label(),
                "newBusiness": round_currency(agg.new_business),
                "expansion": round_currency(agg.expansion),
                "scheduleChange": round_currency(agg.schedule_change),
                "contraction": round_currency(agg.contraction),
                "churn": round_currency(agg.churn),
                "netChange": round_currency(agg.net_change),
            })
        return trend

    def customer_movements(self, filters: CustomerMovementFilter) -> Dict[str, Any]:
        window = lookback_window(selected_month(filters, self.config.anchor_month),
                                 filters.lookback_period)
        evaluator = FilterEvaluator(filters, self.dataset.index)
        movements = aggregate_customer_movements(self.dataset.arr_rows, window, evaluator)
        counts = movement_counts(movements)

        wanted = MovementType.from_filter_label(filters.movement_type)
        if wanted is not None:
            movements = [m for m in movements if m.movement_type == wanted]

        records = sort_records(
            [m.to_dict() for m in movements],
            filters.sort_field,
            filters.sort_direction,
            default_key=lambda r: abs(r["change"]),
        )
        return {
            "startMonth": str(window[0]),
            "endMonth": str(window[-1]),
            "movementCounts": counts,
            "customers": records,
        }
