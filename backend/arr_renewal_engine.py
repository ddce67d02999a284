"""
Renewal Risk & Cohort Analyzer

- Renewal risk: contracts in the selected month whose contract ends in the
  target year, as a risk-label distribution and a month-by-month calendar.
- Cohorts: contracts grouped by contract start year, initial vs current ARR.
- Churn: churned contracts over a lookback window.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Set

from arr_config import EngineConfig
from arr_customer_aggregator import build_customers
from arr_dataset import ArrDataset
from arr_filters import FilterEvaluator, MovementFilter, RevenueFilter, selected_month
from arr_month import Month, lookback_window
from utils import ZERO, round_currency, round_pct, safe_pct

logger = logging.getLogger(__name__)

# Most severe first; unknown labels sort after these
RISK_DISPLAY_ORDER = ["High Risk", "Lost", "Mgmt Approval", "In Process", "Win/PO"]


def is_placeholder_risk(label: str) -> bool:
    text = (label or "").strip()
    return not text or text.startswith('"') or text == "#N/A"


def risk_sort_key(label: str):
    try:
        return (RISK_DISPLAY_ORDER.index(label), label)
    except ValueError:
        return (len(RISK_DISPLAY_ORDER), label)


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass
class RenewalMonth:
    month: Month
    contract_count: int = 0
    total_arr: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": str(self.month),
            "label": self.month.label(),
            "contractCount": self.contract_count,
            "totalARR": round_currency(self.total_arr),
        }


@dataclass
class RenewalRiskReport:
    target_year: int
    selected_month: Month
    distribution: Dict[str, int] = field(default_factory=dict)
    calendar: Dict[Month, RenewalMonth] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        ordered = sorted(self.distribution.items(), key=lambda kv: risk_sort_key(kv[0]))
        months = [self.calendar[m] for m in sorted(self.calendar)]
        return {
            "targetYear": self.target_year,
            "selectedMonth": str(self.selected_month),
            "riskDistribution": [{"risk": risk, "count": count} for risk, count in ordered],
            "renewalCalendar": [m.to_dict() for m in months],
            "totalContracts": sum(m.contract_count for m in months),
            "totalARR": round_currency(sum((m.total_arr for m in months), ZERO)),
        }


@dataclass
class Cohort:
    cohort: str
    customer_names: Set[str] = field(default_factory=set)
    contract_count: int = 0
    initial_arr: int = 0
    current_arr: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cohort": self.cohort,
            "customerCount": len(self.customer_names),
            "contractCount": self.contract_count,
            "initialARR": self.initial_arr,
            "currentARR": self.current_arr,
            "netRetention": round_pct(safe_pct(Decimal(self.current_arr), Decimal(self.initial_arr))),
        }


# =============================================================================
# ENGINE
# =============================================================================

class RenewalEngine:
    def __init__(self, dataset: ArrDataset, config: EngineConfig):
        self.dataset = dataset
        self.config = config

    def renewal_risk(self, filters: RevenueFilter) -> RenewalRiskReport:
        month = selected_month(filters, self.config.anchor_month)
        target_year = self.config.target_year
        evaluator = FilterEvaluator(filters, self.dataset.index)
        report = RenewalRiskReport(target_year=target_year, selected_month=month)

        for row in self.dataset.arr_rows:
            if row.snapshot_month != month or not evaluator.arr_row_passes(row):
                continue
            end_month = Month.try_parse(row.contract_end_date)
            if end_month is None or end_month.year != target_year:
                continue

            if not is_placeholder_risk(row.renewal_risk):
                label = row.renewal_risk.strip()
                report.distribution[label] = report.distribution.get(label, 0) + 1

            entry = report.calendar.get(end_month)
            if entry is None:
                entry = report.calendar[end_month] = RenewalMonth(end_month)
            entry.contract_count += 1
            entry.total_arr += row.ending
        return report

    def cohort_analysis(self, filters: RevenueFilter) -> List[Cohort]:
        """
        Contracts grouped by contract start year. Initial ARR is each contract's
        ending ARR in its first snapshot month; current ARR is as of the
        selected month (capped at the anchor).
        """
        as_of = min(selected_month(filters, self.config.anchor_month), self.config.anchor_month)
        evaluator = FilterEvaluator(filters, self.dataset.index)
        cohorts: Dict[str, Cohort] = {}
        skipped = 0
        for customer in build_customers(self.dataset, as_of):
            if not evaluator.customer_passes(customer):
                continue
            start_year = customer.contract_start_date[:4]
            if not start_year.isdigit():
                skipped += 1
                continue
            cohort = cohorts.get(start_year)
            if cohort is None:
                cohort = cohorts[start_year] = Cohort(start_year)
            cohort.customer_names.add(customer.name)
            cohort.contract_count += 1
            cohort.initial_arr += customer.initial_arr
            cohort.current_arr += customer.current_arr
        if skipped:
            logger.debug(f"Cohort analysis: {skipped} contracts without a start date")
        return [cohorts[k] for k in sorted(cohorts)]

    def churn_analysis(self, filters: MovementFilter) -> Dict[str, Any]:
        window = lookback_window(selected_month(filters, self.config.anchor_month),
                                 filters.lookback_period)
        evaluator = FilterEvaluator(filters, self.dataset.index)
        churned = [
            row for row in self.dataset.arr_rows
            if window[0] <= row.snapshot_month <= window[-1]
            and row.churn < 0
            and evaluator.arr_row_passes(row)
        ]
        by_month: Dict[Month, Decimal] = {}
        for row in churned:
            by_month[row.snapshot_month] = by_month.get(row.snapshot_month, ZERO) + abs(row.churn)
        return {
            "startMonth": str(window[0]),
            "endMonth": str(window[-1]),
            "churnedContracts": len(churned),
            "churnedARR": round_currency(sum((abs(r.churn) for r in churned), ZERO)),
            "uniqueCustomers": len({r.customer_name for r in churned}),
            "byMonth": [
                {"month": str(m), "churnedARR": round_currency(by_month[m])}
                for m in sorted(by_month)
            ],
        }
