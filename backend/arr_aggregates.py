"""
Monthly ARR aggregates and pipeline buckets shared by the overview, trend and
movement engines.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from arr_dataset import ArrDataset
from arr_filters import FilterEvaluator
from arr_models import ArrSnapshotRow, PipelineSnapshotRow
from arr_month import Month
from utils import ZERO


@dataclass
class MonthAggregate:
    """Sum of every ARR component over the rows of one month"""
    starting: Decimal = ZERO
    new_business: Decimal = ZERO
    expansion: Decimal = ZERO
    schedule_change: Decimal = ZERO
    contraction: Decimal = ZERO  # <= 0
    churn: Decimal = ZERO        # <= 0
    ending: Decimal = ZERO
    row_count: int = 0

    def add(self, row: ArrSnapshotRow) -> None:
        self.starting += row.starting
        self.new_business += row.new_business
        self.expansion += row.expansion
        self.schedule_change += row.schedule_change
        self.contraction += row.contraction
        self.churn += row.churn
        self.ending += row.ending
        self.row_count += 1

    @property
    def net_change(self) -> Decimal:
        return (self.new_business + self.expansion + self.schedule_change
                + self.contraction + self.churn)


class MonthlyActuals:
    """Filtered ARR rows aggregated per snapshot month"""

    def __init__(self, by_month: Dict[Month, MonthAggregate]):
        self.by_month = by_month

    @classmethod
    def build(cls, dataset: ArrDataset, evaluator: FilterEvaluator,
              months: Optional[Iterable[Month]] = None) -> "MonthlyActuals":
        wanted = set(months) if months is not None else None
        by_month: Dict[Month, MonthAggregate] = {}
        for row in dataset.arr_rows:
            if wanted is not None and row.snapshot_month not in wanted:
                continue
            if not evaluator.arr_row_passes(row):
                continue
            by_month.setdefault(row.snapshot_month, MonthAggregate()).add(row)
        return cls(by_month)

    def get(self, month: Month) -> MonthAggregate:
        return self.by_month.get(month) or MonthAggregate()

    def ending(self, month: Month) -> Decimal:
        return self.get(month).ending

    def last_actual(self, anchor: Month) -> Decimal:
        """Ending ARR of the latest non-zero month at or before the anchor"""
        for month in sorted((m for m in self.by_month if m <= anchor), reverse=True):
            if self.ending(month) != 0:
                return self.ending(month)
        return ZERO

    def forecast_base(self, month: Month, anchor: Month) -> Decimal:
        """The month's own aggregate when non-zero, else the last non-zero actual"""
        own = self.ending(month)
        if own != 0:
            return own
        return self.last_actual(anchor)


def open_pipeline(dataset: ArrDataset, evaluator: FilterEvaluator) -> List[PipelineSnapshotRow]:
    """Open deals of the latest pipeline snapshot that pass the filter"""
    return [r for r in dataset.open_pipeline_rows if evaluator.pipeline_row_passes(r)]


def pipeline_acv(rows: Iterable[PipelineSnapshotRow], after: Month, through: Month,
                 logo_filter=None) -> Decimal:
    """License ACV of deals closing in (after, through], optionally restricted by logo type"""
    total = ZERO
    for row in rows:
        close = row.expected_close_month
        if close is None or not (after < close <= through):
            continue
        if logo_filter is not None and not logo_filter(row.logo_type):
            continue
        total += row.license_acv
    return total
