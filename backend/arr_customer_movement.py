"""
Customer Movement Classifier

Re-aggregates a lookback window per customer name and assigns each customer
exactly one MovementType.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from arr_filters import FilterEvaluator
from arr_models import ArrSnapshotRow, MovementType
from arr_month import Month
from utils import ZERO, round_currency, round_pct, safe_pct


def classify_movement(starting: Decimal, ending: Decimal, new_business: Decimal,
                      expansion: Decimal, schedule_change: Decimal,
                      contraction: Decimal, churn: Decimal) -> MovementType:
    """
    Precedence: Churn (churn and nothing left), New (new business from zero),
    Expansion (net up with expansion), Contraction (net down or any contraction),
    ScheduleChange, Flat.
    """
    change = ending - starting
    if churn != 0 and ending == 0:
        return MovementType.CHURN
    if new_business != 0 and starting == 0:
        return MovementType.NEW
    if change > 0 and expansion != 0:
        return MovementType.EXPANSION
    if change < 0 or contraction < 0:
        return MovementType.CONTRACTION
    if schedule_change != 0:
        return MovementType.SCHEDULE_CHANGE
    return MovementType.FLAT


@dataclass
class CustomerMovement:
    customer_name: str
    starting: Decimal = ZERO
    ending: Decimal = ZERO
    new_business: Decimal = ZERO
    expansion: Decimal = ZERO
    schedule_change: Decimal = ZERO
    contraction: Decimal = ZERO  # <= 0
    churn: Decimal = ZERO        # <= 0

    @property
    def change(self) -> Decimal:
        return self.ending - self.starting

    @property
    def movement_type(self) -> MovementType:
        return classify_movement(
            self.starting, self.ending, self.new_business, self.expansion,
            self.schedule_change, self.contraction, self.churn,
        )

    @property
    def change_percent(self) -> Decimal:
        if self.starting > 0:
            return safe_pct(self.change, self.starting)
        return Decimal("100") if self.ending > 0 else ZERO

    @property
    def nrr(self) -> Decimal:
        """(starting + expansion + schedule - |contraction| - |churn|) / starting"""
        if self.starting <= 0:
            return ZERO
        return safe_pct(self.starting + self.expansion + self.schedule_change
                        + self.contraction + self.churn, self.starting)

    @property
    def grr(self) -> Decimal:
        if self.starting <= 0:
            return ZERO
        return safe_pct(self.starting + self.schedule_change
                        + self.contraction + self.churn, self.starting)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customerName": self.customer_name,
            "startingARR": round_currency(self.starting),
            "endingARR": round_currency(self.ending),
            "newBusiness": round_currency(self.new_business),
            "expansion": round_currency(self.expansion),
            "scheduleChange": round_currency(self.schedule_change),
            "contraction": round_currency(self.contraction),
            "churn": round_currency(self.churn),
            "change": round_currency(self.change),
            "changePercent": round_pct(self.change_percent),
            "nrr": round_pct(self.nrr),
            "grr": round_pct(self.grr),
            "movementType": self.movement_type.value,
        }


def aggregate_customer_movements(rows: Iterable[ArrSnapshotRow], window: List[Month],
                                 evaluator: FilterEvaluator) -> List[CustomerMovement]:
    """
    Per customer name over `window`: starting from the first month, ending from the
    last month, every other component summed across the window. Customers that are
    Flat with no net change are dropped.
    """
    if not window:
        return []
    first, last = window[0], window[-1]
    by_name: Dict[str, CustomerMovement] = {}
    for row in rows:
        if not (first <= row.snapshot_month <= last):
            continue
        if not evaluator.arr_row_passes(row):
            continue
        movement = by_name.get(row.customer_name)
        if movement is None:
            movement = by_name[row.customer_name] = CustomerMovement(row.customer_name)
        if row.snapshot_month == first:
            movement.starting += row.starting
        if row.snapshot_month == last:
            movement.ending += row.ending
        movement.new_business += row.new_business
        movement.expansion += row.expansion
        movement.schedule_change += row.schedule_change
        movement.contraction += row.contraction
        movement.churn += row.churn

    return [
        m for m in by_name.values()
        if m.movement_type != MovementType.FLAT or m.change != 0
    ]


def movement_counts(movements: Iterable[CustomerMovement]) -> Dict[str, int]:
    """Customer count per movement type, every type present"""
    counts = {t.value: 0 for t in MovementType}
    for m in movements:
        counts[m.movement_type.value] += 1
    return counts
