"""
Customer Aggregator

Collapses the per-month, per-contract snapshot rows into one Customer per
contract as of a month boundary. Rows are grouped by contract, sorted newest
first, and the head of each group is the current state.
"""

import logging
from itertools import groupby
from typing import Dict, List, Optional, Tuple

from arr_dataset import ArrDataset
from arr_models import ArrSnapshotRow, Customer, MovementType, SubCategoryContribution
from arr_month import Month
from arr_reference_index import ReferenceIndex, effective_platform_track
from utils import normalize_region, round_currency

logger = logging.getLogger(__name__)

DEFAULT_REGION = "North America"
DEFAULT_VERTICAL = "Other Services"
DEFAULT_SEGMENT = "Enterprise"
UNALLOCATED = "Unallocated"


def row_movement_type(row: ArrSnapshotRow) -> MovementType:
    """Movement of a single snapshot row, by fixed precedence"""
    if row.new_business > 0:
        return MovementType.NEW
    if row.expansion > 0:
        return MovementType.EXPANSION
    if abs(row.schedule_change) > 0:
        return MovementType.SCHEDULE_CHANGE
    if row.contraction < 0:
        return MovementType.CONTRACTION
    if row.churn < 0:
        return MovementType.CHURN
    return MovementType.FLAT


def collapse_segment(segment: str) -> str:
    return "SMB" if segment == "SMB" else DEFAULT_SEGMENT


def allocate_products(current_arr: int, contributions: Tuple[SubCategoryContribution, ...],
                      year: int) -> Tuple[Dict[str, int], str]:
    """
    Split current ARR across sub-categories by the year-appropriate percentage.

    Returns (allocation, dominant sub-category). The dominant sub-category is
    the largest allocation, first encountered on ties; "Unallocated" when the
    contract has no contribution rows.
    """
    allocation: Dict[str, int] = {}
    dominant: Optional[str] = None
    dominant_amount = None
    for contribution in contributions:
        sub_category = contribution.sub_category
        if not sub_category:
            continue
        pct = contribution.pct_for_year(year)
        amount = round_currency(current_arr * pct / 100) if pct > 0 else 0
        if pct > 0:
            allocation[sub_category] = allocation.get(sub_category, 0) + amount
        if dominant_amount is None or amount > dominant_amount:
            dominant, dominant_amount = sub_category, amount
    return allocation, dominant or UNALLOCATED


def _build_customer(sow_id: str, rows: List[ArrSnapshotRow], index: ReferenceIndex,
                    as_of: Month) -> Customer:
    # rows are sorted newest first
    latest = rows[0]
    previous = rows[1] if len(rows) > 1 else None
    first = rows[-1]
    mapping = index.sow_for(sow_id)

    current_arr = round_currency(latest.ending)
    previous_arr = round_currency(previous.ending if previous else latest.starting)

    if latest.region:
        region = latest.region
    else:
        region = (normalize_region(mapping.region) if mapping else "") or DEFAULT_REGION
    vertical = latest.vertical or (mapping.vertical if mapping else "") or DEFAULT_VERTICAL
    segment = latest.segment or (mapping.segment_type if mapping else "") or DEFAULT_SEGMENT

    product_arr, dominant = allocate_products(
        current_arr, index.contributions.get(sow_id, ()), as_of.year
    )

    return Customer(
        id=f"CUST-{sow_id}",
        name=latest.customer_name,
        sow_id=sow_id,
        as_of_month=latest.snapshot_month,
        current_arr=current_arr,
        previous_arr=previous_arr,
        initial_arr=round_currency(first.ending),
        region=region,
        vertical=vertical,
        segment=collapse_segment(segment),
        platform=latest.platform_label,
        platform_track=effective_platform_track(
            latest.platform_track, latest.go_live, latest.snapshot_month
        ),
        go_live=latest.go_live,
        fees_type=index.fees_type_for(sow_id),
        movement_type=row_movement_type(latest),
        product_arr=product_arr,
        product_sub_category=dominant,
        contract_start_date=index.row_contract_start(latest),
        contract_end_date=latest.contract_end_date,
        renewal_risk=latest.renewal_risk,
    )


def build_customers(dataset: ArrDataset, as_of: Month) -> List[Customer]:
    """One Customer per contract id from the rows at or before `as_of`, ordered by contract id"""
    eligible = sorted(
        (r for r in dataset.arr_rows if r.sow_id and r.snapshot_month <= as_of),
        key=lambda r: (r.sow_id, r.snapshot_month),
        reverse=True,
    )
    index = dataset.index
    customers = [
        _build_customer(sow_id, list(rows), index, as_of)
        for sow_id, rows in groupby(eligible, key=lambda r: r.sow_id)
    ]
    customers.reverse()
    total = sum((c.current_arr for c in customers), 0)
    logger.debug(f"Built {len(customers)} customers as of {as_of} (ARR {total})")
    return customers
