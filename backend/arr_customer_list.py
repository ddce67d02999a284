"""
Customer list: one row per customer name for the selected month with the
contract (SOW) detail nested underneath.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from arr_config import EngineConfig
from arr_dataset import ArrDataset
from arr_filters import CustomerListFilter, FilterEvaluator, selected_month
from arr_models import ArrSnapshotRow
from arr_month import Month
from utils import ZERO, round_currency, sort_records

# Higher is worse
RISK_SEVERITY = {"Lost": 5, "High Risk": 4, "Mgmt Approval": 3, "In Process": 2, "Win/PO": 1}


@dataclass
class ContractDetail:
    sow_id: str
    sow_name: str
    ending_arr: Decimal
    fees_type: str
    contract_start_date: str
    contract_end_date: str
    renewal_risk: str
    quantum_smart: str

    def ends_in(self, year: int) -> bool:
        end = Month.try_parse(self.contract_end_date)
        return end is not None and end.year == year

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sowId": self.sow_id,
            "sowName": self.sow_name,
            "endingARR": round_currency(self.ending_arr),
            "feesType": self.fees_type,
            "contractStartDate": self.contract_start_date,
            "contractEndDate": self.contract_end_date,
            "renewalRisk": self.renewal_risk,
            "quantumSmart": self.quantum_smart,
        }


@dataclass
class CustomerListEntry:
    customer_name: str
    region: str = ""
    vertical: str = ""
    segment: str = ""
    contracts: List[ContractDetail] = field(default_factory=list)

    @property
    def total_arr(self) -> Decimal:
        return sum((c.ending_arr for c in self.contracts), ZERO)

    @property
    def earliest_renewal_date(self) -> str:
        dates = [c.contract_end_date for c in self.contracts if c.contract_end_date]
        return min(dates) if dates else ""

    @property
    def highest_risk(self) -> str:
        ranked = [c.renewal_risk for c in self.contracts if RISK_SEVERITY.get(c.renewal_risk)]
        return max(ranked, key=lambda r: RISK_SEVERITY[r]) if ranked else ""

    def to_dict(self) -> Dict[str, Any]:
        contracts = sorted(self.contracts, key=lambda c: c.ending_arr, reverse=True)
        return {
            "customerName": self.customer_name,
            "totalARR": round_currency(self.total_arr),
            "region": self.region,
            "vertical": self.vertical,
            "segment": self.segment,
            "contractCount": len(self.contracts),
            "earliestRenewalDate": self.earliest_renewal_date,
            "highestRisk": self.highest_risk,
            "contracts": [c.to_dict() for c in contracts],
        }


def _contract_detail(row: ArrSnapshotRow, evaluator: FilterEvaluator) -> ContractDetail:
    index = evaluator.index
    return ContractDetail(
        sow_id=row.sow_id,
        sow_name=index.sow_name_for(row.sow_id),
        ending_arr=row.ending,
        fees_type=index.fees_type_for(row.sow_id),
        contract_start_date=index.row_contract_start(row),
        contract_end_date=row.contract_end_date,
        renewal_risk=row.renewal_risk,
        quantum_smart=evaluator.effective_platform_track(row).value,
    )


def customer_list(dataset: ArrDataset, config: EngineConfig,
                  filters: CustomerListFilter) -> List[Dict[str, Any]]:
    month = selected_month(filters, config.anchor_month)
    evaluator = FilterEvaluator(filters, dataset.index)
    index = dataset.index

    entries: Dict[str, CustomerListEntry] = {}
    for row in dataset.arr_rows:
        if row.snapshot_month != month or not evaluator.arr_row_passes(row):
            continue
        if row.starting == 0 and row.ending == 0:
            continue
        entry = entries.get(row.customer_name)
        if entry is None:
            entry = entries[row.customer_name] = CustomerListEntry(row.customer_name)
        entry.region = entry.region or index.row_region(row)
        entry.vertical = entry.vertical or index.row_vertical(row)
        entry.segment = entry.segment or index.row_segment(row)
        entry.contracts.append(_contract_detail(row, evaluator))

    target_year = config.target_year
    selected = list(entries.values())
    if filters.search:
        needle = filters.search.lower()
        selected = [e for e in selected if needle in e.customer_name.lower()]
    if filters.renewals_in_target_year:
        selected = [e for e in selected if any(c.ends_in(target_year) for c in e.contracts)]
    if filters.renewal_risk:
        selected = [
            e for e in selected
            if any(c.ends_in(target_year) and c.renewal_risk == filters.renewal_risk
                   for c in e.contracts)
        ]

    return sort_records(
        [e.to_dict() for e in selected],
        filters.sort_field,
        filters.sort_direction,
        default_key=lambda r: r["totalARR"],
    )
