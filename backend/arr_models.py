"""
ARR Data Models

Immutable records handed to the engine by the loader, plus the derived
Customer view and the closed label types shared by every analytical view.

Sign convention: contraction and churn are always stored as non-positive
amounts. Normalization happens once, in the from_record constructors.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from arr_month import Month
from utils import ZERO, clean_str, to_decimal


# =============================================================================
# ENUMS
# =============================================================================

class MovementType(str, Enum):
    """Movement classification of a contract or customer"""
    NEW = "New"
    EXPANSION = "Expansion"
    SCHEDULE_CHANGE = "ScheduleChange"
    CONTRACTION = "Contraction"
    CHURN = "Churn"
    FLAT = "Flat"

    @classmethod
    def from_filter_label(cls, label: Optional[str]) -> Optional["MovementType"]:
        """
        Map a UI filter label ("New Business", "Schedule Change", ...) or a
        raw value ("New", "ScheduleChange") to a member. Unknown labels
        return None, meaning "no movement filter".
        """
        text = clean_str(label)
        if not text:
            return None
        by_label = {
            "New Business": cls.NEW,
            "Schedule Change": cls.SCHEDULE_CHANGE,
        }
        if text in by_label:
            return by_label[text]
        try:
            return cls(text)
        except ValueError:
            return None


class PlatformTrack(str, Enum):
    QUANTUM = "Quantum"
    SMART = "SMART"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "PlatformTrack":
        """Anything other than an explicit Quantum label is SMART"""
        return cls.QUANTUM if clean_str(label) == cls.QUANTUM.value else cls.SMART


class LogoType(str, Enum):
    NEW_LOGO = "New Logo"
    RENEWAL = "Renewal"
    EXTENSION = "Extension"
    UPSELL = "Upsell"
    CROSS_SELL = "Cross-Sell"
    OTHER = "Other"

    @classmethod
    def normalize(cls, raw: Optional[str]) -> "LogoType":
        text = clean_str(raw)
        aliases = {
            "New": cls.NEW_LOGO,
            "New Logo": cls.NEW_LOGO,
            "Cross Sell": cls.CROSS_SELL,
            "Cross-Sell": cls.CROSS_SELL,
            "Renewal/Extn": cls.EXTENSION,
            "Renewal/Extension": cls.EXTENSION,
            "Extension": cls.EXTENSION,
            "Renewal": cls.RENEWAL,
            "Upsell": cls.UPSELL,
        }
        return aliases.get(text, cls.OTHER)

    @property
    def is_renewal(self) -> bool:
        return self in (LogoType.RENEWAL, LogoType.EXTENSION)

    @property
    def is_expansion(self) -> bool:
        return self in (LogoType.UPSELL, LogoType.CROSS_SELL)


CLOSED_STAGE_MARKERS = ("Closed Won", "Closed Lost", "Closed Dead", "Closed Declined")


# =============================================================================
# SOURCE RECORDS
# =============================================================================

@dataclass(frozen=True)
class ArrSnapshotRow:
    """One contract (SOW) in one snapshot month"""
    sow_id: str
    customer_name: str
    snapshot_month: Month
    starting: Decimal = ZERO
    new_business: Decimal = ZERO
    expansion: Decimal = ZERO
    schedule_change: Decimal = ZERO
    contraction: Decimal = ZERO  # <= 0
    churn: Decimal = ZERO        # <= 0
    ending: Decimal = ZERO
    region: str = ""
    vertical: str = ""
    segment: str = ""
    platform_track: str = ""
    go_live: Optional[Month] = None
    contract_start_date: str = ""
    contract_end_date: str = ""
    renewal_risk: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ArrSnapshotRow":
        return cls(
            sow_id=clean_str(record.get("SOW_ID")),
            customer_name=clean_str(record.get("Customer_Name")),
            snapshot_month=Month.parse(clean_str(record.get("Snapshot_Month"))),
            starting=to_decimal(record.get("Starting_ARR")),
            new_business=to_decimal(record.get("New_ARR")),
            expansion=to_decimal(record.get("Expansion_ARR")),
            schedule_change=to_decimal(record.get("Schedule_Change")),
            contraction=-abs(to_decimal(record.get("Contraction_ARR"))),
            churn=-abs(to_decimal(record.get("Churn_ARR"))),
            ending=to_decimal(record.get("Ending_ARR")),
            region=clean_str(record.get("Region")),
            vertical=clean_str(record.get("Vertical")),
            segment=clean_str(record.get("Segment")),
            platform_track=clean_str(record.get("Quantum_SMART")),
            go_live=Month.try_parse(clean_str(record.get("Quantum_GoLive_Date"))),
            contract_start_date=clean_str(record.get("Contract_Start_Date")),
            contract_end_date=clean_str(record.get("Contract_End_Date")),
            renewal_risk=clean_str(record.get("Renewal_Risk")),
        )

    @property
    def platform_label(self) -> str:
        return self.platform_track or PlatformTrack.SMART.value

    def identity_gap(self) -> Decimal:
        """ending - (starting + movements); non-zero beyond rounding is a data-quality signal"""
        return self.ending - (
            self.starting + self.new_business + self.expansion
            + self.schedule_change + self.contraction + self.churn
        )


@dataclass(frozen=True)
class PipelineSnapshotRow:
    """One deal in one pipeline snapshot month"""
    snapshot_month: Month
    deal_id: str
    customer_name: str
    license_acv: Decimal = ZERO
    deal_value: Decimal = ZERO
    logo_type: LogoType = LogoType.OTHER
    current_stage: str = ""
    probability: Decimal = ZERO
    expected_close_month: Optional[Month] = None
    region: str = ""
    vertical: str = ""
    segment: str = ""
    sub_category: str = ""
    deal_name: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PipelineSnapshotRow":
        return cls(
            snapshot_month=Month.parse(clean_str(record.get("Snapshot_Month"))),
            deal_id=clean_str(record.get("Pipeline_Deal_ID")),
            customer_name=clean_str(record.get("Customer_Name")),
            license_acv=to_decimal(record.get("License_ACV")),
            deal_value=to_decimal(record.get("Deal_Value")),
            logo_type=LogoType.normalize(record.get("Logo_Type")),
            current_stage=clean_str(record.get("Current_Stage")),
            probability=to_decimal(record.get("Probability")),
            expected_close_month=Month.try_parse(clean_str(record.get("Expected_Close_Date"))),
            region=clean_str(record.get("Region")),
            vertical=clean_str(record.get("Vertical")),
            segment=clean_str(record.get("Segment")),
            sub_category=clean_str(record.get("Product_Sub_Category")),
            deal_name=clean_str(record.get("Deal_Name")),
        )

    @property
    def is_closed(self) -> bool:
        return any(marker in self.current_stage for marker in CLOSED_STAGE_MARKERS)


@dataclass(frozen=True)
class SowMapping:
    """Contract reference data"""
    sow_id: str
    sow_name: str = ""
    vertical: str = ""
    region: str = ""
    fees_type: str = ""
    revenue_type: str = ""
    segment_type: str = ""
    start_date: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SowMapping":
        return cls(
            sow_id=clean_str(record.get("SOW_ID")),
            sow_name=clean_str(record.get("SOW_Name")),
            vertical=clean_str(record.get("Vertical")),
            region=clean_str(record.get("Region")),
            fees_type=clean_str(record.get("Fees_Type")),
            revenue_type=clean_str(record.get("Revenue_Type")),
            segment_type=clean_str(record.get("Segment_Type")),
            start_date=clean_str(record.get("Start_Date")),
        )


@dataclass(frozen=True)
class ProductCategoryMapping:
    sub_category: str
    category: str

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ProductCategoryMapping":
        return cls(
            sub_category=clean_str(record.get("Product_Sub_Category")),
            category=clean_str(record.get("Product_Category")),
        )


@dataclass(frozen=True)
class SubCategoryContribution:
    """Share of a contract's ARR attributed to a product sub-category, by year"""
    sow_id: str
    customer_name: str
    sub_category: str
    contributions: Tuple[Tuple[int, Decimal], ...] = ()  # sorted (year, pct)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SubCategoryContribution":
        """
        Accepts either a `contributions` mapping {year: pct} or wide
        `Pct_<year>` columns.
        """
        pcts: Dict[int, Decimal] = {}
        raw = record.get("contributions")
        if isinstance(raw, Mapping):
            for year, pct in raw.items():
                if str(year).strip().isdigit():
                    pcts[int(str(year).strip())] = to_decimal(pct)
        for key, value in record.items():
            if isinstance(key, str) and key.startswith("Pct_") and key[4:].isdigit():
                pcts[int(key[4:])] = to_decimal(value)
        return cls(
            sow_id=clean_str(record.get("SOW_ID")),
            customer_name=clean_str(record.get("Customer_Name")),
            sub_category=clean_str(record.get("Product_Sub_Category")),
            contributions=tuple(sorted(pcts.items())),
        )

    def pct_for_year(self, year: int) -> Decimal:
        """
        Year-appropriate percentage: years up to the first tracked year use
        the first column, years past the last tracked year use the last
        column, anything in between must match exactly.
        """
        if not self.contributions:
            return ZERO
        first_year, first_pct = self.contributions[0]
        last_year, last_pct = self.contributions[-1]
        if year <= first_year:
            return first_pct
        if year >= last_year:
            return last_pct
        return dict(self.contributions).get(year, ZERO)


@dataclass(frozen=True)
class CustomerNameMapping:
    """Legal (ARR) customer name and the name used in the pipeline"""
    arr_customer_name: str
    pipeline_customer_name: str

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CustomerNameMapping":
        return cls(
            arr_customer_name=clean_str(record.get("ARR_Customer_Name")),
            pipeline_customer_name=clean_str(record.get("Pipeline_Customer_Name")),
        )


# =============================================================================
# DERIVED
# =============================================================================

@dataclass
class Customer:
    """Current state of one contract, rebuilt from the snapshot rows on every call"""
    id: str
    name: str
    sow_id: str
    as_of_month: Month
    current_arr: int
    previous_arr: int
    initial_arr: int
    region: str
    vertical: str
    segment: str
    platform: str
    platform_track: PlatformTrack
    go_live: Optional[Month]
    fees_type: str
    movement_type: MovementType
    product_arr: Dict[str, int] = field(default_factory=dict)
    product_sub_category: str = "Unallocated"
    contract_start_date: str = ""
    contract_end_date: str = ""
    renewal_risk: str = ""

    @property
    def products(self):
        return list(self.product_arr.keys())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sowId": self.sow_id,
            "asOfMonth": str(self.as_of_month),
            "currentARR": self.current_arr,
            "previousARR": self.previous_arr,
            "initialARR": self.initial_arr,
            "region": self.region,
            "vertical": self.vertical,
            "segment": self.segment,
            "platform": self.platform,
            "quantumSmart": self.platform_track.value,
            "quantumGoLiveDate": str(self.go_live) if self.go_live else None,
            "feesType": self.fees_type,
            "movementType": self.movement_type.value,
            "products": self.products,
            "productARR": dict(self.product_arr),
            "productSubCategory": self.product_sub_category,
            "contractStartDate": self.contract_start_date,
            "contractEndDate": self.contract_end_date,
            "renewalRisk": self.renewal_risk,
        }
