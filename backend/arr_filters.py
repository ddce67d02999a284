"""
Filter Normalizer

Request filters for every ARR view. The models accept the loose request shape
(scalars or lists, blanks, "All") and normalize it; FilterEvaluator binds a
normalized filter to a ReferenceIndex and decides whether a snapshot row,
pipeline row or Customer passes.

Year/month select the reporting period (see selected_month); they are never
row predicates.
"""

import logging
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from arr_models import ArrSnapshotRow, Customer, LogoType, PipelineSnapshotRow, PlatformTrack
from arr_month import MONTH_NAME_TO_NUM, Month
from arr_reference_index import ReferenceIndex, effective_platform_track

logger = logging.getLogger(__name__)

ALL = "All"
LOOKBACK_PERIODS = (1, 3, 6, 12)
# Selected years stay far enough from date limits for lookback and year-end shifts
MIN_YEAR = 1900
MAX_YEAR = 2999


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    cleaned = []
    for item in items:
        text = str(item).strip() if item is not None else ""
        if text and text != ALL and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _single_select(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    return text or ALL


def _optional_text(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


# =============================================================================
# REQUEST MODELS
# =============================================================================

class FilterModel(BaseModel):
    """camelCase request keys, unknown keys ignored, immutable once built"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              extra="ignore", frozen=True)


class RevenueFilter(FilterModel):

    year: List[str] = []
    month: List[str] = []
    region: List[str] = []
    vertical: List[str] = []
    segment: List[str] = []
    platform: List[str] = []
    quantum_smart: Literal["All", "Quantum", "SMART"] = ALL
    fees_type: str = ALL

    @field_validator("year", "month", "region", "vertical", "segment", "platform", mode="before")
    @classmethod
    def _coerce_list(cls, value):
        return _as_list(value)

    @field_validator("year")
    @classmethod
    def _check_years(cls, value):
        for year in value:
            if not (len(year) == 4 and year.isdigit()):
                raise ValueError(f"year must be YYYY, got {year!r}")
            if not MIN_YEAR <= int(year) <= MAX_YEAR:
                raise ValueError(f"year must be between {MIN_YEAR} and {MAX_YEAR}, got {year}")
        return value

    @field_validator("month")
    @classmethod
    def _check_months(cls, value):
        normalized = []
        for name in value:
            short = name[:3].title()
            if short not in MONTH_NAME_TO_NUM:
                raise ValueError(f"unknown month name {name!r}")
            normalized.append(short)
        return normalized

    @field_validator("quantum_smart", "fees_type", mode="before")
    @classmethod
    def _coerce_single(cls, value):
        return _single_select(value)

    @property
    def is_empty(self) -> bool:
        return not (self.region or self.vertical or self.segment or self.platform
                    or self.quantum_smart != ALL or self.fees_type != ALL)


class MovementFilter(RevenueFilter):
    lookback_period: int = 1

    @field_validator("lookback_period", mode="before")
    @classmethod
    def _check_lookback(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return 1
        lookback = int(value)
        if lookback not in LOOKBACK_PERIODS:
            raise ValueError(f"lookbackPeriod must be one of {LOOKBACK_PERIODS}")
        return lookback


class SortableFilter(FilterModel):
    sort_field: Optional[str] = None
    sort_direction: Optional[Literal["asc", "desc"]] = None

    @field_validator("sort_field", mode="before")
    @classmethod
    def _blank_field(cls, value):
        return _optional_text(value)

    @field_validator("sort_direction", mode="before")
    @classmethod
    def _lower_direction(cls, value):
        text = _optional_text(value)
        return text.lower() if text else None


class CustomerMovementFilter(MovementFilter, SortableFilter):
    movement_type: Optional[str] = None

    @field_validator("movement_type", mode="before")
    @classmethod
    def _blank_movement(cls, value):
        return _optional_text(value)


class CustomerListFilter(RevenueFilter, SortableFilter):
    search: Optional[str] = None
    renewals_in_target_year: bool = False
    renewal_risk: Optional[str] = None

    @field_validator("search", "renewal_risk", mode="before")
    @classmethod
    def _blank_text(cls, value):
        text = _optional_text(value)
        return None if text == ALL else text


class ProductFilter(RevenueFilter):
    product_category: str = ALL
    product_sub_category: str = ALL
    search: Optional[str] = None

    @field_validator("product_category", "product_sub_category", mode="before")
    @classmethod
    def _coerce_product(cls, value):
        return _single_select(value)

    @field_validator("search", mode="before")
    @classmethod
    def _blank_search(cls, value):
        return _optional_text(value)


def selected_month(filters: RevenueFilter, anchor: Month) -> Month:
    """
    Reporting month of a request: first year + first month name.
    No year means the anchor month (or the named month in the anchor's year);
    a year without a month means December of that year.
    """
    if filters.year:
        return Month.from_names(filters.year[0], filters.month[0] if filters.month else None)
    if filters.month:
        return Month(anchor.year, MONTH_NAME_TO_NUM[filters.month[0]])
    return anchor


# =============================================================================
# EVALUATION
# =============================================================================

class FilterEvaluator:
    """A normalized filter bound to the reference index it resolves against"""

    def __init__(self, filters: RevenueFilter, index: ReferenceIndex):
        self.filters = filters
        self.index = index
        self._region = set(filters.region)
        self._vertical = set(filters.vertical)
        self._segment = set(filters.segment)
        self._platform = set(filters.platform)
        self._track = None if filters.quantum_smart == ALL else PlatformTrack(filters.quantum_smart)
        self._fees = None if filters.fees_type == ALL else filters.fees_type

    @staticmethod
    def effective_platform_track(row: ArrSnapshotRow) -> PlatformTrack:
        """Track of an ARR row evaluated at the row's own snapshot month"""
        return effective_platform_track(row.platform_track, row.go_live, row.snapshot_month)

    def pipeline_track(self, row: PipelineSnapshotRow) -> Optional[PlatformTrack]:
        if row.logo_type == LogoType.NEW_LOGO:
            return PlatformTrack.QUANTUM
        track = self.index.track_for_customer(row.customer_name)
        if track is None:
            logger.debug(f"No platform track for pipeline customer {row.customer_name!r}")
        return track

    def arr_row_passes(self, row: ArrSnapshotRow) -> bool:
        if self._region and self.index.row_region(row) not in self._region:
            return False
        if self._vertical and self.index.row_vertical(row) not in self._vertical:
            return False
        if self._segment and self.index.row_segment(row) not in self._segment:
            return False
        if self._platform and row.platform_label not in self._platform:
            return False
        if self._track is not None and self.effective_platform_track(row) != self._track:
            return False
        if self._fees is not None and self.index.fees_type_for(row.sow_id) != self._fees:
            return False
        return True

    def customer_passes(self, customer: Customer) -> bool:
        if self._region and customer.region not in self._region:
            return False
        if self._vertical and customer.vertical not in self._vertical:
            return False
        if self._segment and customer.segment not in self._segment:
            return False
        if self._platform and customer.platform not in self._platform:
            return False
        if self._track is not None and customer.platform_track != self._track:
            return False
        if self._fees is not None and customer.fees_type != self._fees:
            return False
        return True

    def pipeline_row_passes(self, row: PipelineSnapshotRow) -> bool:
        if self._region and row.region not in self._region:
            return False
        if self._vertical and row.vertical not in self._vertical:
            return False
        if self._segment and row.segment and row.segment not in self._segment:
            return False
        if self._track is not None and self.pipeline_track(row) != self._track:
            return False
        return True
