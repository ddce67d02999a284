"""
Reference Index

Lookup tables derived from the reference collections of one dataset:
contract metadata, sub-category -> category, pipeline name -> ARR name,
product contribution rows per contract, and the customer -> platform track
index used to classify pipeline deals.

Built once per dataset (see ArrDataset.index); never mutated afterwards.
"""

import logging
from functools import cached_property
from itertools import groupby
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from arr_models import (
    ArrSnapshotRow, CustomerNameMapping, PlatformTrack, ProductCategoryMapping,
    SowMapping, SubCategoryContribution,
)
from arr_month import Month
from utils import normalize_region

if TYPE_CHECKING:
    from arr_dataset import ArrDataset

logger = logging.getLogger(__name__)

OTHER_CATEGORY = "Other"
DEFAULT_FEES_TYPE = "Fees"


def effective_platform_track(label: Optional[str], go_live: Optional[Month],
                             month: Month) -> PlatformTrack:
    """
    Platform track of a contract as of `month`.

    With a go-live month the track is SMART strictly before it and Quantum
    from it onwards; without one the row's own label applies.
    """
    if go_live is not None:
        return PlatformTrack.QUANTUM if month >= go_live else PlatformTrack.SMART
    return PlatformTrack.from_label(label)


class ReferenceIndex:
    def __init__(self, sow: Dict[str, SowMapping], category: Dict[str, str],
                 alias: Dict[str, str],
                 contributions: Dict[str, Tuple[SubCategoryContribution, ...]],
                 arr_rows: Tuple[ArrSnapshotRow, ...] = ()):
        self.sow = sow
        self.category = category
        self.alias = alias
        self.contributions = contributions
        self._arr_rows = arr_rows

    @classmethod
    def build(cls, dataset: "ArrDataset") -> "ReferenceIndex":
        return cls.from_tables(
            sow_mappings=dataset.sow_mappings,
            product_categories=dataset.product_categories,
            name_mappings=dataset.customer_name_mappings,
            contributions=dataset.sub_category_contributions,
            arr_rows=dataset.arr_rows,
        )

    @classmethod
    def from_tables(cls, sow_mappings: Iterable[SowMapping] = (),
                    product_categories: Iterable[ProductCategoryMapping] = (),
                    name_mappings: Iterable[CustomerNameMapping] = (),
                    contributions: Iterable[SubCategoryContribution] = (),
                    arr_rows: Iterable[ArrSnapshotRow] = ()) -> "ReferenceIndex":
        sow = {m.sow_id: m for m in sow_mappings if m.sow_id}
        category = {m.sub_category: m.category for m in product_categories if m.sub_category}
        alias = {
            m.pipeline_customer_name: m.arr_customer_name
            for m in name_mappings
            if m.pipeline_customer_name and m.arr_customer_name
        }

        by_sow: Dict[str, List[SubCategoryContribution]] = {}
        for c in contributions:
            if c.sow_id:
                by_sow.setdefault(c.sow_id, []).append(c)

        logger.debug(
            f"Reference index: {len(sow)} contracts, {len(category)} sub-categories, "
            f"{len(alias)} aliases, {len(by_sow)} contracts with contributions"
        )
        return cls(
            sow=sow,
            category=category,
            alias=alias,
            contributions={k: tuple(v) for k, v in by_sow.items()},
            arr_rows=tuple(arr_rows),
        )

    # -------------------------------------------------------------------------
    # Platform track index
    # -------------------------------------------------------------------------

    @cached_property
    def platform_track(self) -> Dict[str, PlatformTrack]:
        """Customer name -> effective track at that customer's most recent ARR month"""
        named = sorted(
            (r for r in self._arr_rows if r.customer_name),
            key=lambda r: (r.customer_name, r.snapshot_month, r.sow_id),
        )
        index: Dict[str, PlatformTrack] = {}
        for name, rows in groupby(named, key=lambda r: r.customer_name):
            latest = list(rows)[-1]
            index[name] = effective_platform_track(
                latest.platform_track, latest.go_live, latest.snapshot_month
            )
        logger.debug(f"Platform track index built for {len(index)} customers")
        return index

    def track_for_customer(self, name: str) -> Optional[PlatformTrack]:
        """Direct lookup, then through the pipeline -> ARR name alias"""
        track = self.platform_track.get(name)
        if track is None and name in self.alias:
            track = self.platform_track.get(self.alias[name])
        return track

    # -------------------------------------------------------------------------
    # Row attribute resolution
    # -------------------------------------------------------------------------

    def sow_for(self, sow_id: str) -> Optional[SowMapping]:
        return self.sow.get(sow_id)

    def category_for(self, sub_category: str) -> str:
        return self.category.get(sub_category) or OTHER_CATEGORY

    def fees_type_for(self, sow_id: str) -> str:
        mapping = self.sow.get(sow_id)
        return (mapping.fees_type if mapping else "") or DEFAULT_FEES_TYPE

    def sow_name_for(self, sow_id: str) -> str:
        mapping = self.sow.get(sow_id)
        return (mapping.sow_name if mapping else "") or f"SOW {sow_id}"

    def row_region(self, row: ArrSnapshotRow) -> str:
        if row.region:
            return row.region
        mapping = self.sow.get(row.sow_id)
        return normalize_region(mapping.region) if mapping else ""

    def row_vertical(self, row: ArrSnapshotRow) -> str:
        if row.vertical:
            return row.vertical
        mapping = self.sow.get(row.sow_id)
        return mapping.vertical if mapping else ""

    def row_segment(self, row: ArrSnapshotRow) -> str:
        if row.segment:
            return row.segment
        mapping = self.sow.get(row.sow_id)
        return mapping.segment_type if mapping else ""

    def row_contract_start(self, row: ArrSnapshotRow) -> str:
        if row.contract_start_date:
            return row.contract_start_date
        mapping = self.sow.get(row.sow_id)
        return mapping.start_date if mapping else ""
