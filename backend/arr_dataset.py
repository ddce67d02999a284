"""
ARR Dataset

Single ingestion point for the engine. Loader records (or DataFrames with the
same columns) are converted to immutable rows here, signs and logo types are
normalized here, and the derived reference index is cached on the instance.

Reloading data means building a new ArrDataset.
"""

import logging
from functools import cached_property
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, TypeVar

import pandas as pd

from arr_models import (
    ArrSnapshotRow, CustomerNameMapping, PipelineSnapshotRow, ProductCategoryMapping,
    SowMapping, SubCategoryContribution,
)
from arr_month import Month
from arr_reference_index import ReferenceIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Identity violations above this are logged as data-quality signals
IDENTITY_TOLERANCE = 1


def _parse_rows(records: Optional[Iterable[Mapping[str, Any]]],
                parser: Callable[[Mapping[str, Any]], T], kind: str) -> Tuple[T, ...]:
    rows: List[T] = []
    skipped = 0
    for record in records or ():
        try:
            rows.append(parser(record))
        except ValueError as e:
            skipped += 1
            logger.warning(f"Skipping {kind} row: {e}")
    if skipped:
        logger.warning(f"Skipped {skipped} unparseable {kind} rows")
    return tuple(rows)


def _frame_records(frame: Optional[pd.DataFrame]) -> List[Mapping[str, Any]]:
    if frame is None or frame.empty:
        return []
    return frame.to_dict(orient="records")


class ArrDataset:
    """Immutable snapshot of every collection the engine reads"""

    def __init__(self,
                 arr_rows: Iterable[ArrSnapshotRow] = (),
                 pipeline_rows: Iterable[PipelineSnapshotRow] = (),
                 sow_mappings: Iterable[SowMapping] = (),
                 product_categories: Iterable[ProductCategoryMapping] = (),
                 sub_category_contributions: Iterable[SubCategoryContribution] = (),
                 customer_name_mappings: Iterable[CustomerNameMapping] = ()):
        self.arr_rows = tuple(arr_rows)
        self.pipeline_rows = tuple(pipeline_rows)
        self.sow_mappings = tuple(sow_mappings)
        self.product_categories = tuple(product_categories)
        self.sub_category_contributions = tuple(sub_category_contributions)
        self.customer_name_mappings = tuple(customer_name_mappings)

    @classmethod
    def from_records(cls,
                     arr: Optional[Iterable[Mapping[str, Any]]] = None,
                     pipeline: Optional[Iterable[Mapping[str, Any]]] = None,
                     sow_mappings: Optional[Iterable[Mapping[str, Any]]] = None,
                     product_categories: Optional[Iterable[Mapping[str, Any]]] = None,
                     sub_category_contributions: Optional[Iterable[Mapping[str, Any]]] = None,
                     customer_name_mappings: Optional[Iterable[Mapping[str, Any]]] = None) -> "ArrDataset":
        """Build from loader records keyed by the source column names"""
        dataset = cls(
            arr_rows=_parse_rows(arr, ArrSnapshotRow.from_record, "ARR snapshot"),
            pipeline_rows=_parse_rows(pipeline, PipelineSnapshotRow.from_record, "pipeline snapshot"),
            sow_mappings=_parse_rows(sow_mappings, SowMapping.from_record, "SOW mapping"),
            product_categories=_parse_rows(product_categories, ProductCategoryMapping.from_record, "product category"),
            sub_category_contributions=_parse_rows(
                sub_category_contributions, SubCategoryContribution.from_record, "sub-category contribution"
            ),
            customer_name_mappings=_parse_rows(customer_name_mappings, CustomerNameMapping.from_record, "name mapping"),
        )
        dataset.log_summary()
        return dataset

    @classmethod
    def from_frames(cls,
                    arr: Optional[pd.DataFrame] = None,
                    pipeline: Optional[pd.DataFrame] = None,
                    sow_mappings: Optional[pd.DataFrame] = None,
                    product_categories: Optional[pd.DataFrame] = None,
                    sub_category_contributions: Optional[pd.DataFrame] = None,
                    customer_name_mappings: Optional[pd.DataFrame] = None) -> "ArrDataset":
        """Build from DataFrames whose columns use the source column names"""
        return cls.from_records(
            arr=_frame_records(arr),
            pipeline=_frame_records(pipeline),
            sow_mappings=_frame_records(sow_mappings),
            product_categories=_frame_records(product_categories),
            sub_category_contributions=_frame_records(sub_category_contributions),
            customer_name_mappings=_frame_records(customer_name_mappings),
        )

    def log_summary(self) -> None:
        logger.info(
            f"Loaded ARR dataset: {len(self.arr_rows)} ARR rows, "
            f"{len(self.pipeline_rows)} pipeline rows, {len(self.sow_mappings)} SOW mappings, "
            f"{len(self.product_categories)} category mappings, "
            f"{len(self.sub_category_contributions)} contribution rows, "
            f"{len(self.customer_name_mappings)} name mappings"
        )
        violations = self.identity_violations()
        if violations:
            logger.warning(
                f"{len(violations)} ARR rows break ending = starting + movements "
                f"(first: SOW {violations[0].sow_id} {violations[0].snapshot_month})"
            )

    def identity_violations(self) -> List[ArrSnapshotRow]:
        return [r for r in self.arr_rows if abs(r.identity_gap()) > IDENTITY_TOLERANCE]

    # -------------------------------------------------------------------------
    # Derived, cached per instance
    # -------------------------------------------------------------------------

    @cached_property
    def index(self) -> ReferenceIndex:
        return ReferenceIndex.build(self)

    @cached_property
    def latest_pipeline_month(self) -> Optional[Month]:
        if not self.pipeline_rows:
            return None
        return max(r.snapshot_month for r in self.pipeline_rows)

    @cached_property
    def open_pipeline_rows(self) -> Tuple[PipelineSnapshotRow, ...]:
        """Non-closed deals of the most recent pipeline snapshot that carry a close month"""
        latest = self.latest_pipeline_month
        rows = tuple(
            r for r in self.pipeline_rows
            if r.snapshot_month == latest and not r.is_closed and r.expected_close_month is not None
        )
        logger.debug(f"{len(rows)} open pipeline deals in snapshot {latest}")
        return rows
