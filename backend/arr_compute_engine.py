"""
Deterministic ARR Compute Engine

Single entry point for every ARR analytical view. Each method takes a filter
(model instance or plain request dict), is side-effect free, and returns a
JSON-serializable dict.

Key invariant: same dataset + same config + same filter = same output.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from arr_config import EngineConfig
from arr_customer_aggregator import build_customers
from arr_customer_list import customer_list
from arr_dataset import ArrDataset
from arr_filters import (
    CustomerListFilter, CustomerMovementFilter, FilterEvaluator, MovementFilter,
    ProductFilter, RevenueFilter, selected_month,
)
from arr_month import Month
from arr_movement_engine import MovementEngine
from arr_overview_engine import OverviewEngine
from arr_product_engine import ProductEngine
from arr_renewal_engine import RenewalEngine
from arr_trend_builder import TrendBuilder

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=RevenueFilter)
FilterInput = Union[None, Dict[str, Any], BaseModel]


def coerce_filter(filter_cls: Type[F], filters: FilterInput) -> F:
    """Accept None, a request dict, or any filter model and return a `filter_cls`"""
    if filters is None:
        return filter_cls()
    if type(filters) is filter_cls:
        return filters
    if isinstance(filters, BaseModel):
        return filter_cls.model_validate(filters.model_dump(by_alias=True))
    return filter_cls.model_validate(filters)


class RevenueComputeEngine:
    """
    Compute facade over one immutable ArrDataset.

    Usage:
        engine = RevenueComputeEngine(dataset, EngineConfig.from_env())
        engine.overview({"year": ["2026"], "month": ["Mar"]})
    """

    def __init__(self, dataset: ArrDataset, config: Optional[EngineConfig] = None):
        self.dataset = dataset
        self.config = config or EngineConfig.from_env()
        self._overview = OverviewEngine(dataset, self.config)
        self._trend = TrendBuilder(dataset, self.config)
        self._movement = MovementEngine(dataset, self.config)
        self._renewal = RenewalEngine(dataset, self.config)
        self._product = ProductEngine(dataset, self.config)

    @property
    def anchor_month(self) -> Month:
        return self.config.anchor_month

    def _timed(self, label: str, compute: Callable[[], Any]) -> Any:
        start = time.time()
        result = compute()
        elapsed_ms = int((time.time() - start) * 1000)
        logger.info(f"Computed {label} in {elapsed_ms}ms")
        return result

    # -------------------------------------------------------------------------
    # Overview
    # -------------------------------------------------------------------------

    def overview(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(RevenueFilter, filters)
        return self._timed("overview", lambda: self._overview.overview(f).to_dict())

    def arr_by_dimension(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(RevenueFilter, filters)
        return self._timed("ARR by dimension", lambda: self._overview.arr_by_dimension(f).to_dict())

    def arr_trend(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(RevenueFilter, filters)
        return self._timed(
            "ARR trend", lambda: {"months": [p.to_dict() for p in self._trend.arr_trend(f)]}
        )

    # -------------------------------------------------------------------------
    # Movement
    # -------------------------------------------------------------------------

    def movement_summary(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(MovementFilter, filters)
        return self._timed("movement summary", lambda: self._movement.movement_summary(f).to_dict())

    def movement_trend(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(RevenueFilter, filters)
        return self._timed("movement trend", lambda: {"months": self._movement.movement_trend(f)})

    def customer_movements(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(CustomerMovementFilter, filters)
        return self._timed("customer movements", lambda: self._movement.customer_movements(f))

    # -------------------------------------------------------------------------
    # Customers and renewals
    # -------------------------------------------------------------------------

    def customers(self, filters: FilterInput = None) -> Dict[str, Any]:
        """Customer entities (one per contract) as of the selected month, capped at the anchor"""
        f = coerce_filter(RevenueFilter, filters)

        def compute():
            as_of = min(selected_month(f, self.anchor_month), self.anchor_month)
            evaluator = FilterEvaluator(f, self.dataset.index)
            return {
                "asOfMonth": str(as_of),
                "customers": [
                    c.to_dict() for c in build_customers(self.dataset, as_of)
                    if evaluator.customer_passes(c)
                ],
            }

        return self._timed("customers", compute)

    def customer_list(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(CustomerListFilter, filters)
        return self._timed(
            "customer list", lambda: {"customers": customer_list(self.dataset, self.config, f)}
        )

    def renewal_risk(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(RevenueFilter, filters)
        return self._timed("renewal risk", lambda: self._renewal.renewal_risk(f).to_dict())

    def cohort_analysis(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(RevenueFilter, filters)
        return self._timed(
            "cohort analysis",
            lambda: {"cohorts": [c.to_dict() for c in self._renewal.cohort_analysis(f)]},
        )

    def churn_analysis(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(MovementFilter, filters)
        return self._timed("churn analysis", lambda: self._renewal.churn_analysis(f))

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    def products(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(ProductFilter, filters)
        return self._timed("products", lambda: self._product.products(f))

    def category_summary(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(ProductFilter, filters)
        return self._timed("category summary", lambda: self._product.category_summary(f))

    def customer_category_matrix(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(ProductFilter, filters)
        return self._timed("customer category matrix", lambda: self._product.customer_category_matrix(f))

    def cross_sell(self, filters: FilterInput = None) -> Dict[str, Any]:
        f = coerce_filter(ProductFilter, filters)
        return self._timed("cross-sell", lambda: self._product.cross_sell(f))
