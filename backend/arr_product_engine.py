"""
Product/Category & Cross-Sell Analyzer

Rolls each Customer's allocated product ARR (sub-category -> ARR) up into
sub-category and category views, a customer x category matrix, and cross-sell
depth: the number of distinct sub-categories a customer holds.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from arr_config import EngineConfig
from arr_customer_aggregator import build_customers
from arr_dataset import ArrDataset
from arr_filters import ALL, FilterEvaluator, ProductFilter, RevenueFilter, selected_month
from arr_models import Customer
from utils import round_pct

logger = logging.getLogger(__name__)

CROSS_SELL_BUCKETS = ("1 Sub-Category", "2 Sub-Categories", "3+ Sub-Categories")


def _avg(total: int, count: int) -> int:
    return round(total / count) if count else 0


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass
class SubCategoryRollup:
    sub_category: str
    category: str
    total_arr: int = 0
    contract_ids: Set[str] = field(default_factory=set)
    customer_names: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subCategory": self.sub_category,
            "category": self.category,
            "totalARR": self.total_arr,
            "customerCount": len(self.contract_ids),
            "avgARRPerCustomer": _avg(self.total_arr, len(self.contract_ids)),
        }


@dataclass
class CategoryRollup:
    name: str
    total_arr: int = 0
    customer_names: Set[str] = field(default_factory=set)
    sub_categories: List[SubCategoryRollup] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        subs = sorted(self.sub_categories, key=lambda s: (-s.total_arr, s.sub_category))
        return {
            "name": self.name,
            "totalARR": self.total_arr,
            "customerCount": len(self.customer_names),
            "subCategoryCount": len(self.sub_categories),
            "avgARRPerCustomer": _avg(self.total_arr, len(self.customer_names)),
            "subCategories": [s.to_dict() for s in subs],
        }


@dataclass
class MatrixRow:
    name: str
    region: str
    vertical: str
    total_arr: int = 0
    category_arr: Dict[str, int] = field(default_factory=dict)
    contracts: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "region": self.region,
            "vertical": self.vertical,
            "totalARR": self.total_arr,
            "contractCount": len(self.contracts),
            "categoryARR": dict(self.category_arr),
            "contracts": list(self.contracts),
        }


# =============================================================================
# ENGINE
# =============================================================================

class ProductEngine:
    def __init__(self, dataset: ArrDataset, config: EngineConfig):
        self.dataset = dataset
        self.config = config

    def _customers(self, filters: RevenueFilter) -> List[Customer]:
        """Customers as of the selected month (capped at the anchor) passing the filter"""
        as_of = min(selected_month(filters, self.config.anchor_month), self.config.anchor_month)
        evaluator = FilterEvaluator(filters, self.dataset.index)
        return [c for c in build_customers(self.dataset, as_of) if evaluator.customer_passes(c)]

    def _sub_category_rollups(self, customers: List[Customer]) -> List[SubCategoryRollup]:
        index = self.dataset.index
        rollups: Dict[str, SubCategoryRollup] = {}
        unmapped: Set[str] = set()
        for customer in customers:
            for sub_category, amount in customer.product_arr.items():
                rollup = rollups.get(sub_category)
                if rollup is None:
                    if sub_category not in index.category:
                        unmapped.add(sub_category)
                    rollup = rollups[sub_category] = SubCategoryRollup(
                        sub_category, index.category_for(sub_category)
                    )
                rollup.total_arr += amount
                rollup.contract_ids.add(customer.id)
                rollup.customer_names.add(customer.name)
        if unmapped:
            logger.debug(f"Sub-categories without a category mapping: {sorted(unmapped)}")
        return sorted(rollups.values(), key=lambda r: (-r.total_arr, r.sub_category))

    @staticmethod
    def _apply_product_filters(rollups: List[SubCategoryRollup],
                               filters: RevenueFilter) -> List[SubCategoryRollup]:
        category = getattr(filters, "product_category", ALL)
        sub_category = getattr(filters, "product_sub_category", ALL)
        if category != ALL:
            rollups = [r for r in rollups if r.category == category]
        if sub_category != ALL:
            rollups = [r for r in rollups if r.sub_category == sub_category]
        return rollups

    def products(self, filters: ProductFilter) -> Dict[str, Any]:
        rollups = self._apply_product_filters(
            self._sub_category_rollups(self._customers(filters)), filters
        )
        return {
            "products": [r.to_dict() for r in rollups],
            "totalARR": sum(r.total_arr for r in rollups),
        }

    def category_summary(self, filters: ProductFilter) -> Dict[str, Any]:
        rollups = self._apply_product_filters(
            self._sub_category_rollups(self._customers(filters)), filters
        )
        categories: Dict[str, CategoryRollup] = {}
        for rollup in rollups:
            category = categories.get(rollup.category)
            if category is None:
                category = categories[rollup.category] = CategoryRollup(rollup.category)
            category.total_arr += rollup.total_arr
            category.customer_names |= rollup.customer_names
            category.sub_categories.append(rollup)

        ordered = sorted(categories.values(), key=lambda c: (-c.total_arr, c.name))
        most_adopted: Optional[SubCategoryRollup] = None
        for rollup in rollups:
            if most_adopted is None or len(rollup.customer_names) > len(most_adopted.customer_names):
                most_adopted = rollup
        return {
            "categories": [c.to_dict() for c in ordered],
            "totalCategories": len(ordered),
            "topCategory": ordered[0].name if ordered else None,
            "totalSubCategories": len(rollups),
            "mostAdopted": most_adopted.sub_category if most_adopted else None,
        }

    def customer_category_matrix(self, filters: ProductFilter) -> Dict[str, Any]:
        index = self.dataset.index
        rows: Dict[str, MatrixRow] = {}
        categories: Set[str] = set()
        for customer in self._customers(filters):
            if customer.current_arr <= 0:
                continue
            row = rows.get(customer.name)
            if row is None:
                row = rows[customer.name] = MatrixRow(customer.name, customer.region, customer.vertical)
            row.total_arr += customer.current_arr
            contract_arr: Dict[str, int] = {}
            for sub_category, amount in customer.product_arr.items():
                category = index.category_for(sub_category)
                categories.add(category)
                contract_arr[category] = contract_arr.get(category, 0) + amount
                row.category_arr[category] = row.category_arr.get(category, 0) + amount
            row.contracts.append({
                "sowId": customer.sow_id,
                "sowName": index.sow_name_for(customer.sow_id),
                "arr": customer.current_arr,
                "categoryARR": contract_arr,
            })

        matrix = sorted(rows.values(), key=lambda r: (-r.total_arr, r.name))
        if filters.search:
            needle = filters.search.lower()
            matrix = [r for r in matrix if needle in r.name.lower()]
        return {
            "categories": sorted(categories),
            "totalCustomers": len(matrix),
            "customers": [r.to_dict() for r in matrix[:self.config.matrix_limit]],
        }

    def cross_sell(self, filters: RevenueFilter) -> Dict[str, Any]:
        """
        Depth is counted per customer name across all of its contracts. The
        cross-sell rate is the share of customers holding at least one
        sub-category that hold two or more.
        """
        index = self.dataset.index
        holdings: Dict[str, Set[str]] = {}
        category_arr: Dict[str, int] = {}
        category_customers: Dict[str, Set[str]] = {}
        for customer in self._customers(filters):
            if customer.current_arr <= 0:
                continue
            held = holdings.setdefault(customer.name, set())
            for sub_category, amount in customer.product_arr.items():
                held.add(sub_category)
                category = index.category_for(sub_category)
                category_arr[category] = category_arr.get(category, 0) + amount
                category_customers.setdefault(category, set()).add(customer.name)

        depths = [len(subs) for subs in holdings.values() if subs]
        buckets = [
            sum(1 for d in depths if d == 1),
            sum(1 for d in depths if d == 2),
            sum(1 for d in depths if d >= 3),
        ]
        adopters = len(depths)
        multi = buckets[1] + buckets[2]
        rate = round_pct(multi * 100 / adopters) if adopters else 0.0

        performance = sorted(category_arr.items(), key=lambda kv: (-kv[1], kv[0]))
        return {
            "distribution": [
                {"name": name, "count": count} for name, count in zip(CROSS_SELL_BUCKETS, buckets)
            ],
            "customersWithProducts": adopters,
            "crossSellCustomers": multi,
            "crossSellRate": rate,
            "avgSubCategoriesPerCustomer": round_pct(sum(depths) / adopters) if adopters else 0.0,
            "categoryPerformance": [
                {
                    "category": category,
                    "totalARR": total,
                    "customerCount": len(category_customers[category]),
                    "penetration": round_pct(len(category_customers[category]) * 100 / adopters)
                    if adopters else 0.0,
                    "avgARRPerCustomer": _avg(total, len(category_customers[category])),
                }
                for category, total in performance
            ],
        }
