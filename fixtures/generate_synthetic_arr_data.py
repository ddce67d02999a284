#!/usr/bin/env python3
"""
Synthetic ARR Dataset Generator
Generates realistic monthly ARR snapshots, pipeline snapshots and reference
tables (SOW mapping, product categories, sub-category contributions, customer
name aliases) using the loader's column names.

Every ARR row satisfies ending = starting + new + expansion + schedule change
- |contraction| - |churn|; a share of rows report contraction/churn as a
positive magnitude, as the source data does.
"""

import json
import random
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

# Configuration
OUTPUT_DIR = Path(__file__).parent / "arr"
RANDOM_SEED = 42

# Realistic data pools
COMPANIES = [
    "Acme Corporation", "TechStart Inc", "Global Solutions Ltd", "Enterprise Systems",
    "Digital Dynamics", "Cloud Services Co", "Innovation Partners", "Future Tech",
    "Smart Solutions", "NextGen Industries", "MegaCorp International", "StartupHub",
]

# Short names the sales team uses in the pipeline
PIPELINE_ALIASES = {
    "Acme Corporation": "Acme",
    "Global Solutions Ltd": "Global Solutions",
    "MegaCorp International": "MegaCorp",
}

REGIONS = ["North America", "Europe", "APAC", "Middle East", "LATAM"]
REGION_CODES = {"North America": "NA", "Europe": "EU", "APAC": "APAC", "Middle East": "ME", "LATAM": "LA"}
VERTICALS = ["Banking", "Insurance", "Healthcare", "Retail", "Other Services"]
SEGMENTS = ["Enterprise", "SMB", "Mid-Market"]
RISK_LABELS = ["Win/PO", "In Process", "Mgmt Approval", "High Risk", "Lost"]
PLACEHOLDER_RISKS = ['"', "#N/A"]

SUB_CATEGORIES = {
    "Core Banking": "Platform",
    "Payments": "Platform",
    "Risk Analytics": "Analytics",
    "Reporting": "Analytics",
    "Managed Services": "Services",
}
UNMAPPED_SUB_CATEGORY = "Legacy Add-on"

PIPELINE_LOGO_TYPES = ["New Logo", "New", "Renewal", "Renewal/Extn", "Extension", "Upsell", "Cross Sell"]
OPEN_STAGES = ["Qualification", "Proposal", "Negotiation", "Commit"]
CLOSED_STAGES = ["Closed Won", "Closed Lost", "Closed Dead"]


# Edge case configuration
@dataclass
class EdgeCaseConfig:
    positive_magnitude_rate: float = 0.30  # contraction/churn reported as positive numbers
    blank_dimension_rate: float = 0.10  # row region/vertical left blank, SOW mapping fills it
    placeholder_risk_rate: float = 0.05  # malformed renewal risk labels
    migration_rate: float = 0.30  # contracts with a Quantum go-live date
    unmapped_sub_category_rate: float = 0.10  # contribution rows outside the category map


@dataclass
class ContractPlan:
    sow_id: str
    customer_name: str
    start_index: int  # month offset of the first row
    legacy: bool  # already live before the first month
    base_arr: int
    region: str
    vertical: str
    segment: str
    platform: str
    go_live: Optional[str]
    contract_start: str
    contract_end: str
    risk: str


def _month_str(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _shift(year: int, month: int, offset: int) -> Tuple[int, int]:
    total = year * 12 + (month - 1) + offset
    return total // 12, total % 12 + 1


class SyntheticArrGenerator:
    def __init__(self, seed: int = RANDOM_SEED, start: Tuple[int, int] = (2024, 1),
                 months: int = 26, contracts: int = 24, edge_config: EdgeCaseConfig = None):
        self.seed = seed
        self.rng = random.Random(seed)
        self.start = start
        self.months = months
        self.contract_count = contracts
        self.edge_config = edge_config or EdgeCaseConfig()
        self.plans: List[ContractPlan] = []
        self.manifest = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "random_seed": seed,
            "edge_case_config": asdict(self.edge_config),
            "datasets": {},
        }

    @property
    def anchor(self) -> str:
        """Last generated month: the natural anchor month for this dataset"""
        return _month_str(*_shift(*self.start, self.months - 1))

    def month_at(self, offset: int) -> str:
        return _month_str(*_shift(*self.start, offset))

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def generate_contracts(self) -> List[ContractPlan]:
        rng = self.rng
        plans = []
        for i in range(self.contract_count):
            legacy = rng.random() < 0.6
            start_index = 0 if legacy else rng.randint(1, self.months - 2)
            start_year, start_month = _shift(*self.start, start_index)
            if legacy:
                start_year -= rng.randint(1, 3)
            go_live = None
            if rng.random() < self.edge_config.migration_rate:
                go_live = f"{self.month_at(rng.randint(0, self.months - 1))}-01"
            if rng.random() < self.edge_config.placeholder_risk_rate:
                risk = rng.choice(PLACEHOLDER_RISKS)
            else:
                risk = rng.choice(RISK_LABELS + [""])
            end_year = rng.choice([2025, 2026, 2026, 2027])
            plans.append(ContractPlan(
                sow_id=f"{1000 + i}",
                customer_name=COMPANIES[i % len(COMPANIES)],
                start_index=start_index,
                legacy=legacy,
                base_arr=rng.randrange(50_000, 900_000, 1_000),
                region=rng.choice(REGIONS),
                vertical=rng.choice(VERTICALS),
                segment=rng.choice(SEGMENTS),
                platform=rng.choice(["SMART", "SMART", "Quantum"]),
                go_live=go_live,
                contract_start=f"{start_year:04d}-{start_month:02d}-01",
                contract_end=f"{end_year:04d}-{rng.randint(1, 12):02d}-28",
                risk=risk,
            ))
        self.plans = plans
        return plans

    # ------------------------------------------------------------------
    # ARR snapshots
    # ------------------------------------------------------------------

    def _signed(self, magnitude: int) -> int:
        """Negative by convention, sometimes reported as a positive magnitude"""
        if magnitude and self.rng.random() < self.edge_config.positive_magnitude_rate:
            return magnitude
        return -magnitude

    def generate_arr_rows(self) -> List[Dict]:
        rng = self.rng
        rows = []
        for plan in self.plans or self.generate_contracts():
            ending = plan.base_arr if plan.legacy else 0
            for offset in range(plan.start_index, self.months):
                starting = ending
                new = expansion = schedule = contraction = churn = 0
                if offset == plan.start_index and not plan.legacy:
                    new = plan.base_arr
                else:
                    roll = rng.random()
                    if roll < 0.02:
                        churn = starting
                    elif roll < 0.10:
                        expansion = int(starting * rng.uniform(0.05, 0.20))
                    elif roll < 0.15:
                        contraction = int(starting * rng.uniform(0.02, 0.15))
                    elif roll < 0.19:
                        schedule = int(starting * rng.uniform(-0.05, 0.05))
                ending = starting + new + expansion + schedule - contraction - churn

                blank = rng.random() < self.edge_config.blank_dimension_rate
                rows.append({
                    "Snapshot_Month": self.month_at(offset),
                    "SOW_ID": plan.sow_id,
                    "Customer_Name": plan.customer_name,
                    "Quantum_SMART": plan.platform,
                    "Quantum_GoLive_Date": plan.go_live or "",
                    "Starting_ARR": starting,
                    "New_ARR": new,
                    "Expansion_ARR": expansion,
                    "Schedule_Change": schedule,
                    "Contraction_ARR": self._signed(contraction),
                    "Churn_ARR": self._signed(churn),
                    "Ending_ARR": ending,
                    "Region": "" if blank else plan.region,
                    "Vertical": "" if blank else plan.vertical,
                    "Segment": plan.segment,
                    "Contract_Start_Date": plan.contract_start,
                    "Contract_End_Date": plan.contract_end,
                    "Renewal_Risk": plan.risk,
                })
                if churn:
                    break
        return rows

    # ------------------------------------------------------------------
    # Pipeline snapshots
    # ------------------------------------------------------------------

    def generate_pipeline_rows(self, deals: int = 40) -> List[Dict]:
        rng = self.rng
        rows = []
        snapshots = [self.month_at(self.months - 2), self.anchor]
        for snapshot in snapshots:
            for i in range(deals):
                company = rng.choice(COMPANIES + ["Brand New Prospect", "Unknown Holdings"])
                name = PIPELINE_ALIASES.get(company, company)
                stage = rng.choice(OPEN_STAGES + CLOSED_STAGES)
                close_year, close_month = _shift(*self.start, self.months + rng.randint(-1, 14))
                rows.append({
                    "Snapshot_Month": snapshot,
                    "Pipeline_Deal_ID": f"DEAL-{i:04d}",
                    "Deal_Name": f"{name} opportunity {i}",
                    "Customer_Name": name,
                    "Deal_Value": rng.randrange(20_000, 600_000, 1_000),
                    "License_ACV": rng.randrange(10_000, 300_000, 1_000),
                    "Logo_Type": rng.choice(PIPELINE_LOGO_TYPES),
                    "Current_Stage": stage,
                    "Probability": 100 if stage == "Closed Won" else rng.choice([10, 25, 50, 75, 90]),
                    "Expected_Close_Date": f"{close_year:04d}-{close_month:02d}-15",
                    "Region": rng.choice(REGIONS),
                    "Vertical": rng.choice(VERTICALS),
                    "Segment": rng.choice(SEGMENTS + [""]),
                    "Product_Sub_Category": rng.choice(list(SUB_CATEGORIES)),
                })
        return rows

    # ------------------------------------------------------------------
    # Reference tables
    # ------------------------------------------------------------------

    def generate_reference_tables(self) -> Dict[str, List[Dict]]:
        rng = self.rng
        plans = self.plans or self.generate_contracts()
        sow_mappings = [{
            "SOW_ID": p.sow_id,
            "SOW_Name": f"{p.customer_name} - SOW {p.sow_id}",
            "Vertical": p.vertical,
            "Region": REGION_CODES[p.region],
            "Fees_Type": rng.choice(["Fees", "Fees", "Fees", "Travel"]),
            "Revenue_Type": "Recurring",
            "Segment_Type": p.segment,
            "Start_Date": p.contract_start,
        } for p in plans]

        contributions = []
        for p in plans:
            if rng.random() < 0.1:
                continue  # no allocation for this contract
            subs = rng.sample(list(SUB_CATEGORIES), rng.randint(1, 3))
            if rng.random() < self.edge_config.unmapped_sub_category_rate:
                subs[-1] = UNMAPPED_SUB_CATEGORY
            shares = _split_percent(rng, len(subs))
            for sub, share in zip(subs, shares):
                contributions.append({
                    "SOW_ID": p.sow_id,
                    "Customer_Name": p.customer_name,
                    "Product_Sub_Category": sub,
                    "Pct_2024": share,
                    "Pct_2025": share,
                    "Pct_2026": share,
                })

        return {
            "sow_mappings": sow_mappings,
            "product_categories": [
                {"Product_Sub_Category": sub, "Product_Category": cat}
                for sub, cat in SUB_CATEGORIES.items()
            ],
            "sub_category_contributions": contributions,
            "customer_name_mappings": [
                {"ARR_Customer_Name": legal, "Pipeline_Customer_Name": short}
                for legal, short in PIPELINE_ALIASES.items()
            ],
        }

    def build_records(self) -> Dict[str, List[Dict]]:
        """All collections keyed by ArrDataset.from_records argument name"""
        self.rng = random.Random(self.seed)
        self.generate_contracts()
        records = {"arr": self.generate_arr_rows(), "pipeline": self.generate_pipeline_rows()}
        records.update(self.generate_reference_tables())
        return records

    def generate_all(self, output_dir: Path = OUTPUT_DIR) -> Dict[str, List[Dict]]:
        output_dir.mkdir(parents=True, exist_ok=True)
        records = self.build_records()
        for name, rows in records.items():
            filename = f"{name}.csv"
            pd.DataFrame(rows).to_csv(output_dir / filename, index=False)
            self.manifest["datasets"][name] = {"filename": filename, "row_count": len(rows)}
            print(f"[OK] Generated {filename} ({len(rows)} rows)")

        self.manifest["anchor_month"] = self.anchor
        with open(output_dir / "manifest.json", "w", encoding="utf-8") as f:
            json.dump(self.manifest, f, indent=2, ensure_ascii=False)
        print(f"[OK] Output directory: {output_dir}")
        return records


def _split_percent(rng: random.Random, parts: int) -> List[int]:
    """`parts` positive integer percentages summing to 100"""
    if parts == 1:
        return [100]
    cuts = sorted(rng.sample(range(5, 96), parts - 1))
    bounds = [0] + cuts + [100]
    return [b - a for a, b in zip(bounds, bounds[1:])]


if __name__ == "__main__":
    SyntheticArrGenerator().generate_all()
