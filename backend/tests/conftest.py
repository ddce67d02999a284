"""
Pytest configuration and fixtures for the ARR engine test suite

Markers:
    - unit: Fast unit tests
    - property: Property-based tests (Hypothesis)
    - metamorphic: Metamorphic relation tests
    - golden: Hand-checked dataset regression tests
    - slow: Performance and stress tests (excluded by default)

The `arr_records` fixture is a small hand-checked dataset anchored at Feb 2026:

    SOW  Customer    Jan-26  Feb-26 movement                 Feb-26 ending
    S1   Acme Corp   1000    +200 expansion                  1200
    S2   Beta LLC    500     contraction reported as +50     450
    S3   Gamma Inc   300     -300 churn                      0
    S4   Delta Co    -       +400 new business               400
    S5   Acme Corp   200     -20 schedule change             180

Jan-26 ending 2000, Feb-26 ending 2230. Open pipeline (Feb-26 snapshot):
Acme renewal 100 closing Apr-26, Newco new logo 300 closing Mar-26,
Beta upsell 50 closing Jun-26, Delta cross-sell 70 closing Feb-27.
"""

import os
import sys
from pathlib import Path

import pytest

# Add parent directory (engine modules) and the fixtures generator to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "fixtures"))

from arr_compute_engine import RevenueComputeEngine  # noqa: E402
from arr_config import EngineConfig  # noqa: E402
from arr_dataset import ArrDataset  # noqa: E402
from arr_month import Month  # noqa: E402


# ═══════════════════════════════════════════════════════════════════════════════
# PYTEST CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "property: Property-based tests (Hypothesis)")
    config.addinivalue_line("markers", "metamorphic: Metamorphic relation tests")
    config.addinivalue_line("markers", "golden: Hand-checked dataset regression tests")
    config.addinivalue_line("markers", "slow: Performance/stress tests (excluded by default)")


def pytest_addoption(parser):
    """Add custom CLI options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# ═══════════════════════════════════════════════════════════════════════════════
# HAND-CHECKED DATASET
# ═══════════════════════════════════════════════════════════════════════════════

def _arr_row(month, sow_id, customer, starting=0, ending=0, **extra):
    row = {
        "Snapshot_Month": month,
        "SOW_ID": sow_id,
        "Customer_Name": customer,
        "Starting_ARR": starting,
        "New_ARR": 0,
        "Expansion_ARR": 0,
        "Schedule_Change": 0,
        "Contraction_ARR": 0,
        "Churn_ARR": 0,
        "Ending_ARR": ending,
        "Quantum_SMART": "SMART",
    }
    row.update(extra)
    return row


@pytest.fixture
def arr_records():
    s1 = {"Region": "North America", "Vertical": "Banking", "Segment": "Enterprise",
          "Quantum_GoLive_Date": "2026-03-01", "Contract_Start_Date": "2023-04-01",
          "Contract_End_Date": "2026-06-30", "Renewal_Risk": "High Risk"}
    s2 = {"Region": "", "Vertical": "Insurance", "Segment": "Enterprise",
          "Quantum_SMART": "Quantum", "Contract_Start_Date": "2024-02-01",
          "Contract_End_Date": "2026-11-30", "Renewal_Risk": "Lost"}
    s3 = {"Region": "APAC", "Vertical": "Retail", "Segment": "SMB",
          "Contract_Start_Date": "2024-06-01", "Contract_End_Date": "2027-01-31",
          "Renewal_Risk": '"'}
    s4 = {"Region": "North America", "Vertical": "Banking", "Segment": "Mid-Market",
          "Contract_Start_Date": "2026-02-01", "Contract_End_Date": "2026-12-31",
          "Renewal_Risk": ""}
    s5 = {"Region": "North America", "Vertical": "Banking", "Segment": "Enterprise",
          "Contract_Start_Date": "2025-01-01", "Contract_End_Date": "2026-06-30",
          "Renewal_Risk": "Win/PO"}

    arr = [
        _arr_row("2026-01", "S1", "Acme Corp", 1000, 1000, **s1),
        _arr_row("2026-02", "S1", "Acme Corp", 1000, 1200, Expansion_ARR=200, **s1),
        _arr_row("2026-01", "S2", "Beta LLC", 500, 500, **s2),
        _arr_row("2026-02", "S2", "Beta LLC", 500, 450, Contraction_ARR=50, **s2),
        _arr_row("2026-01", "S3", "Gamma Inc", 300, 300, **s3),
        _arr_row("2026-02", "S3", "Gamma Inc", 300, 0, Churn_ARR=-300, **s3),
        _arr_row("2026-02", "S4", "Delta Co", 0, 400, New_ARR=400, **s4),
        _arr_row("2026-01", "S5", "Acme Corp", 200, 200, **s5),
        _arr_row("2026-02", "S5", "Acme Corp", 200, 180, Schedule_Change=-20, **s5),
    ]

    def deal(deal_id, customer, logo, acv, close, stage="Proposal", snapshot="2026-02", **extra):
        row = {
            "Snapshot_Month": snapshot,
            "Pipeline_Deal_ID": deal_id,
            "Customer_Name": customer,
            "Logo_Type": logo,
            "License_ACV": acv,
            "Deal_Value": acv * 2,
            "Current_Stage": stage,
            "Probability": 50,
            "Expected_Close_Date": close,
        }
        row.update(extra)
        return row

    pipeline = [
        deal("P1", "Acme", "Renewal", 100, "2026-04-15", Region="North America", Vertical="Banking"),
        deal("P2", "Newco", "New Logo", 300, "2026-03-20", stage="Qualification",
             Region="Europe", Vertical="Retail"),
        deal("P3", "Beta LLC", "Upsell", 50, "2026-06-10", stage="Negotiation",
             Region="Europe", Vertical="Insurance"),
        deal("P4", "Gamma Inc", "Renewal", 999, "2026-05-01", stage="Closed Lost",
             Region="APAC", Vertical="Retail"),
        deal("P5", "Delta Co", "Cross Sell", 70, "2027-02-10", Region="North America", Vertical="Banking"),
        # Superseded by the Feb snapshot
        deal("P1", "Acme", "Renewal", 5000, "2026-03-15", snapshot="2026-01",
             Region="North America", Vertical="Banking"),
    ]

    return {
        "arr": arr,
        "pipeline": pipeline,
        "sow_mappings": [
            {"SOW_ID": "S1", "SOW_Name": "Acme - Core Platform", "Region": "NA",
             "Vertical": "Banking", "Fees_Type": "Fees"},
            {"SOW_ID": "S2", "SOW_Name": "Beta - Support", "Region": "EU",
             "Vertical": "Insurance", "Fees_Type": "Travel"},
        ],
        "product_categories": [
            {"Product_Sub_Category": "Core Banking", "Product_Category": "Platform"},
            {"Product_Sub_Category": "Payments", "Product_Category": "Platform"},
            {"Product_Sub_Category": "Risk Analytics", "Product_Category": "Analytics"},
        ],
        "sub_category_contributions": [
            {"SOW_ID": "S1", "Customer_Name": "Acme Corp", "Product_Sub_Category": "Core Banking",
             "Pct_2025": 50, "Pct_2026": 60},
            {"SOW_ID": "S1", "Customer_Name": "Acme Corp", "Product_Sub_Category": "Payments",
             "Pct_2025": 50, "Pct_2026": 40},
            {"SOW_ID": "S2", "Customer_Name": "Beta LLC", "Product_Sub_Category": "Risk Analytics",
             "Pct_2025": 100, "Pct_2026": 100},
            {"SOW_ID": "S4", "Customer_Name": "Delta Co", "Product_Sub_Category": "Legacy Add-on",
             "Pct_2026": 100},
        ],
        "customer_name_mappings": [
            {"ARR_Customer_Name": "Acme Corp", "Pipeline_Customer_Name": "Acme"},
        ],
    }


@pytest.fixture
def arr_dataset(arr_records):
    return ArrDataset.from_records(**arr_records)


@pytest.fixture
def engine_config():
    return EngineConfig(anchor_month=Month(2026, 2), trend_start_year=2025, trend_years=2)


@pytest.fixture
def engine(arr_dataset, engine_config):
    return RevenueComputeEngine(arr_dataset, engine_config)


# ═══════════════════════════════════════════════════════════════════════════════
# SYNTHETIC DATASET
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def synthetic_records():
    from generate_synthetic_arr_data import SyntheticArrGenerator
    generator = SyntheticArrGenerator()
    return generator.anchor, generator.build_records()


@pytest.fixture
def synthetic_engine(synthetic_records):
    anchor, records = synthetic_records
    dataset = ArrDataset.from_records(**records)
    config = EngineConfig(anchor_month=Month.parse(anchor), trend_start_year=2024, trend_years=3)
    return RevenueComputeEngine(dataset, config)
