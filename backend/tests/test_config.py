"""
Engine configuration tests
"""

from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from arr_config import EngineConfig
from arr_month import Month


pytestmark = pytest.mark.unit

ENV_KEYS = ("ARR_ANCHOR_MONTH", "ARR_TREND_START_YEAR", "ARR_TREND_YEARS",
            "ARR_RENEWAL_TARGET_YEAR", "ARR_MATRIX_LIMIT")


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults_anchor_on_previous_month(clean_env):
    config = EngineConfig.from_env(today=date(2026, 3, 10))
    assert config.anchor_month == Month(2026, 2)
    assert config.trend_start == Month(2024, 1)
    assert config.trend_end == Month(2026, 12)
    assert config.target_year == 2026
    assert config.matrix_limit == 50


def test_environment_overrides(clean_env):
    clean_env.setenv("ARR_ANCHOR_MONTH", "2025-09")
    clean_env.setenv("ARR_TREND_START_YEAR", "2023")
    clean_env.setenv("ARR_TREND_YEARS", "2")
    clean_env.setenv("ARR_RENEWAL_TARGET_YEAR", "2026")
    clean_env.setenv("ARR_MATRIX_LIMIT", "10")
    config = EngineConfig.from_env(today=date(2030, 1, 1))
    assert config.anchor_month == Month(2025, 9)
    assert (config.trend_start, config.trend_end) == (Month(2023, 1), Month(2024, 12))
    assert config.target_year == 2026
    assert config.matrix_limit == 10


def test_invalid_anchor_raises(clean_env):
    clean_env.setenv("ARR_ANCHOR_MONTH", "last month")
    with pytest.raises(ValueError):
        EngineConfig.from_env()


def test_config_is_frozen():
    config = EngineConfig(anchor_month=Month(2026, 2))
    with pytest.raises(FrozenInstanceError):
        config.matrix_limit = 5
