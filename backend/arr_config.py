"""
Engine configuration.

Values are read from the environment once, by the caller, and passed into the
compute engine. Nothing in the engine reads the environment on its own.
"""

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Optional

from arr_month import Month

logger = logging.getLogger(__name__)


DEFAULT_TREND_START_YEAR = 2024
DEFAULT_TREND_YEARS = 3
DEFAULT_MATRIX_LIMIT = 50


@dataclass(frozen=True)
class EngineConfig:
    """
    anchor_month: latest month with complete actuals; anything after is forecast.
    trend_start_year / trend_years: fixed window used by the ARR trend and
        the monthly movement trend (Jan of the start year .. Dec of the last year).
    renewal_target_year: year whose contract end dates make up the renewal views.
    matrix_limit: max customers returned by the customer x category matrix.
    """
    anchor_month: Month
    trend_start_year: int = DEFAULT_TREND_START_YEAR
    trend_years: int = DEFAULT_TREND_YEARS
    renewal_target_year: Optional[int] = None
    matrix_limit: int = DEFAULT_MATRIX_LIMIT

    @property
    def target_year(self) -> int:
        return self.renewal_target_year or self.anchor_month.year

    @property
    def trend_start(self) -> Month:
        return Month(self.trend_start_year, 1)

    @property
    def trend_end(self) -> Month:
        return Month(self.trend_start_year + max(self.trend_years, 1) - 1, 12)

    @classmethod
    def from_env(cls, today: Optional[date] = None) -> "EngineConfig":
        anchor_raw = os.getenv("ARR_ANCHOR_MONTH")
        if anchor_raw:
            anchor = Month.parse(anchor_raw)
        else:
            anchor = Month.anchor_for(today or date.today())

        target_raw = os.getenv("ARR_RENEWAL_TARGET_YEAR")
        config = cls(
            anchor_month=anchor,
            trend_start_year=int(os.getenv("ARR_TREND_START_YEAR", str(DEFAULT_TREND_START_YEAR))),
            trend_years=int(os.getenv("ARR_TREND_YEARS", str(DEFAULT_TREND_YEARS))),
            renewal_target_year=int(target_raw) if target_raw else None,
            matrix_limit=int(os.getenv("ARR_MATRIX_LIMIT", str(DEFAULT_MATRIX_LIMIT))),
        )
        logger.info(
            f"Engine config: anchor={config.anchor_month} "
            f"trend={config.trend_start}..{config.trend_end} target_year={config.target_year}"
        )
        return config
