import pandas as pd
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional


ZERO = Decimal("0")

REGION_ALIASES = {
    'NA': 'North America',
    'EU': 'Europe',
    'ME': 'Middle East',
    'APAC': 'APAC',
    'LA': 'LATAM',
    'LATAM': 'LATAM',
    'Global': 'Global',
}


def is_blank(val) -> bool:
    if val is None:
        return True
    if isinstance(val, str):
        return val.strip().lower() in ('', 'nan', 'none', 'null')
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def clean_str(val) -> str:
    """Loader strings: None/NaN become '', everything else is stripped"""
    if is_blank(val):
        return ""
    return str(val).strip()


def to_decimal(val) -> Decimal:
    """
    Coerce a loader value to Decimal. Missing or unparseable values are zero.

    Accepts numbers and strings like "$1,234.50" or "85%".
    """
    if is_blank(val):
        return ZERO
    if isinstance(val, Decimal):
        return val
    if isinstance(val, (int, float)):
        return Decimal(str(val))
    s = str(val).strip().replace(',', '')
    s = "".join(c for c in s if c.isdigit() or c in '.-eE')
    try:
        return Decimal(s) if s else ZERO
    except InvalidOperation:
        return ZERO


def round_currency(val) -> int:
    """Nearest whole currency unit"""
    return int(to_decimal(val).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_pct(val) -> float:
    """One decimal place"""
    return float(to_decimal(val).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def safe_pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is zero"""
    if not denominator:
        return ZERO
    return numerator / denominator * 100


def growth_pct(current: Decimal, previous: Decimal) -> Decimal:
    if previous <= 0:
        return ZERO
    return (current - previous) / previous * 100


def normalize_region(raw: Optional[str]) -> str:
    raw = clean_str(raw)
    return REGION_ALIASES.get(raw, raw)


def sort_records(records: List[Dict[str, Any]], sort_field: Optional[str],
                 sort_direction: Optional[str], default_key=None) -> List[Dict[str, Any]]:
    """
    Sort output rows by a caller-chosen field.

    Numbers compare numerically, everything else as lowercase strings.
    Without a sort field, `default_key` (descending) is used.
    """
    if not sort_field:
        if default_key is None:
            return list(records)
        return sorted(records, key=default_key, reverse=True)

    reverse = (sort_direction or 'desc').lower() != 'asc'

    def key(record):
        value = record.get(sort_field)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, value, "")
        return (1, 0, str(value or "").lower())

    return sorted(records, key=key, reverse=reverse)
