"""
Month arithmetic tests
"""

from datetime import date

import pytest

from arr_month import Month, lookback_window, month_range


pytestmark = pytest.mark.unit


class TestParsing:

    def test_parse_month_and_date_strings(self):
        assert Month.parse("2026-03") == Month(2026, 3)
        assert Month.parse("2026-03-01") == Month(2026, 3)
        assert Month.parse(" 2025-12-31 ") == Month(2025, 12)

    @pytest.mark.parametrize("bad", ["", "March 2026", "2026/03", "2026-13"])
    def test_parse_rejects_garbage(self, bad):
        with pytest.raises(ValueError):
            Month.parse(bad)

    def test_try_parse_returns_none(self):
        assert Month.try_parse(None) is None
        assert Month.try_parse("not a date") is None
        assert Month.try_parse("2026-06-30") == Month(2026, 6)

    def test_from_names_defaults_to_december(self):
        assert Month.from_names("2025", None) == Month(2025, 12)
        assert Month.from_names("2026", "Mar") == Month(2026, 3)
        assert Month.from_names("2026", "march") == Month(2026, 3)


class TestArithmetic:

    def test_shift_across_year_boundary(self):
        assert Month(2025, 12).next() == Month(2026, 1)
        assert Month(2026, 1).previous() == Month(2025, 12)
        assert Month(2026, 2).shift(-14) == Month(2024, 12)

    def test_months_until(self):
        assert Month(2025, 11).months_until(Month(2026, 2)) == 3
        assert Month(2026, 2).months_until(Month(2025, 11)) == -3

    def test_ordering(self):
        assert Month(2025, 12) < Month(2026, 1)
        assert max([Month(2026, 1), Month(2024, 12), Month(2026, 2)]) == Month(2026, 2)

    def test_anchor_is_previous_month(self):
        assert Month.anchor_for(date(2026, 3, 15)) == Month(2026, 2)
        assert Month.anchor_for(date(2026, 1, 1)) == Month(2025, 12)

    def test_labels(self):
        m = Month(2026, 1)
        assert str(m) == "2026-01"
        assert m.label() == "Jan 2026"
        assert m.short_label() == "Jan 26"
        assert m.first_day() == date(2026, 1, 1)


class TestRanges:

    def test_month_range_inclusive(self):
        months = month_range(Month(2025, 11), Month(2026, 2))
        assert [str(m) for m in months] == ["2025-11", "2025-12", "2026-01", "2026-02"]

    def test_month_range_empty_when_reversed(self):
        assert month_range(Month(2026, 2), Month(2026, 1)) == []

    @pytest.mark.parametrize("lookback,first", [(1, "2026-02"), (3, "2025-12"), (12, "2025-03")])
    def test_lookback_window(self, lookback, first):
        window = lookback_window(Month(2026, 2), lookback)
        assert len(window) == lookback
        assert str(window[0]) == first
        assert window[-1] == Month(2026, 2)
