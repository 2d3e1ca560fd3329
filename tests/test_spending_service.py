"""
Unit tests for spending insights.
"""
from datetime import date

import pytest

from models.subscription import BillingCycle
from services.spending_service import (
    date_range,
    primary_currency,
    spending_by_category,
    spending_by_month,
    total_spending,
)


class TestDateRange:
    """Tests for date_range"""

    def test_six_months(self):
        rng = date_range("6months", date(2024, 3, 10))
        assert (rng.start, rng.end) == (date(2023, 10, 1), date(2024, 3, 10))

    def test_year_to_date(self):
        rng = date_range("ytd", date(2024, 3, 10))
        assert (rng.start, rng.end) == (date(2024, 1, 1), date(2024, 3, 10))

    def test_whole_year(self):
        rng = date_range("year", date(2024, 3, 10))
        assert (rng.start, rng.end, rng.label) == (date(2024, 1, 1), date(2024, 12, 31), "2024")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            date_range("decade", date(2024, 3, 10))


class TestSpendingByMonth:
    """Tests for spending_by_month"""

    def test_zero_filled_and_chronological(self, make_subscription):
        sub = make_subscription(amount=10, start_date=date(2024, 2, 15))
        points = spending_by_month([sub], date(2024, 1, 1), date(2024, 3, 31), "EUR")
        assert [(p.month, p.year, p.amount) for p in points] == [
            ("Jan", 2024, 0.0),
            ("Feb", 2024, 10.0),
            ("Mar", 2024, 10.0),
        ]
        assert points[1].full_label == "February 2024"
        assert total_spending(points) == pytest.approx(20)

    def test_weekly_counts_every_charge(self, make_subscription):
        sub = make_subscription(amount=5, billing_cycle=BillingCycle.WEEKLY, start_date=date(2024, 1, 1))
        points = spending_by_month([sub], date(2024, 1, 1), date(2024, 1, 31), "EUR")
        assert points[0].amount == pytest.approx(25)

    def test_archived_are_ignored(self, make_subscription):
        sub = make_subscription(is_archived=True)
        points = spending_by_month([sub], date(2024, 1, 1), date(2024, 3, 31), "EUR")
        assert total_spending(points) == 0

    def test_other_currency_skipped_without_converter(self, make_subscription):
        sub = make_subscription(amount=10, currency="USD")
        points = spending_by_month([sub], date(2024, 1, 1), date(2024, 1, 31), "EUR")
        assert total_spending(points) == 0

    def test_other_currency_converted(self, make_subscription):
        sub = make_subscription(amount=10, currency="USD")
        convert = lambda amount, src, dst: amount * 0.5
        points = spending_by_month([sub], date(2024, 1, 1), date(2024, 1, 31), "EUR", convert)
        assert total_spending(points) == pytest.approx(5)


class TestSpendingByCategory:
    """Tests for spending_by_category"""

    def test_shares_highest_first(self, make_subscription):
        subs = [
            make_subscription(id=1, amount=10, category="Music"),
            make_subscription(id=2, amount=30, category="Software"),
        ]
        result = spending_by_category(subs, date(2024, 1, 1), date(2024, 1, 31), "EUR")
        assert [(c.category, c.amount) for c in result] == [("Software", 30), ("Music", 10)]
        assert [c.percentage for c in result] == [pytest.approx(75), pytest.approx(25)]

    def test_empty(self):
        assert spending_by_category([], date(2024, 1, 1), date(2024, 1, 31), "EUR") == []


class TestPrimaryCurrency:
    def test_most_common(self, make_subscription):
        subs = [make_subscription(currency="USD"), make_subscription(currency="USD"), make_subscription()]
        assert primary_currency(subs, "EUR") == "USD"

    def test_fallback(self):
        assert primary_currency([], "GBP") == "GBP"
