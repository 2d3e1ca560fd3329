"""
Unit tests for the subscriptions list read-model.
"""
from datetime import date, datetime

import pytest

from models.subscription import BillingCycle
from services.list_items import get_list_items, monthly_totals, to_list_item

AS_OF = datetime(2024, 3, 10, 10, 0)


class TestToListItem:
    """Tests for to_list_item"""

    def test_combines_fields(self, make_subscription):
        item = to_list_item(make_subscription(id=3, amount=12, billing_cycle=BillingCycle.YEARLY), AS_OF)
        assert item.id == 3
        assert item.next_billing_date_iso == "2025-01-15"
        assert item.next_billing_in_days == 311
        assert item.monthly_equivalent == pytest.approx(1)

    def test_one_time_in_the_past(self, make_subscription):
        item = to_list_item(
            make_subscription(billing_cycle=BillingCycle.ONE_TIME, start_date=date(2024, 1, 1)), AS_OF
        )
        assert item.next_billing_date_iso is None
        assert item.next_billing_in_days is None
        assert item.monthly_equivalent is None

    def test_charge_today_is_zero_days(self, make_subscription):
        item = to_list_item(make_subscription(billing_day=10), AS_OF)
        assert item.next_billing_in_days == 0


class TestGetListItems:
    """Sorting and filtering"""

    def test_sorted_by_urgency_with_stable_ties(self, make_subscription):
        subs = [
            make_subscription(id=1, service_name="A", billing_day=15),
            make_subscription(id=2, service_name="B", billing_day=12),
            make_subscription(
                id=3, service_name="C", billing_cycle=BillingCycle.WEEKLY, start_date=date(2024, 3, 15)
            ),
            make_subscription(
                id=4, service_name="D", billing_cycle=BillingCycle.ONE_TIME, start_date=date(2024, 1, 1)
            ),
        ]
        items = get_list_items(subs, AS_OF)
        assert [i.service_name for i in items] == ["B", "A", "C", "D"]
        assert [i.next_billing_in_days for i in items] == [2, 5, 5, None]

    def test_ties_keep_input_order(self, make_subscription):
        subs = [make_subscription(id=i, service_name=name) for i, name in enumerate("zyx")]
        assert [i.service_name for i in get_list_items(subs, AS_OF)] == ["z", "y", "x"]

    def test_archived_are_excluded(self, make_subscription):
        subs = [make_subscription(id=1), make_subscription(id=2, is_archived=True)]
        assert [i.id for i in get_list_items(subs, AS_OF)] == [1]


class TestMonthlyTotals:
    """Tests for monthly_totals"""

    def test_grouped_per_currency_without_one_time(self, make_subscription):
        subs = [
            make_subscription(id=1, amount=10),
            make_subscription(id=2, amount=120, billing_cycle=BillingCycle.YEARLY),
            make_subscription(id=3, amount=5, currency="USD"),
            make_subscription(id=4, amount=500, billing_cycle=BillingCycle.ONE_TIME, start_date=date(2024, 6, 1)),
        ]
        totals = monthly_totals(get_list_items(subs, AS_OF))
        assert totals == {"EUR": pytest.approx(20), "USD": pytest.approx(5)}
