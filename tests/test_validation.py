"""
Unit tests for subscription validation.
"""
from datetime import date

import pytest

from models.subscription import BillingCycle
from services.exceptions import InvalidBillingDataError, UnknownBillingCycleError
from services.validation import validate_subscription


class TestValidateSubscription:
    """Tests for validate_subscription"""

    def test_valid_is_normalized(self, make_subscription):
        sub = validate_subscription(make_subscription(service_name="  Netflix ", billing_cycle="Monthly", currency="eur"))
        assert sub.service_name == "Netflix"
        assert sub.billing_cycle is BillingCycle.MONTHLY
        assert sub.currency == "EUR"

    @pytest.mark.parametrize("overrides", [
        {"service_name": "   "},
        {"service_name": "x" * 101},
        {"amount": -1},
        {"amount": float("inf")},
        {"billing_day": 0},
        {"billing_day": 32},
        {"currency": "EURO"},
        {"category": "Gaming"},
        {"payment_method": "Bitcoin"},
        {"end_date": date(2023, 12, 31)},
        {"reminder_days": 5},
        {"reminder_hour": 24},
    ])
    def test_invalid(self, make_subscription, overrides):
        with pytest.raises(InvalidBillingDataError):
            validate_subscription(make_subscription(**overrides))

    def test_unknown_cycle(self, make_subscription):
        with pytest.raises(UnknownBillingCycleError):
            validate_subscription(make_subscription(billing_cycle="Daily"))

    def test_free_subscription_is_allowed(self, make_subscription):
        assert validate_subscription(make_subscription(amount=0)).amount == 0
