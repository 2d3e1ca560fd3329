"""
Unit tests for command argument parsing.
"""
from datetime import date

import pytest

from models.subscription import BillingCycle
from utils.parsing import parse_amount, parse_cycle_word, parse_field_value, parse_manual

TODAY = date(2024, 3, 10)


class TestParseManual:
    """Tests for the structured /add form"""

    def test_minimal(self):
        assert parse_manual("Netflix | 15.99 | monthly", TODAY) == {
            "service_name": "Netflix",
            "amount": 15.99,
            "billing_cycle": BillingCycle.MONTHLY,
            "start_date": TODAY,
            "billing_day": 10,
            "currency": None,
        }

    def test_start_date_sets_billing_day(self):
        parsed = parse_manual("Gym | 30 | monthly | 2024-01-31", TODAY)
        assert parsed["start_date"] == date(2024, 1, 31)
        assert parsed["billing_day"] == 31

    def test_currency(self):
        assert parse_manual("Domain | 12 | yearly | 2024-07-14 | usd", TODAY)["currency"] == "USD"

    def test_comma_decimal(self):
        assert parse_manual("Spotify | 10,99 € | Monthly", TODAY)["amount"] == 10.99

    @pytest.mark.parametrize("text", [
        "spotify 10.99 every month",
        "Netflix | abc | monthly",
        "Netflix | 15 | daily",
        "Netflix | 15 | monthly | tomorrow",
        " | 15 | monthly",
    ])
    def test_not_structured(self, text):
        assert parse_manual(text, TODAY) is None


class TestWords:
    def test_cycle_synonyms(self):
        assert parse_cycle_word("Annual") is BillingCycle.YEARLY
        assert parse_cycle_word("fortnightly") is BillingCycle.BI_WEEKLY
        assert parse_cycle_word("One-Time") is BillingCycle.ONE_TIME
        assert parse_cycle_word("hourly") is None

    def test_amount(self):
        assert parse_amount("€15,99") == 15.99
        assert parse_amount("1.2.3") is None
        assert parse_amount("free") is None


class TestParseFieldValue:
    """Tests for /edit values"""

    def test_amount(self):
        assert parse_field_value("amount", "17.99") == ("amount", 17.99)

    def test_cycle(self):
        assert parse_field_value("cycle", "quarterly") == ("billing_cycle", BillingCycle.QUARTERLY)

    def test_category_is_case_insensitive(self):
        assert parse_field_value("category", "music") == ("category", "Music")

    def test_clear_optional(self):
        assert parse_field_value("end", "none") == ("end_date", None)
        assert parse_field_value("remind_days", "default") == ("reminder_days", None)

    def test_mute_and_unmute(self):
        assert parse_field_value("remind", "off") == ("reminders_off", True)
        assert parse_field_value("remind", "ON") == ("reminders_off", False)
        assert parse_field_value("remind_days", "off") == ("reminders_off", True)
        assert parse_field_value("remind_days", "none") == ("reminder_days", None)

    def test_date(self):
        assert parse_field_value("start", "2024-02-01") == ("start_date", date(2024, 2, 1))

    @pytest.mark.parametrize("field, value", [
        ("colour", "red"),
        ("amount", "lots"),
        ("day", "first"),
        ("start", "soon"),
        ("category", "Gaming"),
        ("method", "Bitcoin"),
        ("remind", "later"),
    ])
    def test_rejected(self, field, value):
        with pytest.raises(ValueError):
            parse_field_value(field, value)
