"""
Unit tests for subscription exports.
"""
import io
from datetime import date, datetime
from unittest.mock import MagicMock

import pandas as pd
import pytest

from models.subscription import BillingCycle
from services.export_service import EXPORT_COLUMNS, ExportService


@pytest.fixture
def export_service():
    return ExportService(repo=MagicMock())


class TestCsv:
    """Tests for the CSV export"""

    def test_columns_and_values(self, export_service, make_subscription):
        sub = make_subscription(
            id=4, notes="family plan, 4 screens", reminder_days=3, created_at=datetime(2024, 1, 2, 8, 0)
        )
        raw = export_service.build_csv([sub]).getvalue()

        assert raw.startswith(b"\xef\xbb\xbf")
        df = pd.read_csv(io.BytesIO(raw), encoding="utf-8-sig", keep_default_na=False)
        assert list(df.columns) == EXPORT_COLUMNS
        row = df.iloc[0]
        assert row["Service Name"] == "Netflix"
        assert row["Notes"] == "family plan, 4 screens"
        assert row["Archived"] == "No"
        assert row["Start Date"] == "2024-01-15"
        assert row["Created At"] == "2024-01-02"
        assert row["End Date"] == ""

    def test_empty_export_has_header(self, export_service):
        df = pd.read_csv(export_service.build_csv([]), encoding="utf-8-sig")
        assert list(df.columns) == EXPORT_COLUMNS
        assert df.empty

    def test_archived_only_on_request(self, make_subscription):
        repo = MagicMock()
        repo.list_subscriptions.return_value = [make_subscription()]
        ExportService(repo=repo).export_csv(7, include_archived=True)
        repo.list_subscriptions.assert_called_once_with(7, include_archived=True)


class TestExcel:
    """Tests for the Excel export"""

    def test_summary_sheet(self, export_service, make_subscription):
        subs = [
            make_subscription(id=1, amount=10, category="Music"),
            make_subscription(id=2, amount=120, billing_cycle=BillingCycle.YEARLY, category="Music"),
            make_subscription(id=3, amount=5, category="Software"),
            make_subscription(id=4, amount=50, category="Software", is_archived=True),
        ]
        sheets = pd.read_excel(export_service.build_excel(subs), sheet_name=None)

        assert set(sheets) == {"Subscriptions", "Summary"}
        assert len(sheets["Subscriptions"]) == 4
        summary = dict(zip(sheets["Summary"]["Category"], sheets["Summary"]["Monthly"]))
        assert summary == {"Music": pytest.approx(20), "Software": pytest.approx(5)}

    def test_no_summary_without_data(self, export_service):
        sheets = pd.read_excel(export_service.build_excel([]), sheet_name=None)
        assert list(sheets) == ["Subscriptions"]


class TestMarkdown:
    """Tests for the Markdown export"""

    def test_table(self, export_service, make_subscription):
        text = export_service.build_markdown([make_subscription()], date(2024, 3, 10)).getvalue().decode()
        assert "Exported on: 2024-03-10" in text
        assert "| Netflix | Streaming | EUR 15.99 | Monthly | 15 | - |" in text
        assert text.endswith("Total: 1 subscription(s)")

    def test_empty(self, export_service):
        text = export_service.build_markdown([], date(2024, 3, 10)).getvalue().decode()
        assert text.endswith("No subscriptions to export.")
