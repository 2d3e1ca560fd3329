"""
services/export_service.py
---------------------------
Generates CSV, Excel and Markdown exports of a user's subscriptions.
"""

import io
from datetime import date, datetime
from typing import Optional

import pandas as pd

from models.subscription import Subscription
from repositories.subscription_repo import SubscriptionRepository
from services.recurrence import billing_cycle_label, monthly_equivalent
from utils.logger import get_logger

logger = get_logger(__name__)

EXPORT_COLUMNS = [
    "ID",
    "Service Name",
    "Category",
    "Amount",
    "Currency",
    "Billing Cycle",
    "Billing Day",
    "Start Date",
    "End Date",
    "Payment Method",
    "Notes",
    "Archived",
    "Reminder Days",
    "Reminder Hour (24h)",
    "Reminders",
    "Created At",
    "Updated At",
]


def _iso(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


def _optional(value) -> str:
    return "" if value is None else value


class ExportService:
    """Generates downloadable subscription reports."""

    def __init__(self, repo: Optional[SubscriptionRepository] = None):
        self.repo = repo or SubscriptionRepository()

    def to_frame(self, subscriptions: list[Subscription]) -> pd.DataFrame:
        """One row per subscription, with EXPORT_COLUMNS in order."""
        data = [
            {
                "ID": s.id,
                "Service Name": s.service_name,
                "Category": s.category,
                "Amount": s.amount,
                "Currency": s.currency,
                "Billing Cycle": s.billing_cycle.value,
                "Billing Day": s.billing_day,
                "Start Date": _iso(s.start_date),
                "End Date": _iso(s.end_date),
                "Payment Method": s.payment_method or "",
                "Notes": s.notes or "",
                "Archived": "Yes" if s.is_archived else "No",
                "Reminder Days": _optional(s.reminder_days),
                "Reminder Hour (24h)": _optional(s.reminder_hour),
                "Reminders": "Off" if s.reminders_off else "On",
                "Created At": _iso(s.created_at),
                "Updated At": _iso(s.updated_at),
            }
            for s in subscriptions
        ]
        return pd.DataFrame(data, columns=EXPORT_COLUMNS)

    def build_csv(self, subscriptions: list[Subscription]) -> io.BytesIO:
        """CSV with a BOM so spreadsheet apps detect UTF-8."""
        buffer = io.BytesIO()
        self.to_frame(subscriptions).to_csv(buffer, index=False, encoding="utf-8-sig")
        buffer.seek(0)
        return buffer

    def build_excel(self, subscriptions: list[Subscription]) -> io.BytesIO:
        """
        Workbook with a 'Subscriptions' sheet and, when there is data, a
        'Summary' sheet of monthly-equivalent spend per category and currency.
        """
        df = self.to_frame(subscriptions)
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Subscriptions", index=False)

            active = [s for s in subscriptions if not s.is_archived]
            if active:
                summary = pd.DataFrame(
                    [
                        {
                            "Category": s.category,
                            "Currency": s.currency,
                            "Monthly": monthly_equivalent(s.amount, s.billing_cycle),
                        }
                        for s in active
                    ]
                ).dropna(subset=["Monthly"])
                if not summary.empty:
                    summary = summary.groupby(["Category", "Currency"])["Monthly"].sum().reset_index()
                    summary["Monthly"] = summary["Monthly"].round(2)
                    summary.to_excel(writer, sheet_name="Summary", index=False)

        buffer.seek(0)
        return buffer

    def build_markdown(self, subscriptions: list[Subscription], exported_on: date) -> io.BytesIO:
        lines = ["# Subscription Export", "", f"Exported on: {exported_on.isoformat()}", ""]
        if not subscriptions:
            lines.append("No subscriptions to export.")
        else:
            lines.append("| Service | Category | Amount | Billing Cycle | Billing Day | Payment Method |")
            lines.append("|---------|----------|--------|---------------|-------------|----------------|")
            for s in subscriptions:
                name = s.service_name.replace("|", "\\|")
                lines.append(
                    f"| {name} | {s.category} | {s.currency} {s.amount:.2f} | "
                    f"{billing_cycle_label(s.billing_cycle)} | {s.billing_day} | {s.payment_method or '-'} |"
                )
            lines.append("")
            lines.append(f"Total: {len(subscriptions)} subscription(s)")

        buffer = io.BytesIO("\n".join(lines).encode("utf-8"))
        buffer.seek(0)
        return buffer

    # ── Per-user exports ──────────────────────────────────

    def export_csv(self, user_id: int, include_archived: bool = False) -> io.BytesIO:
        subs = self.repo.list_subscriptions(user_id, include_archived=include_archived)
        logger.info(f"Exported {len(subs)} subscriptions as CSV for user {user_id}")
        return self.build_csv(subs)

    def export_excel(self, user_id: int, include_archived: bool = False) -> io.BytesIO:
        subs = self.repo.list_subscriptions(user_id, include_archived=include_archived)
        logger.info(f"Exported {len(subs)} subscriptions as Excel for user {user_id}")
        return self.build_excel(subs)

    def export_markdown(self, user_id: int, exported_on: date, include_archived: bool = False) -> io.BytesIO:
        subs = self.repo.list_subscriptions(user_id, include_archived=include_archived)
        logger.info(f"Exported {len(subs)} subscriptions as Markdown for user {user_id}")
        return self.build_markdown(subs, exported_on)
