"""
services/chart_service.py
--------------------------
Generates chart images for subscription spending.
Uses matplotlib to create bar/donut charts and returns them as BytesIO buffers.
"""

import io

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt

from services.spending_service import CategorySpending, SpendingDataPoint
from utils.formatting import format_money
from utils.logger import get_logger

logger = get_logger(__name__)

plt.rcParams["font.family"] = "DejaVu Sans"
plt.rcParams["figure.facecolor"] = "#1a1a2e"
plt.rcParams["text.color"] = "#e0e0e0"
plt.rcParams["axes.facecolor"] = "#1a1a2e"

_COLORS = [
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4",
    "#FFEAA7", "#DDA0DD", "#98D8C8", "#F7DC6F",
    "#BB8FCE", "#85C1E9",
]


def _to_png(fig) -> io.BytesIO:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight",
                facecolor=fig.get_facecolor())
    buf.seek(0)
    plt.close(fig)
    return buf


class ChartService:
    """Renders spending insights as PNG images."""

    def spending_bar(self, points: list[SpendingDataPoint], currency: str,
                     label: str) -> io.BytesIO | None:
        """
        Bar chart of charges per month.

        Returns:
            BytesIO buffer with PNG image, or None if nothing was charged.
        """
        amounts = [p.amount for p in points]
        if not any(amounts):
            return None

        fig, ax = plt.subplots(figsize=(9, 5))
        bars = ax.bar(
            range(len(points)), amounts,
            color="#4ECDC4",
            edgecolor="#1a1a2e",
            linewidth=1.5,
            width=0.6,
            zorder=3,
        )

        for bar, amount in zip(bars, amounts):
            if amount > 0:
                ax.text(
                    bar.get_x() + bar.get_width() / 2, bar.get_height(),
                    f"{amount:.0f}",
                    ha="center", va="bottom",
                    color="#e0e0e0", fontsize=9, fontweight="bold",
                )

        ax.set_xticks(range(len(points)))
        ax.set_xticklabels([f"{p.month}\n{p.year}" for p in points], fontsize=8, color="#e0e0e0")
        ax.set_ylabel(f"Amount ({currency})", fontsize=11, color="#e0e0e0")
        ax.set_title(
            f"Subscription spending - {label}\nTotal: {format_money(sum(amounts), currency)}",
            fontsize=13, fontweight="bold", pad=15,
        )

        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)
        ax.spines["left"].set_color("#444")
        ax.spines["bottom"].set_color("#444")
        ax.tick_params(colors="#e0e0e0")
        ax.grid(axis="y", alpha=0.2, color="#888")
        ax.set_axisbelow(True)
        plt.tight_layout()

        logger.info(f"Generated spending bar chart ({len(points)} months)")
        return _to_png(fig)

    def category_donut(self, categories: list[CategorySpending], currency: str,
                       label: str) -> io.BytesIO | None:
        """
        Donut chart of charges by category.

        Returns:
            BytesIO buffer with PNG image, or None if there is no data.
        """
        categories = [c for c in categories if c.amount > 0]
        if not categories:
            return None

        values = [c.amount for c in categories]
        fig, ax = plt.subplots(figsize=(8, 6))
        wedges, _, autotexts = ax.pie(
            values,
            labels=None,
            autopct=lambda pct: f"{pct:.1f}%",
            colors=[_COLORS[i % len(_COLORS)] for i in range(len(values))],
            startangle=90,
            pctdistance=0.82,
            wedgeprops=dict(width=0.5, edgecolor="#1a1a2e", linewidth=2),
        )
        for autotext in autotexts:
            autotext.set_color("white")
            autotext.set_fontsize(10)
            autotext.set_fontweight("bold")

        ax.legend(
            wedges, [f"{c.category}: {format_money(c.amount, currency)}" for c in categories],
            loc="center left",
            bbox_to_anchor=(1, 0, 0.5, 1),
            fontsize=10,
            frameon=False,
        )
        ax.set_title(
            f"By category - {label}\nTotal: {format_money(sum(values), currency)}",
            fontsize=14, fontweight="bold", pad=20,
        )
        plt.tight_layout()

        logger.info(f"Generated category chart ({len(categories)} categories)")
        return _to_png(fig)
