from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from smartbooks.utils.aggregator import (
    EXPENSE,
    INCOME,
    Summary,
    category_totals,
    coerce_amount,
    transaction_type,
)


class InsightType(str, Enum):
    TIP = "tip"
    WARNING = "warning"
    POSITIVE = "positive"


@dataclass(frozen=True)
class Insight:
    type: InsightType
    title: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


@dataclass(frozen=True)
class InsightThresholds:
    """Tunable limits for the insight rules. Percentages are on a 0-100 scale."""

    rising_expenses_pct: float = 15.0
    falling_expenses_pct: float = -10.0
    category_share_pct: float = 40.0
    savings_rate_pct: float = 20.0
    week_window: int = 7
    max_insights: int = 3
    currency: str = "KES"

    @classmethod
    def from_settings(cls, settings: Any) -> "InsightThresholds":
        return cls(
            rising_expenses_pct=settings.INSIGHT_RISING_EXPENSES_PCT,
            falling_expenses_pct=settings.INSIGHT_FALLING_EXPENSES_PCT,
            category_share_pct=settings.INSIGHT_CATEGORY_SHARE_PCT,
            savings_rate_pct=settings.INSIGHT_SAVINGS_RATE_PCT,
            week_window=settings.INSIGHT_WEEK_WINDOW,
            max_insights=settings.INSIGHT_MAX_RESULTS,
            currency=settings.CURRENCY,
        )


WELCOME_INSIGHT = Insight(
    type=InsightType.TIP,
    title="Welcome to SmartBooks AI",
    message="Start adding transactions to receive personalized financial insights powered by AI.",
)


def _round_half_up(value: float, exponent: str) -> Decimal:
    number = Decimal(str(value))
    if not number.is_finite():
        return number
    with localcontext() as ctx:
        # quantize needs every integer digit plus the kept decimals
        ctx.prec = max(ctx.prec, number.adjusted() + 4)
        return number.quantize(Decimal(exponent), rounding=ROUND_HALF_UP)


def format_percent(value: float) -> str:
    return f"{_round_half_up(value, '1')}%"


def format_money(value: float, currency: str = "KES") -> str:
    return f"{currency} {_round_half_up(value, '0.01'):,.2f}"


def _expense_total(transactions: Sequence[Mapping[str, Any]]) -> float:
    return sum(coerce_amount(t.get("amount")) for t in transactions if transaction_type(t) == EXPENSE)


class InsightEngine:
    """
    Turns a transaction snapshot and its summary into a short list of advice.

    Rules run in a fixed order and each contributes at most one insight.
    Every rule is evaluated; the list is cut to ``max_insights`` at the end,
    so earlier rules take precedence over later ones.

    ``transactions`` is expected newest first, which is how the storage
    layer lists them. The week-over-week rule compares the first
    ``week_window`` entries against the next ``week_window``.
    """

    def __init__(self, thresholds: Optional[InsightThresholds] = None) -> None:
        self.thresholds = thresholds or InsightThresholds()
        self._rules = (
            self._expense_trend,
            self._dominant_category,
            self._savings_rate,
            self._negative_cash_flow,
            self._income_pattern,
        )

    def generate(self, transactions: Sequence[Mapping[str, Any]], summary: Summary) -> List[Insight]:
        transactions = list(transactions)
        if not transactions:
            return [WELCOME_INSIGHT]

        insights: List[Insight] = []
        for rule in self._rules:
            insight = rule(transactions, summary)
            if insight is not None:
                insights.append(insight)
        return insights[: self.thresholds.max_insights]

    def _money(self, value: float) -> str:
        return format_money(value, self.thresholds.currency)

    def _expense_trend(self, transactions: List[Mapping[str, Any]], summary: Summary) -> Optional[Insight]:
        window = self.thresholds.week_window
        recent = _expense_total(transactions[:window])
        previous = _expense_total(transactions[window : window * 2])
        if previous <= 0:
            return None

        percent_change = (recent - previous) / previous * 100
        if percent_change > self.thresholds.rising_expenses_pct:
            return Insight(
                type=InsightType.WARNING,
                title="Rising Expenses Detected",
                message=(
                    f"Your expenses increased by {format_percent(percent_change)} compared to the previous week. "
                    "Consider reviewing your spending on high-cost categories."
                ),
            )
        if percent_change < self.thresholds.falling_expenses_pct:
            return Insight(
                type=InsightType.POSITIVE,
                title="Great Expense Management",
                message=(
                    f"Your expenses decreased by {format_percent(abs(percent_change))} compared to last week. "
                    "Keep up the excellent financial discipline!"
                ),
            )
        return None

    def _dominant_category(self, transactions: List[Mapping[str, Any]], summary: Summary) -> Optional[Insight]:
        totals = category_totals(transactions, EXPENSE)
        if not totals or summary.total_expenses <= 0:
            return None

        # max() keeps the first category seen on ties
        category, amount = max(totals.items(), key=lambda item: item[1])
        share = amount / summary.total_expenses * 100
        if share <= self.thresholds.category_share_pct:
            return None
        return Insight(
            type=InsightType.TIP,
            title="Category Spending Alert",
            message=(
                f"{category} represents {format_percent(share)} of your total expenses ({self._money(amount)}). "
                "Consider finding ways to optimize costs in this area."
            ),
        )

    def _savings_rate(self, transactions: List[Mapping[str, Any]], summary: Summary) -> Optional[Insight]:
        if summary.balance <= 0 or summary.total_income <= 0:
            return None
        savings_rate = summary.balance / summary.total_income * 100
        if savings_rate <= self.thresholds.savings_rate_pct:
            return None
        return Insight(
            type=InsightType.POSITIVE,
            title="Strong Savings Rate",
            message=(
                f"You're saving {format_percent(savings_rate)} of your income. "
                "This is excellent financial health for an MSME. Consider investing surplus funds for growth."
            ),
        )

    def _negative_cash_flow(self, transactions: List[Mapping[str, Any]], summary: Summary) -> Optional[Insight]:
        if summary.balance >= 0:
            return None
        return Insight(
            type=InsightType.WARNING,
            title="Negative Cash Flow",
            message=(
                f"Your expenses exceed income by {self._money(abs(summary.balance))}. "
                "Review your expense categories and consider ways to increase revenue or reduce costs."
            ),
        )

    def _income_pattern(self, transactions: List[Mapping[str, Any]], summary: Summary) -> Optional[Insight]:
        amounts = [coerce_amount(t.get("amount")) for t in transactions if transaction_type(t) == INCOME]
        if not amounts:
            return None
        average = sum(amounts) / len(amounts)
        return Insight(
            type=InsightType.TIP,
            title="Income Pattern Analysis",
            message=(
                f"Your average income per transaction is {self._money(average)}. "
                "Focus on increasing transaction frequency or value to boost overall revenue."
            ),
        )


def generate_insights(
    transactions: Sequence[Mapping[str, Any]],
    summary: Summary,
    thresholds: Optional[InsightThresholds] = None,
) -> List[Insight]:
    return InsightEngine(thresholds).generate(transactions, summary)
