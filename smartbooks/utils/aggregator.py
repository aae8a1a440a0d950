"""
Aggregations over a snapshot of a user's transactions.

Every function here is a pure reduction: it reads the transaction mappings
returned by the storage layer and never mutates them. Amounts that are
missing, negative or not numeric count as zero so that dashboards and
insights always have a defined total.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

INCOME = "income"
EXPENSE = "expense"


@dataclass(frozen=True)
class Summary:
    """Income, expense and balance totals over a transaction snapshot."""

    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {k: round(v, 2) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class MonthlyPoint:
    month: str
    income: float = 0.0
    expenses: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"month": self.month, "income": round(self.income, 2), "expenses": round(self.expenses, 2)}


def coerce_amount(value: Any) -> float:
    """Return ``value`` as a non-negative float, or 0.0 when it is unusable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        return 0.0
    return amount


def transaction_type(txn: Mapping[str, Any]) -> str:
    kind = txn.get("type")
    # Enum members from the API models compare by value
    return getattr(kind, "value", kind)


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def summarize(transactions: Iterable[Mapping[str, Any]]) -> Summary:
    total_income = 0.0
    total_expenses = 0.0
    for txn in transactions:
        kind = transaction_type(txn)
        if kind == INCOME:
            total_income += coerce_amount(txn.get("amount"))
        elif kind == EXPENSE:
            total_expenses += coerce_amount(txn.get("amount"))
    return Summary(
        total_income=total_income,
        total_expenses=total_expenses,
        balance=total_income - total_expenses,
    )


def category_totals(
    transactions: Iterable[Mapping[str, Any]],
    kind: str = EXPENSE,
) -> Dict[str, float]:
    """
    Sum amounts per category for transactions of ``kind``.

    Categories are matched exactly (case-sensitive) and keep the order in
    which they are first seen. Categories with no transactions are absent.
    """
    totals: Dict[str, float] = defaultdict(float)
    for txn in transactions:
        if transaction_type(txn) != kind:
            continue
        totals[str(txn.get("category", ""))] += coerce_amount(txn.get("amount"))
    return dict(totals)


def top_categories(
    transactions: Iterable[Mapping[str, Any]],
    limit: int = 5,
    kind: str = EXPENSE,
) -> List[Tuple[str, float]]:
    totals = category_totals(transactions, kind)
    # sorted() is stable, so equal totals keep first-seen order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def month_label(day: date) -> str:
    return day.strftime("%b %Y")


def monthly_series(
    transactions: Iterable[Mapping[str, Any]],
    window: Optional[int] = None,
) -> List[MonthlyPoint]:
    """
    Income and expense totals per calendar month.

    Months appear in the order they are first encountered in ``transactions``,
    not in calendar order. With ``window`` only the last ``window`` entries of
    that sequence are returned.
    """
    buckets: Dict[str, Dict[str, float]] = {}
    for txn in transactions:
        day = parse_date(txn.get("transaction_date"))
        if day is None:
            continue
        label = month_label(day)
        bucket = buckets.setdefault(label, {"income": 0.0, "expenses": 0.0})
        amount = coerce_amount(txn.get("amount"))
        if transaction_type(txn) == INCOME:
            bucket["income"] += amount
        else:
            bucket["expenses"] += amount

    series = [
        MonthlyPoint(month=label, income=values["income"], expenses=values["expenses"])
        for label, values in buckets.items()
    ]
    if window is not None:
        series = series[-window:] if window > 0 else []
    return series
