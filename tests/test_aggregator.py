from datetime import date

from smartbooks.utils.aggregator import (
    Summary,
    category_totals,
    coerce_amount,
    monthly_series,
    summarize,
    top_categories,
)

sample_transactions = [
    {"transaction_id": "1", "type": "income", "category": "Sales", "amount": 25000, "transaction_date": "2025-10-15"},
    {"transaction_id": "2", "type": "expense", "category": "Rent", "amount": 15000, "transaction_date": "2025-10-01"},
    {"transaction_id": "3", "type": "expense", "category": "Supplies", "amount": 3200.5, "transaction_date": "2025-08-10"},
    {"transaction_id": "4", "type": "income", "category": "Services", "amount": 18500, "transaction_date": "2025-10-18"},
    {"transaction_id": "5", "type": "expense", "category": "Utilities", "amount": 4500, "transaction_date": "2025-09-12"},
    {"transaction_id": "6", "type": "expense", "category": "Supplies", "amount": 800, "transaction_date": "2025-08-20"},
]


def test_summarize_totals():
    summary = summarize(sample_transactions)
    assert summary.total_income == 43500
    assert summary.total_expenses == 23500.5
    assert summary.balance == summary.total_income - summary.total_expenses


def test_summarize_empty():
    assert summarize([]) == Summary(0.0, 0.0, 0.0)


def test_summarize_negative_balance():
    summary = summarize([
        {"type": "income", "amount": 100},
        {"type": "expense", "amount": 250.75},
    ])
    assert summary.balance == -150.75
    assert summary.to_dict() == {"total_income": 100.0, "total_expenses": 250.75, "balance": -150.75}


def test_malformed_amounts_count_as_zero():
    transactions = [
        {"type": "income", "amount": -50},
        {"type": "income", "amount": "abc"},
        {"type": "income"},
        {"type": "income", "amount": None},
        {"type": "income", "amount": "20.5"},
        {"type": "expense", "amount": float("nan")},
    ]
    summary = summarize(transactions)
    assert summary.total_income == 20.5
    assert summary.total_expenses == 0
    assert coerce_amount(True) == 0.0


def test_category_totals_expense_by_default():
    totals = category_totals(sample_transactions)
    assert totals == {"Rent": 15000, "Supplies": 4000.5, "Utilities": 4500}
    assert list(totals) == ["Rent", "Supplies", "Utilities"]


def test_category_totals_income_and_case_sensitivity():
    transactions = sample_transactions + [
        {"type": "expense", "category": "rent", "amount": 10},
    ]
    assert category_totals(transactions, "income") == {"Sales": 25000, "Services": 18500}
    assert category_totals(transactions)["rent"] == 10
    assert category_totals(transactions)["Rent"] == 15000


def test_top_categories_sorted_and_limited():
    assert top_categories(sample_transactions, limit=2) == [("Rent", 15000), ("Utilities", 4500)]


def test_monthly_series_keeps_first_encounter_order():
    series = monthly_series(sample_transactions)
    assert [point.month for point in series] == ["Oct 2025", "Aug 2025", "Sep 2025"]

    october = series[0]
    assert october.income == 43500
    assert october.expenses == 15000
    assert series[1].expenses == 4000.5
    assert series[1].income == 0


def test_monthly_series_window_takes_last_entries():
    series = monthly_series(sample_transactions, window=2)
    assert [point.month for point in series] == ["Aug 2025", "Sep 2025"]
    assert monthly_series(sample_transactions, window=0) == []


def test_monthly_series_accepts_dates_and_skips_bad_ones():
    transactions = [
        {"type": "expense", "amount": 10, "transaction_date": date(2024, 1, 5)},
        {"type": "expense", "amount": 10, "transaction_date": "not a date"},
        {"type": "income", "amount": 5, "transaction_date": "2024-01-31T10:00:00"},
    ]
    series = monthly_series(transactions)
    assert len(series) == 1
    assert series[0].to_dict() == {"month": "Jan 2024", "income": 5.0, "expenses": 10.0}


def test_aggregations_do_not_mutate_input():
    snapshot = [dict(t) for t in sample_transactions]
    summarize(snapshot)
    category_totals(snapshot)
    monthly_series(snapshot, window=6)
    assert snapshot == sample_transactions
