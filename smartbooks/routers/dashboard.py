"""
Dashboard Router
Summary cards, chart data and rule-based insights for the signed-in user
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends

from smartbooks.core.config import settings
from smartbooks.core.security import get_current_user_id
from smartbooks.db import dynamo
from smartbooks.utils.aggregator import category_totals, monthly_series, summarize, top_categories
from smartbooks.utils.insights import InsightEngine, InsightThresholds

router = APIRouter()
logger = logging.getLogger(__name__)
insight_engine = InsightEngine(InsightThresholds.from_settings(settings))

RECENT_TRANSACTIONS = 5
TOP_CATEGORIES = 5
TREND_MONTHS = 6


@router.get("/")
def get_dashboard(user_id: str = Depends(get_current_user_id)) -> Dict:
    transactions = dynamo.get_transactions_for_user(user_id)
    summary = summarize(transactions)
    insights = insight_engine.generate(transactions, summary)
    logger.info(f"Dashboard for user {user_id}: {len(transactions)} transactions, {len(insights)} insights")

    return {
        "summary": summary.to_dict(),
        "insights": [insight.to_dict() for insight in insights],
        "recent_transactions": transactions[:RECENT_TRANSACTIONS],
        "charts": {
            "expenses_by_category": {
                category: round(amount, 2) for category, amount in category_totals(transactions).items()
            },
            "top_categories": [
                {"category": category, "amount": round(amount, 2)}
                for category, amount in top_categories(transactions, limit=TOP_CATEGORIES)
            ],
            "monthly": [point.to_dict() for point in monthly_series(transactions, window=TREND_MONTHS)],
        },
        "transaction_count": len(transactions),
    }


@router.get("/insights")
def get_insights(user_id: str = Depends(get_current_user_id)) -> Dict:
    transactions = dynamo.get_transactions_for_user(user_id)
    summary = summarize(transactions)
    insights = insight_engine.generate(transactions, summary)
    return {
        "insights": [insight.to_dict() for insight in insights],
        "count": len(insights),
    }
