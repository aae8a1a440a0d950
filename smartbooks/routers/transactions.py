import logging
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from smartbooks.core.security import get_current_user_id
from smartbooks.db import dynamo
from smartbooks.models.transaction import (
    CATEGORIES,
    TransactionCreate,
    TransactionInDB,
    TransactionPublic,
    TransactionType,
    TransactionUpdate,
)
from smartbooks.utils.aggregator import summarize

router = APIRouter()
logger = logging.getLogger(__name__)

DEMO_TRANSACTIONS = [
    {"amount": 25000, "type": "income", "category": "Sales",
     "description": "Product sales - Week 1", "transaction_date": date(2025, 10, 15)},
    {"amount": 18500, "type": "income", "category": "Services",
     "description": "Consulting services rendered", "transaction_date": date(2025, 10, 18)},
    {"amount": 3200, "type": "expense", "category": "Supplies",
     "description": "Office supplies purchase", "transaction_date": date(2025, 10, 10)},
    {"amount": 4500, "type": "expense", "category": "Utilities",
     "description": "Electricity and water bills", "transaction_date": date(2025, 10, 12)},
    {"amount": 15000, "type": "expense", "category": "Rent",
     "description": "Office rent - October", "transaction_date": date(2025, 10, 1)},
]


@router.get("/categories")
def list_categories() -> Dict[str, List[str]]:
    """Recommended categories for the entry form, per transaction type."""
    return CATEGORIES


@router.post("/", response_model=TransactionPublic, status_code=status.HTTP_201_CREATED)
def create_transaction(transaction: TransactionCreate, user_id: str = Depends(get_current_user_id)):
    transaction_db = TransactionInDB(user_id=user_id, **transaction.model_dump())
    success = dynamo.put_transaction(transaction_db.model_dump(mode="json"))
    if not success:
        raise HTTPException(status_code=500, detail="Failed to save transaction")
    return TransactionPublic(**transaction_db.model_dump())


@router.get("/")
def list_transactions(
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    month: Optional[str] = Query(default=None, pattern=r"^\d{4}-\d{2}$"),
    user_id: str = Depends(get_current_user_id),
) -> Dict:
    """
    List transactions newest first. Optional filters: type, category and
    month in YYYY-MM format. The summary covers the filtered list.
    """
    transactions = dynamo.get_transactions_for_user(
        user_id,
        month=month,
        transaction_type=type.value if type else None,
        category=category,
    )
    return {
        "transactions": transactions,
        "count": len(transactions),
        "summary": summarize(transactions).to_dict(),
    }


@router.post("/demo", status_code=status.HTTP_201_CREATED)
def load_demo_transactions(user_id: str = Depends(get_current_user_id)) -> Dict:
    """Seed the account with sample transactions. Only allowed on an empty account."""
    if dynamo.has_transactions(user_id):
        raise HTTPException(status_code=409, detail="Demo data can only be loaded into an empty account")

    items = [
        TransactionInDB(user_id=user_id, **demo).model_dump(mode="json")
        for demo in DEMO_TRANSACTIONS
    ]
    if not dynamo.put_transactions(items):
        raise HTTPException(status_code=500, detail="Failed to load demo data")

    logger.info(f"Loaded {len(items)} demo transactions for user {user_id}")
    return {
        "success": True,
        "message": "Demo data loaded successfully! Explore the insights.",
        "count": len(items),
    }


@router.get("/{transaction_id}", response_model=TransactionPublic)
def get_transaction(transaction_id: str, user_id: str = Depends(get_current_user_id)):
    transaction = dynamo.get_transaction(user_id, transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return TransactionPublic(**transaction)


@router.put("/{transaction_id}", response_model=TransactionPublic)
def update_transaction(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    user_id: str = Depends(get_current_user_id),
):
    mutable_fields = transaction_update.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if not mutable_fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    updated = dynamo.update_transaction(user_id, transaction_id, mutable_fields)
    if not updated:
        raise HTTPException(status_code=404, detail="Transaction not found")

    return TransactionPublic(**updated)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(transaction_id: str, user_id: str = Depends(get_current_user_id)):
    deleted = dynamo.delete_transaction(user_id, transaction_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return None
