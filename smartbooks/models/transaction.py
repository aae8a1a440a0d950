from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


# Recommended categories shown in the entry form. Not enforced.
CATEGORIES: Dict[str, List[str]] = {
    TransactionType.INCOME.value: ["Sales", "Services", "Investment", "Other Income"],
    TransactionType.EXPENSE.value: [
        "Supplies",
        "Utilities",
        "Rent",
        "Salaries",
        "Transport",
        "Marketing",
        "Other Expense",
    ],
}


class TransactionCreate(BaseModel):
    amount: float = Field(gt=0)
    type: TransactionType
    category: str = Field(min_length=1)
    description: Optional[str] = ""
    transaction_date: date = Field(default_factory=date.today)
    receipt_id: Optional[str] = None


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    transaction_date: Optional[date] = None


class TransactionInDB(BaseModel):
    user_id: str
    transaction_id: str = Field(default_factory=lambda: str(uuid4()))
    amount: float
    type: TransactionType
    category: str
    description: Optional[str] = ""
    transaction_date: date
    receipt_id: Optional[str] = None
    created_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat())


class TransactionPublic(BaseModel):
    transaction_id: str
    amount: float
    type: TransactionType
    category: str
    description: Optional[str] = ""
    transaction_date: date
    receipt_id: Optional[str] = None
    created_at: str = ""
