from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ReceiptInDB(BaseModel):
    user_id: str
    receipt_id: str = Field(default_factory=lambda: str(uuid4()))
    file_path: str
    extracted_text: Optional[str] = None
    extracted_amount: Optional[float] = None
    extracted_date: Optional[str] = None
    confidence_score: Optional[float] = None
    created_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat())


class ReceiptPrefill(BaseModel):
    amount: float
    date: str
    description: str


class ReceiptPublic(BaseModel):
    receipt_id: str
    file_path: str
    extracted_text: Optional[str] = None
    extracted_amount: Optional[float] = None
    extracted_date: Optional[str] = None
    confidence_score: Optional[float] = None
    vendor: Optional[str] = None
    prefill: ReceiptPrefill
