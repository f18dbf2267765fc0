"""
Pydantic schemas for Expense requests.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class ExpenseCreate(BaseModel):
    """Schema for expense creation."""
    concept: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    family_id: str  # Paying family
    date: Optional[datetime] = None  # Defaults to now
    image_url: Optional[str] = None
