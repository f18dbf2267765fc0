"""
Pydantic schemas for Settlement entity.
"""
from pydantic import BaseModel
from typing import List
from decimal import Decimal
from familysplit.models.trip import SplitMethod


class Balance(BaseModel):
    """A family's position relative to its fair share."""
    family_id: str
    name: str = ""
    paid: Decimal
    share: Decimal
    balance: Decimal  # paid - share; positive = is owed, negative = owes

    model_config = {"frozen": True}


class Transfer(BaseModel):
    """A single proposed payment between families."""
    from_family_id: str
    to_family_id: str
    amount: Decimal

    model_config = {"frozen": True}


class SettlementTransferItem(BaseModel):
    """Schema for a transfer as rendered, with its ledger state."""
    from_family_id: str
    from_name: str
    to_family_id: str
    to_name: str
    amount: Decimal
    key: str  # Settlement key used to confirm this transfer
    is_settled: bool


class SettlementSummary(BaseModel):
    """Schema for settlement summary."""
    trip_id: str
    method: SplitMethod
    total_spent: Decimal
    total_members: int
    balances: List[Balance]
    transfers: List[SettlementTransferItem]
    all_settled: bool
    summary: str


class SettlementToggleRequest(BaseModel):
    """Schema for confirming or unconfirming a transfer."""
    key: str
