"""
Pydantic schemas for the trip document and trip management requests.
"""
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from familysplit.models.trip import FamilyRole


class Family(BaseModel):
    """A participant group in a trip."""
    id: str
    name: str
    member_count: int = Field(gt=0)
    role: FamilyRole = FamilyRole.USER

    model_config = {"frozen": True}


class Expense(BaseModel):
    """A single payment made by one family."""
    id: str
    concept: str
    amount: Decimal = Field(ge=0)
    family_id: str  # Paying family
    date: datetime
    image_url: Optional[str] = None

    model_config = {"frozen": True}


class TripDocument(BaseModel):
    """The whole shared trip, stored and written back as one JSON document."""
    id: str
    name: str
    families: List[Family] = Field(min_length=1)
    expenses: List[Expense] = []
    admin_id: str  # Family that created the trip
    settled_transfers: List[str] = []  # Settlement keys confirmed as paid

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_references(self):
        """Admin and expense payers must be families of this trip."""
        family_ids = [f.id for f in self.families]
        if len(set(family_ids)) != len(family_ids):
            raise ValueError("Family ids must be unique within a trip")
        if self.admin_id not in family_ids:
            raise ValueError(f"Admin family '{self.admin_id}' is not part of the trip")
        expense_ids = set()
        for expense in self.expenses:
            if expense.family_id not in family_ids:
                raise ValueError(f"Expense '{expense.id}' references unknown family '{expense.family_id}'")
            if expense.id in expense_ids:
                raise ValueError(f"Duplicated expense id '{expense.id}'")
            expense_ids.add(expense.id)
        return self

    def get_family(self, family_id: str) -> Optional[Family]:
        """Return the family with the given id, if any."""
        return next((f for f in self.families if f.id == family_id), None)


class TripCreate(BaseModel):
    """Schema for trip creation."""
    name: str = Field(min_length=1)
    admin_family_name: str = Field(min_length=1)
    member_count: int = Field(default=1, gt=0)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: str
    version: int
    document: TripDocument
    updated_at: Optional[datetime] = None


class TripCreatedResponse(TripResponse):
    """Schema returned once on creation, with the plaintext access key."""
    access_key: str


class TripSaveRequest(BaseModel):
    """Schema for whole-document save."""
    document: TripDocument
    expected_version: Optional[int] = None  # Reject the save if the stored version differs


class FamilyCreate(BaseModel):
    """Schema for adding or joining a family."""
    name: str = Field(min_length=1)
    member_count: int = Field(default=1, gt=0)


class FamilyJoinResponse(TripResponse):
    """Schema for join response with the family the caller acts as."""
    family_id: str


class FamilyRoleUpdate(BaseModel):
    """Schema for role change."""
    actor_family_id: str  # Family performing the change
    role: FamilyRole


class FamilyMemberCountUpdate(BaseModel):
    """Schema for member count change."""
    actor_family_id: str
    member_count: int = Field(gt=0)
