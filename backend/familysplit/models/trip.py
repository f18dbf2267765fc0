"""
Trip group model storing the shared trip document.
"""
from sqlalchemy import Column, String, Integer, JSON
from familysplit.db.base import BaseModel
import enum


class FamilyRole(str, enum.Enum):
    """Role of a family inside a trip."""
    ADMIN = "ADMIN"
    USER = "USER"


class SplitMethod(str, enum.Enum):
    """Fair share policy used by the settlement engine."""
    BY_MEMBER = "BY_MEMBER"  # Proportional to each family's headcount
    BY_FAMILY = "BY_FAMILY"  # Equal split regardless of headcount

    @classmethod
    def _missing_(cls, value):
        # Older clients labelled the equal split "BY_PERCENTAGE"
        if isinstance(value, str) and value.upper() == "BY_PERCENTAGE":
            return cls.BY_FAMILY
        return None


class TripGroup(BaseModel):
    """Trip group model holding the whole trip document as JSON."""
    __tablename__ = "trip_groups"

    group_id = Column(String(32), unique=True, nullable=False, index=True)  # Public id shared in links
    access_key_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    data = Column(JSON, nullable=False)  # Families, expenses, admin id and settled transfers
    version = Column(Integer, nullable=False, default=1)  # Incremented on every save
