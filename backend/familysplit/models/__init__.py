"""Models package - Import all models for SQLAlchemy registration."""
from familysplit.models.trip import TripGroup, FamilyRole, SplitMethod

__all__ = [
    "TripGroup",
    "FamilyRole",
    "SplitMethod",
]
