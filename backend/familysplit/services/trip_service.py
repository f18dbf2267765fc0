"""
Trip service for trip document changes and persistence.

Document changes are pure: each function returns a new TripDocument and
leaves its input untouched. Only the ``*_trip_group`` helpers and
``save_document`` talk to the database.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple
from sqlalchemy import update
from sqlalchemy.orm import Session
from familysplit.core.config import settings
from familysplit.core.security import generate_access_key, get_access_key_hash
from familysplit.models.trip import TripGroup, FamilyRole
from familysplit.schemas.trip import TripDocument, Family, Expense
from familysplit.services.settlement_service import toggle_settlement

logger = logging.getLogger(__name__)


class TripDocumentError(ValueError):
    """Base error for invalid changes to a trip document."""


class FamilyNotFoundError(TripDocumentError):
    """Raised when a family id is not part of the trip."""


class ExpenseNotFoundError(TripDocumentError):
    """Raised when an expense id is not part of the trip."""


class PermissionDeniedError(TripDocumentError):
    """Raised when the acting family may not perform a change."""


class VersionConflictError(ValueError):
    """Raised when a save is based on an outdated document version."""

    def __init__(self, expected: int, current: int):
        self.expected = expected
        self.current = current
        super().__init__(f"Document version is {current}, save was based on {expected}")


def generate_group_id() -> str:
    """Generate the short public id used in shared trip links."""
    return str(uuid.uuid4())[:settings.GROUP_ID_LENGTH]


def _require_family(document: TripDocument, family_id: str) -> Family:
    family = document.get_family(family_id)
    if family is None:
        raise FamilyNotFoundError(f"Family '{family_id}' not found in trip")
    return family


def _normalize_name(name: str) -> str:
    return name.strip().lower()


def new_trip_document(
    name: str,
    admin_family_name: str,
    member_count: int = 1,
    group_id: Optional[str] = None
) -> TripDocument:
    """Create a trip document whose only family is the admin family."""
    admin = Family(
        id=str(uuid.uuid4()),
        name=admin_family_name,
        member_count=member_count,
        role=FamilyRole.ADMIN
    )
    return TripDocument(
        id=group_id or generate_group_id(),
        name=name,
        families=[admin],
        expenses=[],
        admin_id=admin.id,
        settled_transfers=[]
    )


def add_family(document: TripDocument, name: str, member_count: int = 1) -> Tuple[TripDocument, Family]:
    """Append a new USER family."""
    family = Family(id=str(uuid.uuid4()), name=name, member_count=member_count, role=FamilyRole.USER)
    updated = document.model_copy(update={"families": [*document.families, family]})
    return updated, family


def join_family(document: TripDocument, name: str, member_count: int = 1) -> Tuple[TripDocument, Family]:
    """
    Join a trip as a family.

    A family whose trimmed, case-insensitive name already exists is reused
    instead of being added twice.
    """
    wanted = _normalize_name(name)
    existing = next((f for f in document.families if _normalize_name(f.name) == wanted), None)
    if existing is not None:
        return document, existing
    return add_family(document, name, member_count)


def add_expense(
    document: TripDocument,
    concept: str,
    amount: Decimal,
    family_id: str,
    date: Optional[datetime] = None,
    image_url: Optional[str] = None
) -> Tuple[TripDocument, Expense]:
    """Append an expense paid by an existing family."""
    _require_family(document, family_id)
    expense = Expense(
        id=str(uuid.uuid4()),
        concept=concept,
        amount=amount,
        family_id=family_id,
        date=date or datetime.now(timezone.utc),
        image_url=image_url
    )
    updated = document.model_copy(update={"expenses": [*document.expenses, expense]})
    return updated, expense


def delete_expense(document: TripDocument, expense_id: str) -> TripDocument:
    """Remove an expense."""
    remaining = [e for e in document.expenses if e.id != expense_id]
    if len(remaining) == len(document.expenses):
        raise ExpenseNotFoundError(f"Expense '{expense_id}' not found in trip")
    return document.model_copy(update={"expenses": remaining})


def update_role(
    document: TripDocument,
    actor_family_id: str,
    family_id: str,
    role: FamilyRole
) -> TripDocument:
    """Change a family's role. Only admins may do it and the founding admin stays admin."""
    actor = _require_family(document, actor_family_id)
    _require_family(document, family_id)
    if actor.role != FamilyRole.ADMIN:
        raise PermissionDeniedError("Only admin families can change roles")
    if family_id == document.admin_id and role != FamilyRole.ADMIN:
        raise PermissionDeniedError("The family that created the trip must remain admin")

    families = [f.model_copy(update={"role": role}) if f.id == family_id else f for f in document.families]
    return document.model_copy(update={"families": families})


def update_member_count(
    document: TripDocument,
    actor_family_id: str,
    family_id: str,
    member_count: int
) -> TripDocument:
    """Change a family's headcount. Allowed to admins and to the family itself."""
    if member_count < 1:
        raise TripDocumentError("A family needs at least one member")
    actor = _require_family(document, actor_family_id)
    _require_family(document, family_id)
    if actor.role != FamilyRole.ADMIN and actor.id != family_id:
        raise PermissionDeniedError("Only admins can change other families' members")

    families = [
        f.model_copy(update={"member_count": member_count}) if f.id == family_id else f
        for f in document.families
    ]
    return document.model_copy(update={"families": families})


def apply_settlement_toggle(document: TripDocument, key: str) -> TripDocument:
    """Toggle a settlement key, keeping the stored order of the other keys."""
    current = list(document.settled_transfers or [])
    toggled = toggle_settlement(current, key)
    keys = [k for k in current if k in toggled]
    if key in toggled and key not in current:
        keys.append(key)
    return document.model_copy(update={"settled_transfers": keys})


def load_document(trip_group: TripGroup) -> TripDocument:
    """Parse the stored JSON document of a trip group."""
    return TripDocument.model_validate(trip_group.data)


def create_trip_group(
    name: str,
    admin_family_name: str,
    member_count: int,
    db: Session
) -> Tuple[TripGroup, str]:
    """
    Create and store a new trip.

    Returns the stored trip group and the plaintext access key, which is
    only available at creation time.
    """
    access_key = generate_access_key()
    group_id = generate_group_id()
    while db.query(TripGroup).filter(TripGroup.group_id == group_id).first():
        group_id = generate_group_id()

    document = new_trip_document(name, admin_family_name, member_count, group_id=group_id)
    trip_group = TripGroup(
        group_id=group_id,
        access_key_hash=get_access_key_hash(access_key),
        name=name,
        data=document.model_dump(mode="json"),
        version=1
    )
    db.add(trip_group)
    db.commit()
    db.refresh(trip_group)

    logger.info(f"Created trip {group_id} ('{name}')")
    return trip_group, access_key


def save_document(
    trip_group: TripGroup,
    document: TripDocument,
    db: Session,
    expected_version: Optional[int] = None
) -> TripGroup:
    """
    Overwrite the stored document with ``document``.

    Without ``expected_version`` the last write wins. With it, the save is
    rejected if someone else saved in between.
    """
    if document.id != trip_group.group_id:
        raise TripDocumentError(
            f"Document id '{document.id}' does not match trip '{trip_group.group_id}'"
        )
    # Version check and write happen in one UPDATE
    stmt = update(TripGroup).where(TripGroup.id == trip_group.id)
    if expected_version is not None:
        stmt = stmt.where(TripGroup.version == expected_version)
    stmt = stmt.values(
        data=document.model_dump(mode="json"),
        name=document.name,
        version=TripGroup.version + 1
    ).execution_options(synchronize_session=False)

    result = db.execute(stmt)
    if result.rowcount == 0:
        db.rollback()
        db.refresh(trip_group)
        logger.warning(
            f"Version conflict on trip {trip_group.group_id}: "
            f"expected {expected_version}, stored {trip_group.version}"
        )
        raise VersionConflictError(expected_version, trip_group.version)

    db.commit()
    db.refresh(trip_group)

    logger.info(f"Saved trip {trip_group.group_id} at version {trip_group.version}")
    return trip_group
