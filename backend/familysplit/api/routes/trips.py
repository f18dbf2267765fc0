"""
Trip management routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from familysplit.db.session import get_db
from familysplit.core.security import verify_access_key
from familysplit.models.trip import TripGroup
from familysplit.schemas.trip import (
    TripCreate, TripResponse, TripCreatedResponse, TripSaveRequest,
    FamilyCreate, FamilyJoinResponse, FamilyRoleUpdate, FamilyMemberCountUpdate
)
from familysplit.services import trip_service
from familysplit.services.trip_service import (
    TripDocumentError, FamilyNotFoundError, ExpenseNotFoundError,
    PermissionDeniedError, VersionConflictError
)
from familysplit.api.dependencies import get_access_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["trips"])


def check_trip_access(trip_id: str, access_key: str, db: Session) -> TripGroup:
    """Check that the trip exists and the access key matches."""
    trip_group = db.query(TripGroup).filter(TripGroup.group_id == trip_id).first()
    if not trip_group:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found"
        )

    if not verify_access_key(access_key, trip_group.access_key_hash):
        logger.warning(f"Rejected access to trip {trip_id}: wrong access key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Wrong access key"
        )

    return trip_group


def raise_for_document_error(error: ValueError):
    """Translate trip service errors into HTTP errors."""
    if isinstance(error, (FamilyNotFoundError, ExpenseNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PermissionDeniedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, VersionConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))


def build_trip_response(trip_group: TripGroup) -> TripResponse:
    return TripResponse(
        id=trip_group.group_id,
        version=trip_group.version,
        document=trip_service.load_document(trip_group),
        updated_at=trip_group.updated_at
    )


@router.post("", response_model=TripCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    db: Session = Depends(get_db)
):
    """Create a new trip with its admin family."""
    trip_group, access_key = trip_service.create_trip_group(
        trip_data.name,
        trip_data.admin_family_name,
        trip_data.member_count,
        db
    )
    response = build_trip_response(trip_group)
    return TripCreatedResponse(**response.model_dump(), access_key=access_key)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: str,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Get the trip document."""
    trip_group = check_trip_access(trip_id, access_key, db)
    return build_trip_response(trip_group)


@router.put("/{trip_id}", response_model=TripResponse)
async def save_trip(
    trip_id: str,
    save_data: TripSaveRequest,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Overwrite the whole trip document."""
    trip_group = check_trip_access(trip_id, access_key, db)

    try:
        trip_group = trip_service.save_document(
            trip_group, save_data.document, db, expected_version=save_data.expected_version
        )
    except (TripDocumentError, VersionConflictError) as e:
        raise_for_document_error(e)

    return build_trip_response(trip_group)


@router.post("/{trip_id}/join", response_model=FamilyJoinResponse)
async def join_trip(
    trip_id: str,
    family_data: FamilyCreate,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Join a trip as a family, reusing an existing family with the same name."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    updated, family = trip_service.join_family(document, family_data.name, family_data.member_count)
    if updated is not document:
        trip_group = trip_service.save_document(trip_group, updated, db)

    response = build_trip_response(trip_group)
    return FamilyJoinResponse(**response.model_dump(), family_id=family.id)


@router.post("/{trip_id}/families", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_family(
    trip_id: str,
    family_data: FamilyCreate,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Add a family to the trip."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    updated, _ = trip_service.add_family(document, family_data.name, family_data.member_count)
    trip_group = trip_service.save_document(trip_group, updated, db)

    return build_trip_response(trip_group)


@router.patch("/{trip_id}/families/{family_id}/role", response_model=TripResponse)
async def update_family_role(
    trip_id: str,
    family_id: str,
    role_data: FamilyRoleUpdate,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Change a family's role (admin only)."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    try:
        updated = trip_service.update_role(document, role_data.actor_family_id, family_id, role_data.role)
    except TripDocumentError as e:
        raise_for_document_error(e)

    trip_group = trip_service.save_document(trip_group, updated, db)
    return build_trip_response(trip_group)


@router.patch("/{trip_id}/families/{family_id}/members", response_model=TripResponse)
async def update_family_members(
    trip_id: str,
    family_id: str,
    count_data: FamilyMemberCountUpdate,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Change a family's member count."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    try:
        updated = trip_service.update_member_count(
            document, count_data.actor_family_id, family_id, count_data.member_count
        )
    except TripDocumentError as e:
        raise_for_document_error(e)

    trip_group = trip_service.save_document(trip_group, updated, db)
    return build_trip_response(trip_group)
