"""
Settlement routes.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from familysplit.core.config import settings
from familysplit.db.session import get_db
from familysplit.models.trip import SplitMethod
from familysplit.schemas.settlement import SettlementSummary, SettlementToggleRequest
from familysplit.services import trip_service
from familysplit.services.settlement_service import (
    build_settlement_summary, SettlementIntegrityError
)
from familysplit.api.dependencies import get_access_key
from familysplit.api.routes.trips import check_trip_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settlement", tags=["settlement"])


def summarize(document, method: SplitMethod) -> SettlementSummary:
    """Build the settlement view, reporting inconsistent stored amounts as a server error."""
    try:
        return build_settlement_summary(document, method)
    except SettlementIntegrityError as e:
        logger.error(f"Settlement integrity failure on trip {document.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.get("/{trip_id}", response_model=SettlementSummary)
async def get_settlement(
    trip_id: str,
    method: Optional[SplitMethod] = Query(None, description="BY_MEMBER or BY_FAMILY"),
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Get balances and proposed transfers for a trip."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    return summarize(document, method or SplitMethod(settings.DEFAULT_SPLIT_METHOD))


@router.post("/{trip_id}/toggle", response_model=SettlementSummary)
async def toggle_settlement(
    trip_id: str,
    toggle_data: SettlementToggleRequest,
    method: Optional[SplitMethod] = Query(None, description="BY_MEMBER or BY_FAMILY"),
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Mark a transfer as paid, or unmark it, and return the refreshed view."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    updated = trip_service.apply_settlement_toggle(document, toggle_data.key)
    trip_group = trip_service.save_document(trip_group, updated, db)

    return summarize(trip_service.load_document(trip_group), method or SplitMethod(settings.DEFAULT_SPLIT_METHOD))
