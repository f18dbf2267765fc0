"""
Expense management routes.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from familysplit.db.session import get_db
from familysplit.schemas.expense import ExpenseCreate
from familysplit.schemas.trip import TripResponse
from familysplit.services import trip_service
from familysplit.services.trip_service import TripDocumentError
from familysplit.api.dependencies import get_access_key
from familysplit.api.routes.trips import check_trip_access, raise_for_document_error, build_trip_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("/{trip_id}", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    trip_id: str,
    expense_data: ExpenseCreate,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Add an expense paid by one of the trip's families."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    try:
        updated, expense = trip_service.add_expense(
            document,
            expense_data.concept,
            expense_data.amount,
            expense_data.family_id,
            date=expense_data.date,
            image_url=expense_data.image_url
        )
    except TripDocumentError as e:
        raise_for_document_error(e)

    trip_group = trip_service.save_document(trip_group, updated, db)
    logger.info(f"Added expense {expense.id} ({expense.amount}) to trip {trip_id}")

    return build_trip_response(trip_group)


@router.delete("/{trip_id}/{expense_id}", response_model=TripResponse)
async def delete_expense(
    trip_id: str,
    expense_id: str,
    access_key: str = Depends(get_access_key),
    db: Session = Depends(get_db)
):
    """Delete an expense."""
    trip_group = check_trip_access(trip_id, access_key, db)
    document = trip_service.load_document(trip_group)

    try:
        updated = trip_service.delete_expense(document, expense_id)
    except TripDocumentError as e:
        raise_for_document_error(e)

    trip_group = trip_service.save_document(trip_group, updated, db)
    return build_trip_response(trip_group)
