"""Points balance and payment history for the current user."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.points import PaymentHistoryPage, PointsBalanceResponse
from app.services.points.accounts import get_or_create_points, get_payment_history

router = APIRouter()


@router.get("/balance", response_model=PointsBalanceResponse)
def get_points_balance(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's points, creating the default balance on first read."""
    return get_or_create_points(db, current_user.id)


@router.get("/history", response_model=PaymentHistoryPage)
def get_points_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's payment history, newest first."""
    entries, total = get_payment_history(db, current_user.id, page, page_size)
    return PaymentHistoryPage(
        items=entries,
        total=total,
        page=page,
        page_size=page_size,
    )
