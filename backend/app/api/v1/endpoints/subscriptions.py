from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.subscriptions import SubscriptionResponse
from app.services.subscriptions import get_current_for_user

router = APIRouter()


@router.get("/current", response_model=SubscriptionResponse)
def get_current_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    subscription = get_current_for_user(db, current_user.id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="No subscription found")
    return subscription
