"""Admin points operations — manual allocation and duplicate cleanup."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.auth import get_admin_user
from app.core.database import get_db
from app.models.user import User
from app.schemas.points import AllocationResponse, DedupeResponse, ManualAllocationRequest
from app.services.auth import get_user_by_id
from app.services.points import Ledger, PaymentEventKind, PointsError, get_ledger
from app.services.points.accounts import remove_duplicate_allocations

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/points/allocate", response_model=AllocationResponse)
async def allocate_points(
    payload: ManualAllocationRequest,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
    ledger: Ledger = Depends(get_ledger),
):
    """Credit points to a user once per ``external_event_id``."""
    if get_user_by_id(db, payload.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        result = await run_in_threadpool(
            ledger.credit,
            payload.user_id,
            payload.points,
            payload.external_event_id,
            PaymentEventKind.MANUAL,
        )
    except PointsError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    logger.info(
        "Admin %s manual allocation %s for user %s: allocated=%s",
        admin.email,
        payload.external_event_id,
        payload.user_id,
        result.allocated,
    )
    return AllocationResponse(
        user_id=payload.user_id,
        external_event_id=payload.external_event_id,
        allocated=result.allocated,
        new_balance=result.new_balance,
    )


@router.post("/points/dedupe", response_model=DedupeResponse)
def dedupe_allocations(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    """Remove duplicate allocation records left by unserialized credits."""
    removed = remove_duplicate_allocations(db)
    logger.info("Admin %s removed %d duplicate allocations", admin.email, removed)
    return DedupeResponse(removed=removed)
