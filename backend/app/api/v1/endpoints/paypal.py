"""PayPal webhook receiver."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.database import get_db
from app.services.paypal import (
    PayPalAPIError,
    PayPalConfigurationError,
    SubscriptionNotReadyError,
    WebhookEvent,
    WebhookOutcome,
    WebhookPayloadError,
    WebhookVerificationError,
    process_event,
    verify_webhook_signature,
)
from app.services.points import Ledger, PointsError, get_ledger

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook", response_model=WebhookOutcome)
async def paypal_webhook(
    request: Request,
    db: Session = Depends(get_db),
    ledger: Ledger = Depends(get_ledger),
):
    """Receive a PayPal webhook event.

    Returns 200 for handled, duplicate and ignored events so PayPal stops
    redelivering; 400 for payloads that will never succeed; 503 when a retry
    may succeed.
    """
    raw = await request.body()
    try:
        body = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

    try:
        event = WebhookEvent.model_validate(body)
    except ValidationError as exc:
        logger.warning("Rejected malformed PayPal webhook: %s", exc.errors())
        raise HTTPException(status_code=400, detail="Malformed webhook event")

    if settings.PAYPAL_VERIFY_WEBHOOKS:
        try:
            verified = await verify_webhook_signature(request.headers, body)
        except WebhookVerificationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except (PayPalAPIError, PayPalConfigurationError) as exc:
            logger.error("Could not verify PayPal webhook %s: %s", event.id, exc)
            raise HTTPException(status_code=503, detail="Webhook verification unavailable") from exc
        if not verified:
            raise HTTPException(status_code=400, detail="Invalid webhook signature")

    try:
        return await run_in_threadpool(process_event, db, ledger, event)
    except WebhookPayloadError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SubscriptionNotReadyError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except PointsError as exc:
        logger.error("Points allocation failed for PayPal event %s: %s", event.id, exc)
        raise HTTPException(status_code=503, detail="Points allocation failed, retry later") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database error processing PayPal event %s", event.id)
        raise HTTPException(status_code=503, detail="Database unavailable, retry later") from exc
