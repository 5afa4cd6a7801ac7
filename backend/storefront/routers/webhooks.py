"""Stripe webhook endpoint feeding the reconciliation engine."""
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.schemas.events import decode_event
from storefront.schemas.webhooks import WebhookAck
from storefront.services import stripe_gateway
from storefront.services.event_dispatcher import dispatch_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events.

    - Verifies webhook signature
    - Decodes the event and hands it to the reconciliation engine
    - Acknowledges every verified delivery, including ones that failed to
      process, so Stripe does not keep redelivering them
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    # Verify webhook signature
    try:
        event = stripe_gateway.construct_event(payload, sig_header)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload"
        )
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

    event_type = event.get("type") or ""
    try:
        payment_event = decode_event(event)
    except (KeyError, ValueError) as e:
        logger.error(f"Could not decode {event_type} event {event.get('id')}: {e}")
        return WebhookAck(event_type=event_type, status="ignored", reason="undecodable")

    result = await dispatch_event(db, payment_event)
    return WebhookAck(event_type=event_type, status=result.status, reason=result.reason)
