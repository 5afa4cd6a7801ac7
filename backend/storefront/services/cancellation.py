"""User-initiated cancellation: stop renewing, keep access until the end date."""
import logging
from typing import Optional

import stripe
from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.subscription import Subscription, SubscriptionStatus
from storefront.models.user import User
from storefront.services import stripe_gateway

logger = logging.getLogger(__name__)


def resolve_gateway_subscription_id(subscription: Subscription) -> Optional[str]:
    """Stripe recurring subscription id behind one of our subscriptions."""
    if subscription.stripe_subscription_id:
        return subscription.stripe_subscription_id

    session_id = subscription.stripe_session_id or ""
    if session_id.startswith("cs_"):
        return stripe_gateway.retrieve_checkout_subscription_id(session_id)
    # Migrated rows may hold the subscription id in the session column
    if session_id.startswith("sub_"):
        return session_id
    return None


async def cancel_at_period_end(db: AsyncSession, user: User, subscription_id: str) -> Subscription:
    """
    Cancel a subscription on the user's behalf.

    - 404 if the subscription does not exist or belongs to someone else
    - 400 if it is not ACTIVE
    - Stripe stops renewing at the end of the paid period
    - The subscription becomes CANCELLED and keeps its end date, so access
      lasts until then (an upstream deletion expires it immediately instead)
    """
    result = await db.execute(select(Subscription).where(Subscription.uuid == subscription_id))
    subscription = result.scalar_one_or_none()

    if not subscription or subscription.user_id != user.uuid:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found"
        )

    if subscription.status != SubscriptionStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subscription is not active"
        )

    try:
        gateway_id = resolve_gateway_subscription_id(subscription)
        if not gateway_id:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not resolve Stripe subscription ID"
            )
        stripe_gateway.schedule_cancellation(gateway_id)
    except stripe.StripeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to cancel subscription: {str(e)}"
        )

    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.stripe_subscription_id = gateway_id
    await db.commit()

    logger.info(f"User {user.uuid} cancelled subscription {subscription.uuid}, access until {subscription.end_date}")
    return subscription
