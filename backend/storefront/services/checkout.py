"""Stripe Checkout Session creation for plan purchases.

The session metadata written here is exactly what the webhook reconciliation
reads back, so both sides agree on the key names.
"""
import logging
from typing import Optional

import stripe
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.models.plan import Plan
from storefront.models.user import User
from storefront.schemas.events import PlanType
from storefront.services import stripe_gateway
from storefront.services.billing_periods import TRIAL_PERIOD_DAYS
from storefront.services.coupon_ledger import normalize_code, validate_coupon

logger = logging.getLogger(__name__)


def build_checkout_metadata(
    user: User,
    plan: Plan,
    plan_type: PlanType,
    is_trial: bool,
    coupon_code: Optional[str] = None,
) -> dict[str, str]:
    """Metadata bag for the checkout session (Stripe metadata values are strings)."""
    return {
        "userId": user.uuid,
        "planId": plan.uuid,
        "planName": plan.name,
        "planType": plan_type.value,
        "isTrial": "true" if is_trial else "false",
        "category": plan.category,
        "tier": plan.tier,
        "couponCode": coupon_code or "",
    }


async def create_checkout(
    db: AsyncSession,
    user: User,
    plan: Plan,
    plan_type: PlanType,
    coupon_code: Optional[str] = None,
    is_trial: bool = False,
    is_renewal: bool = False,
):
    """
    Create a subscription-mode Stripe Checkout Session for ``plan``.

    - Rejects inactive plans (403)
    - Validates the coupon and applies its Stripe coupon when it has one
    - Allows one free trial per user, lasting ``TRIAL_PERIOD_DAYS``
    - Stamps the metadata on the session and on the recurring subscription
      so checkout, renewal and cancellation webhooks can all resolve it

    Coupon usage is only counted once the webhook sees the payment succeed,
    so abandoned checkouts do not consume it.
    """
    if not plan.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This plan is currently not available for purchase."
        )

    if is_trial and user.trial_used_categories:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already used your one-time free trial."
        )

    if plan_type is PlanType.YEARLY:
        unit_price, interval = plan.price_yearly, "year"
    else:
        unit_price, interval = plan.price_monthly, "month"

    discounts = None
    if coupon_code:
        coupon_code = normalize_code(coupon_code)
        coupon = await validate_coupon(db, coupon_code, user.uuid)
        if coupon.stripe_coupon_id:
            discounts = [{"coupon": coupon.stripe_coupon_id}]

    metadata = build_checkout_metadata(user, plan, plan_type, is_trial, coupon_code)
    subscription_metadata = {k: v for k, v in metadata.items() if k != "couponCode"}

    if is_renewal:
        success_url = f"{settings.FRONTEND_URL}/dashboard?session_id={{CHECKOUT_SESSION_ID}}&payment_success=true"
    else:
        success_url = f"{settings.FRONTEND_URL}/guided-setup/create-key?session_id={{CHECKOUT_SESSION_ID}}"

    params = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{
            "price_data": {
                "currency": settings.STRIPE_CURRENCY,
                "product_data": {
                    "name": plan.name + (f" ({TRIAL_PERIOD_DAYS}-Day Free Trial)" if is_trial else ""),
                },
                "unit_amount": int(round(unit_price * 100)),
                "recurring": {"interval": interval},
            },
            "quantity": 1,
        }],
        "subscription_data": {
            "metadata": subscription_metadata,
            **({"trial_period_days": TRIAL_PERIOD_DAYS} if is_trial else {}),
        },
        "metadata": metadata,
        "success_url": success_url,
        "cancel_url": f"{settings.FRONTEND_URL}/dashboard/subscription?canceled=true",
    }
    if discounts:
        params["discounts"] = discounts
    if user.stripe_customer_id:
        params["customer"] = user.stripe_customer_id
    else:
        params["customer_email"] = user.email

    try:
        session = stripe_gateway.create_checkout_session(**params)
    except stripe.StripeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to create checkout session: {str(e)}"
        )

    logger.info(f"Created checkout session {session.id} for user {user.uuid}, plan '{plan.name}' ({plan_type.value})")
    return session
