"""Subscription & entitlement reconciliation.

Turns decoded payment events into subscription state, orders and bots.

Write ordering per checkout:

1. Idempotency guard on the checkout session id.
2. Subscription insert/extension plus its Order, committed together. The
   order's unique session id is what makes this the durable record that the
   payment was handled.
3. Bot provisioning, idempotent per (user, bot name).
4. Coupon usage accounting.

Steps 3 and 4 are best-effort follow-ups: a failure there is logged and
leaves the committed subscription and order in place.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.models.subscription import Subscription, SubscriptionStatus
from storefront.models.user import User
from storefront.schemas.events import (
    CheckoutCompleted,
    InvoicePaid,
    PaymentMetadata,
    SubscriptionCancelled,
)
from storefront.services import stripe_gateway
from storefront.services.billing_periods import extend_term, initial_term_end
from storefront.services.coupon_ledger import record_coupon_usage
from storefront.services.entitlements import (
    append_order,
    find_order_by_session,
    find_renewal_target,
    payment_already_processed,
    provision_bots,
)
from storefront.services.plan_catalog import ensure_plan, plan_spec_from_payment

logger = logging.getLogger(__name__)

# Outcomes reported back to the webhook caller
PROCESSED = "processed"
ALREADY_PROCESSED = "already_processed"
IGNORED = "ignored"


@dataclass
class ReconciliationResult:
    status: str
    subscription_id: Optional[str] = None
    renewal: bool = False
    end_date: Optional[datetime] = None
    order_id: Optional[str] = None
    provisioned_bots: list[str] = field(default_factory=list)
    coupon_recorded: bool = False
    reason: Optional[str] = None


def _to_major_units(amount: int) -> float:
    return round((amount or 0) / 100, 2)


async def _user_exists(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(User.uuid).where(User.uuid == user_id))
    return result.scalar_one_or_none() is not None


async def _record_trial_category(db: AsyncSession, user_id: str, category: Optional[str]) -> None:
    """Remember which category the user spent their free trial on."""
    if not category:
        return
    user = await db.get(User, user_id)
    used = list(user.trial_used_categories or [])
    if category not in used:
        # Reassign: plain JSON columns do not track in-place mutation
        user.trial_used_categories = used + [category]


async def handle_checkout_completed(
    db: AsyncSession,
    event: CheckoutCompleted,
    now: Optional[datetime] = None,
) -> ReconciliationResult:
    """
    Apply a completed checkout: a first purchase, or a renewal paid through checkout.

    - Replays of the same session id are no-ops
    - Existing subscription for (user, plan): extend from max(now, end date),
      reactivate, and clear the trial flag
    - Otherwise create the subscription (trials last exactly 7 days) and
      provision the plan's bots
    - One PAID order per session, then coupon usage if a code was used
    """
    now = now or datetime.utcnow()
    meta: PaymentMetadata = event.metadata
    session_id = event.session_id
    user_id = meta.user_id
    plan_name = meta.plan_name or settings.DEFAULT_PLAN_NAME

    if not user_id:
        logger.warning(f"Checkout {session_id} has no userId in metadata, skipping")
        return ReconciliationResult(status=IGNORED, reason="missing_user_id")

    if await payment_already_processed(db, session_id):
        logger.info(f"Session {session_id} already processed, skipping")
        return ReconciliationResult(status=ALREADY_PROCESSED)

    if not await _user_exists(db, user_id):
        logger.warning(f"Checkout {session_id} references unknown user {user_id}, skipping")
        return ReconciliationResult(status=IGNORED, reason="unknown_user")

    amount = _to_major_units(event.amount_total)
    plan = await ensure_plan(
        db,
        plan_spec_from_payment(plan_name, meta.plan_type, amount, meta.category, meta.tier),
    )
    plan_id, bot_names = plan.uuid, plan.bot_names
    months = meta.plan_type.duration_months

    target = await find_renewal_target(db, user_id, plan_id=plan_id)
    if target:
        target.end_date = extend_term(target.end_date, months, now)
        target.status = SubscriptionStatus.ACTIVE.value
        target.stripe_session_id = session_id
        target.is_trial = False
        if event.stripe_subscription_id:
            target.stripe_subscription_id = event.stripe_subscription_id
        subscription = target
        renewal = True
    else:
        subscription = Subscription(
            user_id=user_id,
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE.value,
            start_date=now,
            end_date=initial_term_end(now, months, meta.is_trial),
            is_trial=meta.is_trial,
            stripe_session_id=session_id,
            stripe_subscription_id=event.stripe_subscription_id,
        )
        db.add(subscription)
        if meta.is_trial:
            await _record_trial_category(db, user_id, meta.category or plan.category)
        renewal = False

    order = append_order(
        db,
        user_id=user_id,
        amount=amount,
        plan_name=plan_name,
        payment_method=event.payment_method or settings.DEFAULT_PAYMENT_METHOD,
        session_id=session_id,
    )
    await db.commit()

    result = ReconciliationResult(
        status=PROCESSED,
        subscription_id=subscription.uuid,
        renewal=renewal,
        end_date=subscription.end_date,
        order_id=order.uuid,
    )
    logger.info(
        f"Processed checkout {session_id} for user {user_id}: plan '{plan_name}', "
        f"{'renewal' if renewal else 'new subscription'}, ends {result.end_date}"
    )

    # Renewals only extend the term; bots exist from the first purchase
    if not renewal:
        try:
            result.provisioned_bots = await provision_bots(db, user_id, bot_names)
        except Exception as e:
            await db.rollback()
            logger.error(f"Bot provisioning failed for session {session_id}: {e}")

    if meta.coupon_code:
        try:
            usage = await record_coupon_usage(db, meta.coupon_code, user_id)
            result.coupon_recorded = usage is not None
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to record coupon usage for {meta.coupon_code}: {e}")

    return result


async def handle_invoice_paid(
    db: AsyncSession,
    event: InvoicePaid,
    now: Optional[datetime] = None,
) -> ReconciliationResult:
    """
    Apply a recurring invoice payment: extend the subscription and receipt it.

    The invoice only references the recurring subscription, so user and plan
    come from that subscription's metadata. The subscription is matched by
    user and plan name. Each invoice is receipted as ``auto-<invoice id>``,
    which also keeps a redelivered invoice from extending the term twice.
    The first invoice of a new subscription (trial or paid) is not a renewal:
    its checkout already set the term. Bots and coupons are never touched.
    """
    now = now or datetime.utcnow()
    if not event.stripe_subscription_id:
        return ReconciliationResult(status=IGNORED, reason="not_recurring")

    if event.opens_subscription:
        logger.info(f"Invoice {event.invoice_id} opens subscription {event.stripe_subscription_id}, skipping")
        return ReconciliationResult(status=IGNORED, reason="first_invoice")

    renewal_session_id = f"{settings.RENEWAL_SESSION_PREFIX}{event.invoice_id}"
    if await find_order_by_session(db, renewal_session_id):
        logger.info(f"Invoice {event.invoice_id} already processed, skipping")
        return ReconciliationResult(status=ALREADY_PROCESSED)

    try:
        metadata = stripe_gateway.retrieve_subscription_metadata(event.stripe_subscription_id)
    except stripe.InvalidRequestError as e:
        logger.warning(
            f"Recurring subscription {event.stripe_subscription_id} not found at Stripe, "
            f"skipping invoice {event.invoice_id}: {e}"
        )
        return ReconciliationResult(status=IGNORED, reason="unknown_subscription")

    meta = PaymentMetadata.model_validate(metadata)
    user_id = meta.user_id
    if not user_id or not meta.plan_name:
        logger.warning(
            f"Recurring subscription {event.stripe_subscription_id} has incomplete metadata, "
            f"skipping invoice {event.invoice_id}"
        )
        return ReconciliationResult(status=IGNORED, reason="missing_metadata")

    if not await _user_exists(db, user_id):
        logger.warning(f"Invoice {event.invoice_id} references unknown user {user_id}, skipping")
        return ReconciliationResult(status=IGNORED, reason="unknown_user")

    subscription = await find_renewal_target(db, user_id, plan_name=meta.plan_name)
    if not subscription:
        logger.warning(
            f"No subscription to renew for user {user_id} and plan '{meta.plan_name}' "
            f"(invoice {event.invoice_id})"
        )
        return ReconciliationResult(status=IGNORED, reason="no_subscription")

    subscription.end_date = extend_term(subscription.end_date, meta.plan_type.duration_months, now)
    subscription.status = SubscriptionStatus.ACTIVE.value
    subscription.updated_at = now

    order = append_order(
        db,
        user_id=user_id,
        amount=_to_major_units(event.amount_paid),
        plan_name=meta.plan_name,
        payment_method=settings.DEFAULT_PAYMENT_METHOD,
        session_id=renewal_session_id,
    )
    await db.commit()

    logger.info(
        f"Processed recurring renewal for user {user_id}, plan '{meta.plan_name}', "
        f"new end date: {subscription.end_date}"
    )
    return ReconciliationResult(
        status=PROCESSED,
        subscription_id=subscription.uuid,
        renewal=True,
        end_date=subscription.end_date,
        order_id=order.uuid,
    )


async def handle_subscription_cancelled(
    db: AsyncSession,
    event: SubscriptionCancelled,
) -> ReconciliationResult:
    """
    Revoke access when the gateway deletes a recurring subscription.

    The matching subscription becomes EXPIRED right away, even with time left
    on its end date. This differs from a user cancelling in-app, which only
    marks it CANCELLED and keeps access until the end date.
    """
    meta = event.metadata
    if not meta.user_id or not meta.plan_name:
        logger.warning(
            f"Cancelled subscription {event.stripe_subscription_id} has incomplete metadata, skipping"
        )
        return ReconciliationResult(status=IGNORED, reason="missing_metadata")

    subscription = await find_renewal_target(db, meta.user_id, plan_name=meta.plan_name)
    if not subscription:
        return ReconciliationResult(status=IGNORED, reason="no_subscription")

    subscription.status = SubscriptionStatus.EXPIRED.value
    await db.commit()

    logger.info(
        f"Removed access for user {meta.user_id} to '{meta.plan_name}' "
        f"after upstream cancellation of {event.stripe_subscription_id}"
    )
    return ReconciliationResult(
        status=PROCESSED,
        subscription_id=subscription.uuid,
        end_date=subscription.end_date,
    )
