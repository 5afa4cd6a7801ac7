"""Thin wrapper around the Stripe calls the billing flows make."""
import logging
from typing import Any, Optional

import stripe

from storefront.config import settings

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY


def construct_event(payload: bytes, sig_header: str) -> Any:
    """Verify a webhook delivery's signature and parse it.

    Raises ``ValueError`` for a malformed payload and
    ``stripe.SignatureVerificationError`` for a bad signature.
    """
    return stripe.Webhook.construct_event(
        payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
    )


def retrieve_subscription_metadata(stripe_subscription_id: str) -> dict[str, str]:
    """Metadata stamped on a recurring subscription at checkout.

    Invoices do not carry the purchase metadata, so renewals read it back
    from the subscription object.
    """
    subscription = stripe.Subscription.retrieve(stripe_subscription_id)
    return dict(subscription.get("metadata") or {})


def retrieve_checkout_subscription_id(session_id: str) -> Optional[str]:
    """Recurring subscription id created by a checkout session, if any."""
    session = stripe.checkout.Session.retrieve(session_id)
    subscription = session.get("subscription")
    if isinstance(subscription, str):
        return subscription
    if subscription:
        return subscription.get("id")
    return None


def schedule_cancellation(stripe_subscription_id: str) -> None:
    """Stop renewing at the end of the current period."""
    stripe.Subscription.modify(stripe_subscription_id, cancel_at_period_end=True)
    logger.info(f"Scheduled Stripe subscription {stripe_subscription_id} to cancel at period end")


def create_checkout_session(**params: Any) -> Any:
    return stripe.checkout.Session.create(**params)
