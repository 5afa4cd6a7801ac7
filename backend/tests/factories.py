"""Builders for Stripe webhook event envelopes used across tests."""
from typing import Optional


def checkout_completed_event(
    session_id: str,
    user_id: str,
    plan_name: str,
    amount_total: int,
    plan_type: str = "monthly",
    is_trial: bool = False,
    coupon_code: str = "",
    subscription: Optional[str] = None,
    **extra_metadata: str,
) -> dict:
    return {
        "id": f"evt_{session_id}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "amount_total": amount_total,
                "payment_method_types": ["card"],
                "subscription": subscription,
                "metadata": {
                    "userId": user_id,
                    "planName": plan_name,
                    "planType": plan_type,
                    "isTrial": "true" if is_trial else "false",
                    "couponCode": coupon_code,
                    **extra_metadata,
                },
            }
        },
    }


def invoice_paid_event(
    invoice_id: str,
    amount_paid: int,
    subscription: Optional[str],
    billing_reason: str = "subscription_cycle",
) -> dict:
    return {
        "id": f"evt_{invoice_id}",
        "type": "invoice.paid",
        "data": {
            "object": {
                "id": invoice_id,
                "object": "invoice",
                "amount_paid": amount_paid,
                "billing_reason": billing_reason,
                "subscription": subscription,
            }
        },
    }


def subscription_deleted_event(subscription_id: str, user_id: str, plan_name: str) -> dict:
    return {
        "id": f"evt_del_{subscription_id}",
        "type": "customer.subscription.deleted",
        "data": {
            "object": {
                "id": subscription_id,
                "object": "subscription",
                "metadata": {"userId": user_id, "planName": plan_name, "planType": "monthly"},
            }
        },
    }


def stripe_subscription(subscription_id: str, user_id: str, plan_name: str, plan_type: str = "monthly") -> dict:
    """What ``stripe.Subscription.retrieve`` returns for a checkout-created subscription."""
    return {
        "id": subscription_id,
        "object": "subscription",
        "metadata": {"userId": user_id, "planName": plan_name, "planType": plan_type},
    }
