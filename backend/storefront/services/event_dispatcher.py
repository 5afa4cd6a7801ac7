"""Routes decoded payment events to their reconciliation handler."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.schemas.events import (
    CheckoutCompleted,
    InvoicePaid,
    PaymentEvent,
    SubscriptionCancelled,
    UnknownEvent,
)
from storefront.services.reconciliation import (
    IGNORED,
    ReconciliationResult,
    handle_checkout_completed,
    handle_invoice_paid,
    handle_subscription_cancelled,
)

logger = logging.getLogger(__name__)

ERROR = "error"


async def dispatch_event(db: AsyncSession, event: PaymentEvent) -> ReconciliationResult:
    """
    Run the handler for ``event`` and report its outcome.

    Never raises: a failing handler is logged and its open transaction rolled
    back, and the delivery still counts as received. Retrying the same
    delivery would fail the same way, and the next renewal extends from the
    last end date that was written.
    """
    try:
        match event:
            case CheckoutCompleted():
                logger.info(f"Webhook: checkout completed [{event.session_id}]")
                return await handle_checkout_completed(db, event)
            case InvoicePaid(stripe_subscription_id=None):
                # One-off payment, already handled by its checkout
                logger.info(f"Webhook: invoice {event.invoice_id} has no subscription, ignoring")
                return ReconciliationResult(status=IGNORED, reason="not_recurring")
            case InvoicePaid() if event.opens_subscription:
                # The checkout for this subscription already granted its first term
                logger.info(f"Webhook: invoice {event.invoice_id} opens a subscription, ignoring")
                return ReconciliationResult(status=IGNORED, reason="first_invoice")
            case InvoicePaid():
                logger.info(f"Webhook: invoice paid [{event.invoice_id}]")
                return await handle_invoice_paid(db, event)
            case SubscriptionCancelled():
                logger.info(f"Webhook: subscription deleted [{event.stripe_subscription_id}]")
                return await handle_subscription_cancelled(db, event)
            case UnknownEvent():
                logger.info(f"Unhandled event type: {event.event_type}")
                return ReconciliationResult(status=IGNORED, reason="unhandled_event_type")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Webhook processing error for {event.kind.value} event {event.event_id}: {e}")
        return ReconciliationResult(status=ERROR, reason=str(e))
