"""Entitlement store: subscription, bot and order reads/writes keyed by payment ids."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.bot import Bot, BotStatus
from storefront.models.order import Order, OrderStatus
from storefront.models.plan import Plan
from storefront.models.subscription import Subscription

logger = logging.getLogger(__name__)


async def payment_already_processed(db: AsyncSession, session_id: str) -> bool:
    """True if an order or a subscription already references ``session_id``."""
    order = await db.execute(
        select(Order.uuid).where(Order.stripe_session_id == session_id).limit(1)
    )
    if order.scalar_one_or_none():
        return True

    subscription = await db.execute(
        select(Subscription.uuid).where(Subscription.stripe_session_id == session_id).limit(1)
    )
    return subscription.scalar_one_or_none() is not None


async def find_renewal_target(
    db: AsyncSession,
    user_id: str,
    plan_id: Optional[str] = None,
    plan_name: Optional[str] = None,
) -> Optional[Subscription]:
    """
    The subscription a payment for (user, plan) renews: the one ending last.

    The plan is matched by id, or by name when only the name is known (recurring
    invoices and upstream cancellations carry no session id to go on). The row
    is locked for update on backends that support it, so concurrent renewals of
    the same subscription serialize on read-extend-write.
    """
    query = select(Subscription).where(Subscription.user_id == user_id)
    if plan_id is not None:
        query = query.where(Subscription.plan_id == plan_id)
    elif plan_name is not None:
        query = query.join(Plan, Subscription.plan_id == Plan.uuid).where(Plan.name == plan_name)
    else:
        raise ValueError("find_renewal_target needs plan_id or plan_name")

    result = await db.execute(
        query.order_by(Subscription.end_date.desc()).limit(1).with_for_update(of=Subscription)
    )
    return result.scalars().first()


async def create_bot_if_absent(db: AsyncSession, user_id: str, name: str) -> Optional[Bot]:
    """
    Create a WAITING_FOR_SETUP bot unless the user already owns one of that name.

    Returns the new bot, or None when it already existed (the existing bot is
    left untouched). Commits on success.
    """
    existing = await db.execute(
        select(Bot.uuid).where(Bot.user_id == user_id, Bot.name == name)
    )
    if existing.scalar_one_or_none():
        return None

    bot = Bot(
        user_id=user_id,
        name=name,
        api_key="",
        secret_key="",
        status=BotStatus.WAITING_FOR_SETUP.value,
    )
    db.add(bot)
    try:
        await db.commit()
    except IntegrityError:
        # Created concurrently by another delivery
        await db.rollback()
        return None

    logger.info(f"Provisioned bot '{name}' for user {user_id}")
    return bot


async def provision_bots(db: AsyncSession, user_id: str, bot_names: list[str]) -> list[str]:
    """Create every missing bot in ``bot_names`` for the user; return the names created."""
    created = []
    for name in bot_names:
        if await create_bot_if_absent(db, user_id, name) is not None:
            created.append(name)
    return created


def append_order(
    db: AsyncSession,
    user_id: str,
    amount: float,
    plan_name: str,
    payment_method: str,
    session_id: str,
) -> Order:
    """Stage a PAID order. The caller commits it together with the state it receipts."""
    order = Order(
        user_id=user_id,
        amount=amount,
        plan_name=plan_name,
        payment_method=payment_method,
        stripe_session_id=session_id,
        status=OrderStatus.PAID.value,
    )
    db.add(order)
    return order


async def find_order_by_session(db: AsyncSession, session_id: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.stripe_session_id == session_id))
    return result.scalar_one_or_none()
