"""Coupon lookups, validation for checkout, and usage accounting."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.coupon import Coupon, CouponUsage

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    """Coupon codes are matched case-insensitively and stored uppercase."""
    return code.strip().upper()


async def find_coupon_by_code(db: AsyncSession, code: str) -> Optional[Coupon]:
    result = await db.execute(select(Coupon).where(Coupon.code == normalize_code(code)))
    return result.scalar_one_or_none()


async def count_user_usages(db: AsyncSession, coupon_id: str, user_id: str) -> int:
    result = await db.execute(
        select(func.count(CouponUsage.uuid)).where(
            CouponUsage.coupon_id == coupon_id,
            CouponUsage.user_id == user_id,
        )
    )
    return result.scalar() or 0


async def validate_coupon(
    db: AsyncSession,
    code: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Coupon:
    """
    Check a coupon can be redeemed before sending the user to checkout.

    - 404 if the code is unknown
    - 400 if inactive, expired, over its global usage limit, or over the
      per-user limit for ``user_id``

    Usage is not counted here; it is recorded once the payment succeeds.
    """
    now = now or datetime.utcnow()
    coupon = await find_coupon_by_code(db, code)

    if not coupon:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invalid coupon code"
        )

    if not coupon.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This coupon is no longer active"
        )

    if coupon.expiry_date and coupon.expiry_date < now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This coupon has expired"
        )

    if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This coupon has reached its usage limit"
        )

    if coupon.limit_per_user and user_id:
        used = await count_user_usages(db, coupon.uuid, user_id)
        if used >= coupon.limit_per_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"You have already used this coupon (Limit: {coupon.limit_per_user} per user)"
            )

    return coupon


async def record_coupon_usage(db: AsyncSession, code: str, user_id: str) -> Optional[CouponUsage]:
    """
    Count one redemption of ``code`` by ``user_id`` and commit it.

    Returns None when the code does not match any coupon. The counter is
    incremented in SQL so concurrent redemptions do not lose updates.
    """
    coupon = await find_coupon_by_code(db, code)
    if not coupon:
        logger.warning(f"Coupon '{code}' used at checkout no longer exists, usage not recorded")
        return None

    await db.execute(
        update(Coupon)
        .where(Coupon.uuid == coupon.uuid)
        .values(usage_count=Coupon.usage_count + 1)
    )
    usage = CouponUsage(coupon_id=coupon.uuid, user_id=user_id)
    db.add(usage)
    await db.commit()

    logger.info(f"Recorded usage for coupon {coupon.code} by user {user_id}")
    return usage
