"""Coupon and CouponUsage models."""
from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from storefront.database import Base


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class Coupon(Base):
    """Discount code. ``code`` is always stored uppercase."""

    __tablename__ = "coupons"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Coupon info
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    discount_type: Mapped[str] = mapped_column(String(20), default=DiscountType.PERCENTAGE.value)
    discount_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Limits
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    limit_per_user: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Stripe info
    stripe_coupon_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Coupon(uuid={self.uuid}, code={self.code}, usage_count={self.usage_count})>"


class CouponUsage(Base):
    """Append-only record of one coupon redemption by one user."""

    __tablename__ = "coupon_usages"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    coupon_id: Mapped[str] = mapped_column(String(36), ForeignKey("coupons.uuid"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    used_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_coupon_usage_coupon_user", "coupon_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<CouponUsage(coupon_id={self.coupon_id}, user_id={self.user_id})>"
