"""Subscription model: the billing relationship between a user and a plan."""
from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from storefront.database import Base


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"  # cancelled by the user, usable until end_date
    EXPIRED = "EXPIRED"


class Subscription(Base):
    """Subscription model, mutated in place by every renewal of the same plan."""

    __tablename__ = "subscriptions"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Subscription info
    status: Mapped[str] = mapped_column(String(50), default=SubscriptionStatus.ACTIVE.value)
    start_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_trial: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Stripe info
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Foreign keys
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)
    plan_id: Mapped[str] = mapped_column(String(36), ForeignKey("plans.uuid"), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    plan: Mapped["Plan"] = relationship("Plan", foreign_keys=[plan_id])

    # Indexes
    __table_args__ = (
        Index("idx_subscription_user_plan", "user_id", "plan_id"),
        Index("idx_subscription_status", "status"),
        Index("idx_subscription_stripe_subscription_id", "stripe_subscription_id"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(uuid={self.uuid}, user_id={self.user_id}, status={self.status}, end_date={self.end_date})>"
