"""Order model: immutable payment receipt."""
from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import String, Float, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from storefront.database import Base


class OrderStatus(str, Enum):
    PAID = "PAID"


class Order(Base):
    """One row per processed payment event, never updated or deleted.

    ``stripe_session_id`` is the checkout session id for checkouts and
    ``auto-<invoice id>`` for recurring renewals; it is unique so a payment
    event can only ever be receipted once.
    """

    __tablename__ = "orders"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Order info
    amount: Mapped[float] = mapped_column(Float, nullable=False)  # major currency units
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default=OrderStatus.PAID.value)

    # Stripe info
    stripe_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Foreign keys
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_order_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Order(uuid={self.uuid}, user_id={self.user_id}, amount={self.amount}, stripe_session_id={self.stripe_session_id})>"
