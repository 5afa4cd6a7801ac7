"""Plan model: a purchasable bot product or bundle."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Float, Boolean, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from storefront.database import Base


class Plan(Base):
    """Plan catalog entry.

    ``name`` is the identifier payment metadata refers to. ``included_bots``
    lists the bots a bundle provisions; an empty list means the plan
    provisions a single bot named after the plan itself.
    """

    __tablename__ = "plans"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Plan info
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[str] = mapped_column(String(100), nullable=False)
    price_monthly: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    price_yearly: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    features: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    included_bots: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_plan_category", "category"),
    )

    @property
    def bot_names(self) -> list[str]:
        """Names of the bots one purchase of this plan provisions, in order."""
        return list(self.included_bots) if self.included_bots else [self.name]

    @property
    def is_bundle(self) -> bool:
        return len(self.included_bots or []) > 1

    def __repr__(self) -> str:
        return f"<Plan(uuid={self.uuid}, name={self.name}, tier={self.tier})>"
