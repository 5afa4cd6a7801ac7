"""Bot model: a provisioned trading-bot instance."""
from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from storefront.database import Base


class BotStatus(str, Enum):
    WAITING_FOR_SETUP = "WAITING_FOR_SETUP"
    SETTING_UP = "SETTING_UP"
    ACTIVATING = "ACTIVATING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


class Bot(Base):
    """Bot owned by a user, unique per (user_id, name)."""

    __tablename__ = "bots"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Bot info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default=BotStatus.WAITING_FOR_SETUP.value)

    # Exchange credentials, filled in by the user during setup
    api_key: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    secret_key: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    # Foreign keys
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid", ondelete="CASCADE"), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_bot_user_name"),
        Index("idx_bot_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Bot(uuid={self.uuid}, user_id={self.user_id}, name={self.name}, status={self.status})>"
