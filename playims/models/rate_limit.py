from datetime import datetime

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from playims.database import Base


class AuthRateLimit(Base):
    """Fixed-window request counter shared by every process instance."""

    __tablename__ = "auth_rate_limits"
    __table_args__ = (
        UniqueConstraint(
            "key", "window_seconds", name="uq_auth_rate_limits_key_window"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(String(255))
    window_seconds: Mapped[int] = mapped_column()
    # count precedes window_start: MySQL applies SET assignments in column order.
    count: Mapped[int] = mapped_column(default=0)
    window_start: Mapped[int] = mapped_column(index=True)
    created_at: Mapped[datetime] = mapped_column()
    updated_at: Mapped[datetime] = mapped_column(index=True)
