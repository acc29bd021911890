import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from playims.database import Base
from playims.security import utcnow


class InviteKey(Base):
    """Registration invite key. Only the SHA-256 hash of the key is stored.

    ``uses`` counts remaining uses and is decremented by atomic consumption.
    """

    __tablename__ = "invite_keys"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    key_hash: Mapped[str] = mapped_column(String(64), unique=True)
    uses: Mapped[int] = mapped_column(default=1)
    expires_at: Mapped[datetime | None] = mapped_column(default=None, index=True)
    created_at: Mapped[datetime] = mapped_column()
    updated_at: Mapped[datetime] = mapped_column()
    last_used_at: Mapped[datetime | None] = mapped_column(default=None)
    created_by: Mapped[str | None] = mapped_column(
        ForeignKey("accounts.id", ondelete="SET NULL"), default=None
    )
    updated_by: Mapped[str | None] = mapped_column(
        ForeignKey("accounts.id", ondelete="SET NULL"), default=None
    )

    def is_usable(self, now: datetime) -> bool:
        return self.uses > 0 and (self.expires_at is None or self.expires_at > now)

    @property
    def usable(self) -> bool:
        return self.is_usable(utcnow())
