import uuid
from datetime import datetime

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playims.database import Base
from playims.security import hash_password, verify_password


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(254))
    password_hash: Mapped[str] = mapped_column(String(255))
    first_name: Mapped[str | None] = mapped_column(String(80), default=None)
    last_name: Mapped[str | None] = mapped_column(String(80), default=None)
    role: Mapped[str] = mapped_column(String(20), default="player")
    status: Mapped[str] = mapped_column(String(20), default="active")
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    first_login_at: Mapped[datetime | None] = mapped_column(default=None)
    last_login_at: Mapped[datetime | None] = mapped_column(default=None)

    sessions: Mapped[list["AuthSession"]] = relationship(
        "AuthSession", back_populates="account", passive_deletes=True
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def set_password(self, password: str, pepper: str, rounds: int = 12) -> None:
        self.password_hash = hash_password(password, pepper, rounds)

    def check_password(self, password: str, pepper: str) -> bool:
        return verify_password(password, pepper, self.password_hash)

    @classmethod
    def email_matches(cls, email: str):
        return func.lower(func.trim(cls.email)) == email.strip().lower()

    def mark_login(self, now: datetime) -> None:
        if self.first_login_at is None:
            self.first_login_at = now
        self.last_login_at = now


# Normalized-email uniqueness lives in the database; the registrar's
# pre-check is not atomic with the insert.
Index(
    "uq_accounts_email_normalized",
    func.lower(func.trim(Account.email)),
    unique=True,
)
