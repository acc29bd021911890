import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playims.errors import StorageError
from playims.models import InviteKey
from playims.security import generate_raw_token, hash_token, utcnow

logger = logging.getLogger(__name__)


class InviteKeyStore:
    """Persistence for registration invite keys.

    Callers own the transaction: ``create`` and ``consume_by_hash`` flush but
    never commit, so consumption can be rolled back together with whatever
    else the caller does in the same unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        key_hash: str,
        uses: int,
        expires_at: datetime | None = None,
        created_by: str | None = None,
    ) -> InviteKey:
        now = utcnow()
        invite_key = InviteKey(
            key_hash=key_hash,
            uses=max(0, int(uses)),
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
            created_by=created_by,
            updated_by=created_by,
        )
        self.db.add(invite_key)
        try:
            self.db.flush()
        except IntegrityError as exc:
            logger.error("Invite key insert rejected by a constraint")
            raise StorageError() from exc
        return invite_key

    def mint(
        self,
        uses: int,
        expires_in: timedelta | None = None,
        created_by: str | None = None,
    ) -> tuple[InviteKey, str]:
        """Create a key from fresh random material.

        Returns:
            The stored row and the raw key. The raw key is not recoverable later.
        """
        raw_key = generate_raw_token(24)
        expires_at = None
        if expires_in is not None:
            expires_at = (utcnow() + expires_in).replace(microsecond=0)
        invite_key = self.create(hash_token(raw_key), uses, expires_at, created_by)
        logger.info("Minted invite key %s with %d uses", invite_key.id, invite_key.uses)
        return invite_key, raw_key

    def consume_by_hash(self, key_hash: str, now: datetime) -> InviteKey | None:
        """Take one use from a usable key in a single conditional UPDATE.

        Returns the updated row, or None when no usable key matched. None is
        returned for unknown, exhausted and expired keys alike.
        """
        result = self.db.execute(
            update(InviteKey)
            .where(
                InviteKey.key_hash == key_hash,
                InviteKey.uses > 0,
                or_(InviteKey.expires_at.is_(None), InviteKey.expires_at > now),
            )
            .values(uses=InviteKey.uses - 1, last_used_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        return self.db.execute(
            select(InviteKey)
            .where(InviteKey.key_hash == key_hash)
            .execution_options(populate_existing=True)
        ).scalar_one()

    def list_keys(self) -> list[InviteKey]:
        return list(
            self.db.execute(
                select(InviteKey).order_by(InviteKey.created_at.desc())
            ).scalars()
        )
