import logging
import time
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playims.models import AuthRateLimit
from playims.security import utcnow

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int
    count: int


class RateLimiter:
    """Fixed-window counters stored in ``auth_rate_limits``.

    One row per (key, window length). Each call either bumps the counter for
    the current window or restarts it at 1 when the stored window is stale.
    """

    def __init__(self, db: Session):
        self.db = db

    def consume(
        self,
        key: str,
        window_seconds: int,
        max_requests: int,
        now: float | None = None,
    ) -> RateLimitResult:
        window = max(1, int(window_seconds))
        now_s = int(time.time() if now is None else now)
        window_start = now_s - (now_s % window)
        stamp = utcnow()

        same_window = AuthRateLimit.window_start == window_start
        bump = (
            update(AuthRateLimit)
            .where(AuthRateLimit.key == key, AuthRateLimit.window_seconds == window)
            .values(
                count=case((same_window, AuthRateLimit.count + 1), else_=1),
                window_start=window_start,
                updated_at=stamp,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            if self.db.execute(bump).rowcount == 0:
                self.db.add(
                    AuthRateLimit(
                        key=key,
                        window_seconds=window,
                        window_start=window_start,
                        count=1,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
                self.db.flush()
            self.db.commit()
        except IntegrityError:
            # Another request inserted the bucket first.
            self.db.rollback()
            self.db.execute(bump)
            self.db.commit()

        bucket = self.db.execute(
            select(AuthRateLimit.count, AuthRateLimit.window_start).where(
                AuthRateLimit.key == key, AuthRateLimit.window_seconds == window
            )
        ).one_or_none()
        count = bucket.count if bucket else max_requests + 1
        reset_at = (bucket.window_start if bucket else window_start) + window

        result = RateLimitResult(
            allowed=count <= max_requests,
            remaining=max(0, max_requests - count),
            reset_at=reset_at,
            count=count,
        )
        if not result.allowed:
            logger.warning("Rate limit exceeded for %s", key)
        return result

    def purge_older_than(self, cutoff: datetime) -> int:
        result = self.db.execute(
            delete(AuthRateLimit).where(AuthRateLimit.updated_at < cutoff)
        )
        self.db.commit()
        return result.rowcount
