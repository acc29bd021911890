import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session, contains_eager

from playims.config import Settings
from playims.models import Account, AuthSession
from playims.security import (
    generate_raw_token,
    hash_session_token,
    require_session_secret,
    utcnow,
)

logger = logging.getLogger(__name__)

PASSWORD_PROVIDER = "password"


@dataclass
class RequestContext:
    """What the transport layer knows about the caller.

    The services never see the HTTP request itself.
    """

    token: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    from_cookie: bool = False


@dataclass
class SessionLookup:
    session: AuthSession | None = None
    renewed: bool = False


class SessionIssuer:
    """Creates, resolves and revokes server-side sessions.

    Clients only ever hold the raw token; the database stores an HMAC of it
    keyed by the session secret.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.secret = require_session_secret(settings)
        self.ttl = timedelta(hours=settings.session_ttl_hours)
        self.renew_window = timedelta(hours=settings.session_renew_window_hours)
        self.absolute_ttl = timedelta(days=settings.session_absolute_ttl_days)

    def issue(
        self, account: Account, context: RequestContext | None = None
    ) -> tuple[AuthSession, str]:
        """Create a session row for the account.

        Flushes without committing; the caller's unit of work decides.

        Returns:
            The session row and the raw token to hand to the client.
        """
        raw_token = generate_raw_token(32)
        now = utcnow()
        user_agent = context.user_agent if context else None
        session = AuthSession(
            account_id=account.id,
            token_hash=hash_session_token(raw_token, self.secret),
            auth_provider=PASSWORD_PROVIDER,
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
            last_seen_at=now,
            ip_address=context.ip_address if context else None,
            user_agent=user_agent[:512] if user_agent else None,
        )
        session.account = account
        self.db.add(session)
        self.db.flush()
        return session, raw_token

    def resolve(
        self, token: str | None, now: datetime | None = None
    ) -> AuthSession | None:
        """Look up the live session for a raw token, renewing it near expiry."""
        return self.lookup(token, now).session

    def lookup(
        self, token: str | None, now: datetime | None = None
    ) -> SessionLookup:
        """Like :meth:`resolve`, but also reports whether expiry was extended.

        The HTTP layer re-sets the cookie when ``renewed`` is true.
        """
        if not token:
            return SessionLookup()
        now = now or utcnow()

        session = self.db.execute(
            select(AuthSession)
            .join(AuthSession.account)
            .where(
                AuthSession.token_hash == hash_session_token(token, self.secret),
                AuthSession.revoked_at.is_(None),
                AuthSession.expires_at > now,
            )
            .options(contains_eager(AuthSession.account))
        ).scalar_one_or_none()
        if session is None:
            return SessionLookup()

        absolute_expiry = session.created_at + self.absolute_ttl
        if not session.account.is_active or absolute_expiry <= now:
            self._revoke(AuthSession.id == session.id, now)
            self.db.commit()
            logger.info("Revoked session %s on resolve", session.id)
            return SessionLookup()

        renewed = False
        if session.expires_at - now <= self.renew_window:
            session.expires_at = min(now + self.ttl, absolute_expiry)
            renewed = True
        session.last_seen_at = now
        session.updated_at = now
        self.db.commit()
        return SessionLookup(session=session, renewed=renewed)

    def list_active(
        self, account_id: str, now: datetime | None = None
    ) -> list[AuthSession]:
        """Unrevoked, unexpired sessions of one account, most recently used first."""
        now = now or utcnow()
        return list(
            self.db.execute(
                select(AuthSession)
                .where(
                    AuthSession.account_id == account_id,
                    AuthSession.revoked_at.is_(None),
                    AuthSession.expires_at > now,
                )
                .order_by(AuthSession.last_seen_at.desc())
            ).scalars()
        )

    def revoke_current(self, token: str | None) -> None:
        """Revoke the session behind a raw token.

        Idempotent: unknown, missing and already revoked tokens are a no-op.
        """
        if not token:
            return
        token_hash = hash_session_token(token, self.secret)
        revoked = self._revoke(AuthSession.token_hash == token_hash, utcnow())
        self.db.commit()
        if revoked:
            logger.info("Session revoked by logout")

    def _revoke(self, criterion, now: datetime) -> int:
        result = self.db.execute(
            update(AuthSession)
            .where(criterion, AuthSession.revoked_at.is_(None))
            .values(revoked_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


@dataclass
class AuthResult:
    account: Account
    session: AuthSession
    token: str
