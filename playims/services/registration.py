import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from playims.config import Settings
from playims.errors import (
    AuthError,
    DuplicateAccountError,
    InvalidInviteError,
    StorageError,
)
from playims.models import Account
from playims.roles import ROLE_PLAYER
from playims.schemas.auth import RegisterRequest
from playims.security import hash_token, resolve_password_pepper, utcnow
from playims.services.invite_keys import InviteKeyStore
from playims.services.sessions import AuthResult, RequestContext, SessionIssuer

logger = logging.getLogger(__name__)


class AccountRegistrar:
    """Invite-key registration.

    Invite consumption, account creation and session issue share one
    transaction. If any step fails, the invite use is rolled back with the
    rest, so a lost duplicate-email race does not cost the caller an invite.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.bcrypt_rounds = settings.bcrypt_rounds
        self.pepper = resolve_password_pepper(settings)
        self.invite_keys = InviteKeyStore(db)
        self.sessions = SessionIssuer(db, settings)

    def register(
        self, request: RegisterRequest, context: RequestContext | None = None
    ) -> AuthResult:
        try:
            result = self._register(request, context)
            self.db.commit()
        except AuthError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Registration failed in storage")
            raise StorageError() from exc

        logger.info("Registered account %s", result.account.id)
        return result

    def _register(
        self, request: RegisterRequest, context: RequestContext | None
    ) -> AuthResult:
        now = utcnow()
        invite_key = self.invite_keys.consume_by_hash(
            hash_token(request.invite_key), now
        )
        if invite_key is None:
            logger.info("Registration rejected: no usable invite key")
            raise InvalidInviteError()

        if self._email_taken(request.email):
            raise DuplicateAccountError()

        account = Account(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            role=ROLE_PLAYER,
            status="active",
        )
        account.set_password(request.password, self.pepper, self.bcrypt_rounds)
        account.mark_login(now)
        self.db.add(account)
        # A failed flush expires loaded rows, so read the id first.
        invite_key_id = invite_key.id
        try:
            self.db.flush()
        except IntegrityError as exc:
            logger.warning(
                "Lost a duplicate-email race on invite key %s", invite_key_id
            )
            raise DuplicateAccountError() from exc

        session, token = self.sessions.issue(account, context)
        return AuthResult(account=account, session=session, token=token)

    def _email_taken(self, email: str) -> bool:
        existing = self.db.execute(
            select(Account.id).where(Account.email_matches(email))
        ).first()
        return existing is not None
