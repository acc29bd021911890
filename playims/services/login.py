import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from playims.config import Settings
from playims.errors import (
    AccountInactiveError,
    InvalidCredentialsError,
    StorageError,
)
from playims.models import Account
from playims.schemas.auth import LoginRequest
from playims.security import resolve_password_pepper, utcnow
from playims.services.sessions import AuthResult, RequestContext, SessionIssuer

logger = logging.getLogger(__name__)


class PasswordAuthenticator:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.pepper = resolve_password_pepper(settings)
        self.sessions = SessionIssuer(db, settings)

    def login(
        self, request: LoginRequest, context: RequestContext | None = None
    ) -> AuthResult:
        """Verify credentials and open a new session.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            AccountInactiveError: The account exists but is not active.
            StorageError: The database failed.
        """
        try:
            account = self.db.execute(
                select(Account).where(Account.email_matches(request.email))
            ).scalar_one_or_none()

            if account is None or not account.check_password(
                request.password, self.pepper
            ):
                raise InvalidCredentialsError()
            if not account.is_active:
                raise AccountInactiveError()

            account.mark_login(utcnow())
            session, token = self.sessions.issue(account, context)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Login failed in storage")
            raise StorageError() from exc

        logger.info("Account %s logged in", account.id)
        return AuthResult(account=account, session=session, token=token)
