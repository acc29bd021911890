import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone

import bcrypt

from playims.config import Settings
from playims.errors import StorageError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_raw_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def hash_session_token(raw_token: str, session_secret: str) -> str:
    return hmac.new(
        session_secret.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def require_session_secret(settings: Settings) -> str:
    secret = settings.session_secret.strip()
    if not secret:
        raise StorageError("Authentication is not configured.")
    return secret


def resolve_password_pepper(settings: Settings) -> str:
    if settings.password_pepper and settings.password_pepper.strip():
        return settings.password_pepper.strip()
    logger.warning(
        "PLAYIMS_PASSWORD_PEPPER is not set; falling back to the session secret"
    )
    return require_session_secret(settings)


def _peppered(password: str, pepper: str) -> bytes:
    # HMAC output is 64 hex chars, inside bcrypt's 72 byte input limit.
    return hmac.new(
        pepper.encode("utf-8"), password.encode("utf-8"), hashlib.sha256
    ).hexdigest().encode("ascii")


def hash_password(password: str, pepper: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(
        _peppered(password, pepper), bcrypt.gensalt(rounds=rounds)
    ).decode()


def verify_password(password: str, pepper: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_peppered(password, pepper), password_hash.encode())
    except ValueError:
        return False
