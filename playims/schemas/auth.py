import re
from datetime import datetime

from pydantic import Field, ValidationInfo, field_validator

from playims.schemas.base import CamelModel

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
NAME_PATTERN = r"^[A-Za-z .'-]+$"


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class RegisterRequest(CamelModel):
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str = Field(min_length=1, max_length=128)
    invite_key: str = Field(min_length=1, max_length=256)
    first_name: str | None = Field(
        default=None, min_length=1, max_length=80, pattern=NAME_PATTERN
    )
    last_name: str | None = Field(
        default=None, min_length=1, max_length=80, pattern=NAME_PATTERN
    )

    normalize_email = field_validator("email", mode="before")(_normalize_email)
    blank_names_to_none = field_validator(
        "first_name", "last_name", mode="before"
    )(_blank_to_none)

    @field_validator("invite_key", mode="before")
    @classmethod
    def strip_invite_key(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords do not match")
        return value


class LoginRequest(CamelModel):
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)

    normalize_email = field_validator("email", mode="before")(_normalize_email)


class AccountRead(CamelModel):
    id: str
    email: str
    first_name: str | None
    last_name: str | None
    role: str
    status: str


class SessionRead(CamelModel):
    id: str
    account_id: str
    role: str
    auth_provider: str
    expires_at: datetime


class IssuedSessionRead(SessionRead):
    token: str


class ActiveSessionRead(CamelModel):
    id: str
    auth_provider: str
    created_at: datetime
    last_seen_at: datetime
    expires_at: datetime
    ip_address: str | None
    user_agent: str | None
    current: bool = False


class ActiveSessionListResponse(CamelModel):
    success: bool = True
    data: list[ActiveSessionRead]


class AuthData(CamelModel):
    account: AccountRead
    session: SessionRead


class AuthResponse(CamelModel):
    success: bool = True
    data: AuthData


class IssuedAuthData(CamelModel):
    account: AccountRead
    session: IssuedSessionRead


class IssuedAuthResponse(CamelModel):
    success: bool = True
    data: IssuedAuthData


class LogoutData(CamelModel):
    logged_out: bool = True


class LogoutResponse(CamelModel):
    success: bool = True
    data: LogoutData = LogoutData()


def is_valid_email(value: str) -> bool:
    return re.match(EMAIL_PATTERN, _normalize_email(value)) is not None
