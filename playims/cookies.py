from datetime import datetime

from fastapi import Response

from playims.config import Settings
from playims.security import utcnow


def set_session_cookie(
    response: Response, token: str, expires_at: datetime, settings: Settings
) -> None:
    """Set the session cookie so it lapses together with the session row."""
    max_age = max(0, int((expires_at - utcnow()).total_seconds()))
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
        max_age=max_age,
    )


def delete_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def expired_session_cookie_header(settings: Settings) -> dict[str, str]:
    """``Set-Cookie`` header that clears the session cookie on an error response."""
    cleared = Response()
    delete_session_cookie(cleared, settings)
    return {"set-cookie": cleared.headers["set-cookie"]}
