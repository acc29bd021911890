import time
from typing import Annotated

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from playims.config import Settings, settings
from playims.cookies import expired_session_cookie_header, set_session_cookie
from playims.database import get_db
from playims.errors import AuthenticationRequiredError, ForbiddenError, RateLimitedError
from playims.models import AuthSession
from playims.roles import ROLE_ADMIN, has_any_role
from playims.services.login import PasswordAuthenticator
from playims.services.rate_limits import RateLimiter
from playims.services.registration import AccountRegistrar
from playims.services.sessions import RequestContext, SessionIssuer

DbSession = Annotated[Session, Depends(get_db)]


def get_settings() -> Settings:
    return settings


AppSettings = Annotated[Settings, Depends(get_settings)]


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    scheme, _, param = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not param.strip():
        return None
    return param.strip()


def _client_address(request: Request, trusted_proxy_hops: int) -> str | None:
    """Socket peer address, or the entry a trusted proxy appended to
    ``X-Forwarded-For`` when ``trusted_proxy_hops`` is set.

    Entries left of the trusted hops are client-controlled and never used.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if trusted_proxy_hops > 0 and forwarded:
        chain = [part.strip() for part in forwarded.split(",") if part.strip()]
        if chain:
            return chain[-min(trusted_proxy_hops, len(chain))]
    if request.client is not None:
        return request.client.host
    return None


def get_request_context(request: Request, app_settings: AppSettings) -> RequestContext:
    token = _extract_bearer_token(request)
    from_cookie = False
    if token is None:
        token = request.cookies.get(app_settings.session_cookie_name) or None
        from_cookie = token is not None
    return RequestContext(
        token=token,
        from_cookie=from_cookie,
        ip_address=_client_address(request, app_settings.trusted_proxy_hops),
        user_agent=request.headers.get("user-agent"),
    )


Context = Annotated[RequestContext, Depends(get_request_context)]


def get_session_issuer(db: DbSession, app_settings: AppSettings) -> SessionIssuer:
    return SessionIssuer(db, app_settings)


def get_registrar(db: DbSession, app_settings: AppSettings) -> AccountRegistrar:
    return AccountRegistrar(db, app_settings)


def get_authenticator(
    db: DbSession, app_settings: AppSettings
) -> PasswordAuthenticator:
    return PasswordAuthenticator(db, app_settings)


Issuer = Annotated[SessionIssuer, Depends(get_session_issuer)]
Registrar = Annotated[AccountRegistrar, Depends(get_registrar)]
Authenticator = Annotated[PasswordAuthenticator, Depends(get_authenticator)]


def get_current_session(
    context: Context, issuer: Issuer, response: Response, app_settings: AppSettings
) -> AuthSession:
    lookup = issuer.lookup(context.token)
    if lookup.session is None:
        headers = None
        if context.from_cookie:
            headers = expired_session_cookie_header(app_settings)
        raise AuthenticationRequiredError(headers=headers)
    if lookup.renewed and context.from_cookie:
        set_session_cookie(
            response, context.token, lookup.session.expires_at, app_settings
        )
    return lookup.session


def require_admin(
    session: Annotated[AuthSession, Depends(get_current_session)],
) -> AuthSession:
    if not has_any_role(session.account.role, (ROLE_ADMIN,)):
        raise ForbiddenError()
    return session


CurrentSession = Annotated[AuthSession, Depends(get_current_session)]
AdminSession = Annotated[AuthSession, Depends(require_admin)]


def rate_limit(scope: str):
    """Build a dependency that throttles a route per client address.

    Parameters:
        scope: ``"login"`` or ``"register"``; selects the configured window.
    """

    def dependency(context: Context, db: DbSession, app_settings: AppSettings) -> None:
        if not app_settings.rate_limit_enabled:
            return
        if scope == "login":
            window = app_settings.login_rate_limit_window_seconds
            max_requests = app_settings.login_rate_limit_max_requests
        else:
            window = app_settings.register_rate_limit_window_seconds
            max_requests = app_settings.register_rate_limit_max_requests

        key = f"{scope}:{context.ip_address or 'unknown'}"
        result = RateLimiter(db).consume(key, window, max_requests)
        if not result.allowed:
            raise RateLimitedError(retry_after=result.reset_at - int(time.time()))

    return dependency
