from fastapi import APIRouter, Depends, Response

from playims.cookies import delete_session_cookie, set_session_cookie
from playims.dependencies import (
    AppSettings,
    Authenticator,
    Context,
    CurrentSession,
    Issuer,
    Registrar,
    get_current_session,
    rate_limit,
)
from playims.models import Account, AuthSession
from playims.roles import normalize_role
from playims.schemas.auth import (
    ActiveSessionListResponse,
    ActiveSessionRead,
    AuthResponse,
    IssuedAuthResponse,
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _build_response(
    account: Account, session: AuthSession, token: str | None = None
) -> dict:
    """Build the ``{success, data: {account, session}}`` envelope.

    Parameters:
        account: The authenticated account. Its password hash is never included.
        session: The session row.
        token: The raw session token, only present right after issue.
    """
    session_data = {
        "id": session.id,
        "account_id": session.account_id,
        "role": normalize_role(account.role),
        "auth_provider": session.auth_provider,
        "expires_at": session.expires_at,
    }
    if token is not None:
        session_data["token"] = token
    return {"success": True, "data": {"account": account, "session": session_data}}


@router.post(
    "/register",
    response_model=IssuedAuthResponse,
    dependencies=[Depends(rate_limit("register"))],
)
def register(
    request: RegisterRequest,
    response: Response,
    context: Context,
    registrar: Registrar,
    settings: AppSettings,
):
    result = registrar.register(request, context)
    set_session_cookie(response, result.token, result.session.expires_at, settings)
    return _build_response(result.account, result.session, result.token)


@router.post(
    "/login",
    response_model=IssuedAuthResponse,
    dependencies=[Depends(rate_limit("login"))],
)
def login(
    request: LoginRequest,
    response: Response,
    context: Context,
    authenticator: Authenticator,
    settings: AppSettings,
):
    result = authenticator.login(request, context)
    set_session_cookie(response, result.token, result.session.expires_at, settings)
    return _build_response(result.account, result.session, result.token)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    dependencies=[Depends(get_current_session)],
)
def logout(
    response: Response, context: Context, issuer: Issuer, settings: AppSettings
):
    issuer.revoke_current(context.token)
    delete_session_cookie(response, settings)
    return LogoutResponse()


@router.get("/session", response_model=AuthResponse)
def current_session(session: CurrentSession):
    return _build_response(session.account, session)


@router.get("/sessions", response_model=ActiveSessionListResponse)
def list_sessions(session: CurrentSession, issuer: Issuer):
    """Live sessions of the caller; ``current`` marks the one making this request."""
    sessions = issuer.list_active(session.account_id)
    return {
        "success": True,
        "data": [
            ActiveSessionRead.model_validate(item).model_copy(
                update={"current": item.id == session.id}
            )
            for item in sessions
        ],
    }
