from datetime import timedelta

from fastapi import APIRouter, status

from playims.dependencies import AdminSession, AppSettings, DbSession
from playims.schemas.invite_key import (
    InviteKeyCreate,
    InviteKeyCreatedResponse,
    InviteKeyListResponse,
)
from playims.services.invite_keys import InviteKeyStore

router = APIRouter(prefix="/api/invite-keys", tags=["invite-keys"])


@router.post(
    "",
    response_model=InviteKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_invite_key(
    request: InviteKeyCreate,
    admin: AdminSession,
    db: DbSession,
    settings: AppSettings,
):
    """Mint an invite key. The raw key is returned here and never again."""
    expires_in = None
    if request.expires_in_days is not None:
        expires_in = timedelta(days=request.expires_in_days)

    invite_key, raw_key = InviteKeyStore(db).mint(
        request.uses or settings.invite_key_default_uses,
        expires_in,
        created_by=admin.account_id,
    )
    db.commit()
    return {"success": True, "data": {"invite_key": invite_key, "key": raw_key}}


@router.get("", response_model=InviteKeyListResponse)
def list_invite_keys(admin: AdminSession, db: DbSession):
    return {"success": True, "data": InviteKeyStore(db).list_keys()}
