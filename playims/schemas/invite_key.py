from datetime import datetime

from pydantic import Field

from playims.schemas.base import CamelModel


class InviteKeyCreate(CamelModel):
    uses: int | None = Field(default=None, ge=1, le=10_000)
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


class InviteKeyRead(CamelModel):
    id: str
    uses: int
    expires_at: datetime | None
    created_at: datetime
    last_used_at: datetime | None
    created_by: str | None
    usable: bool


class InviteKeyCreatedData(CamelModel):
    invite_key: InviteKeyRead
    key: str


class InviteKeyCreatedResponse(CamelModel):
    success: bool = True
    data: InviteKeyCreatedData


class InviteKeyListResponse(CamelModel):
    success: bool = True
    data: list[InviteKeyRead]
