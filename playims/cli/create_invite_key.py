import sys
from datetime import timedelta

from playims.config import settings
from playims.database import Base, SessionLocal, engine
from playims.services.invite_keys import InviteKeyStore


def _read_int(prompt: str, default: int | None) -> int | None:
    raw = input(prompt).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        print(f"'{raw}' is not a whole number.")
        sys.exit(1)
    if value < 1:
        print("Value must be at least 1.")
        sys.exit(1)
    return value


def main():
    Base.metadata.create_all(bind=engine)

    uses = _read_int(
        f"Uses [{settings.invite_key_default_uses}]: ",
        settings.invite_key_default_uses,
    )
    expires_in_days = _read_int("Expires in days (blank for never): ", None)

    db = SessionLocal()
    try:
        invite_key, raw_key = InviteKeyStore(db).mint(
            uses,
            timedelta(days=expires_in_days) if expires_in_days else None,
        )
        db.commit()
    finally:
        db.close()

    print(f"Invite key {invite_key.id} ({invite_key.uses} uses)")
    print("Share this key now; it cannot be shown again:")
    print(raw_key)


if __name__ == "__main__":
    main()
