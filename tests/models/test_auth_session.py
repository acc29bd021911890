from datetime import timedelta

import pytest
import sqlalchemy

from playims.models import AuthSession
from playims.security import utcnow


def _session(account, token_hash="a" * 64):
    now = utcnow()
    return AuthSession(
        account_id=account.id,
        token_hash=token_hash,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(hours=24),
        last_seen_at=now,
    )


def test_create_session(db, player_account):
    session = _session(player_account)
    db.add(session)
    db.flush()

    assert session.id is not None
    assert session.auth_provider == "password"
    assert session.revoked_at is None
    assert session.account.email == "player@test.com"
    assert session in player_account.sessions


def test_session_token_hash_unique(db, player_account, admin_account):
    db.add(_session(player_account))
    db.flush()

    db.add(_session(admin_account))
    with pytest.raises(sqlalchemy.exc.IntegrityError):
        db.flush()
