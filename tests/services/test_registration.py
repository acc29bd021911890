import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from playims.errors import DuplicateAccountError, InvalidInviteError, StorageError
from playims.models import Account, AuthSession, InviteKey
from playims.schemas.auth import RegisterRequest
from playims.security import hash_token, utcnow
from playims.services.registration import AccountRegistrar
from playims.services.sessions import RequestContext, SessionIssuer


def _request(invite_key, email="new@test.com", **overrides):
    values = {
        "email": email,
        "password": "new-pass-123",
        "confirm_password": "new-pass-123",
        "invite_key": invite_key,
        "first_name": "New",
        "last_name": "Player",
    }
    values.update(overrides)
    return RegisterRequest(**values)


def _uses(db, raw_key):
    return db.execute(
        select(InviteKey.uses).where(InviteKey.key_hash == hash_token(raw_key))
    ).scalar_one()


def _account_count(db):
    return db.execute(select(func.count()).select_from(Account)).scalar_one()


def test_register_creates_account_and_session(db, test_settings, make_invite_key):
    raw_key = make_invite_key(uses=2)
    context = RequestContext(ip_address="10.0.0.1", user_agent="pytest")

    result = AccountRegistrar(db, test_settings).register(_request(raw_key), context)

    assert result.account.email == "new@test.com"
    assert result.account.role == "player"
    assert result.account.status == "active"
    assert result.account.first_login_at is not None
    assert result.account.check_password("new-pass-123", "test-pepper")
    assert result.session.account_id == result.account.id
    assert result.session.ip_address == "10.0.0.1"
    assert result.session.user_agent == "pytest"
    assert result.token
    assert _uses(db, raw_key) == 1

    resolved = SessionIssuer(db, test_settings).resolve(result.token)
    assert resolved is not None
    assert resolved.id == result.session.id


def test_register_normalizes_email(db, test_settings, make_invite_key):
    result = AccountRegistrar(db, test_settings).register(
        _request(make_invite_key(), email="  Test@Example.com ")
    )
    assert result.account.email == "test@example.com"


def test_register_unknown_invite_key(db, test_settings):
    with pytest.raises(InvalidInviteError):
        AccountRegistrar(db, test_settings).register(_request("not-a-real-key"))

    assert _account_count(db) == 0


def test_register_reusing_single_use_key(db, test_settings, make_invite_key):
    raw_key = make_invite_key(uses=1)
    registrar = AccountRegistrar(db, test_settings)
    registrar.register(_request(raw_key, email="first@test.com"))

    with pytest.raises(InvalidInviteError):
        registrar.register(_request(raw_key, email="second@test.com"))

    assert _account_count(db) == 1
    assert _uses(db, raw_key) == 0


def test_register_expired_invite_key(db, test_settings, make_invite_key):
    from datetime import timedelta

    raw_key = make_invite_key(uses=3, expires_at=utcnow() - timedelta(hours=1))

    with pytest.raises(InvalidInviteError):
        AccountRegistrar(db, test_settings).register(_request(raw_key))

    assert _uses(db, raw_key) == 3


def test_register_duplicate_email_refunds_invite(
    db, test_settings, make_invite_key
):
    registrar = AccountRegistrar(db, test_settings)
    registrar.register(_request(make_invite_key(), email="Test@Example.com "))
    second_key = make_invite_key(uses=1)

    with pytest.raises(DuplicateAccountError):
        registrar.register(_request(second_key, email="test@example.com"))

    assert _account_count(db) == 1
    assert _uses(db, second_key) == 1


def test_register_lost_race_maps_to_duplicate(
    db, test_settings, make_invite_key, monkeypatch, caplog
):
    registrar = AccountRegistrar(db, test_settings)
    registrar.register(_request(make_invite_key(), email="race@test.com"))
    second_key = make_invite_key(uses=1)
    # Simulate a concurrent insert landing between the check and the insert.
    monkeypatch.setattr(registrar, "_email_taken", lambda email: False)

    with pytest.raises(DuplicateAccountError):
        registrar.register(_request(second_key, email="RACE@test.com"))

    assert "duplicate-email race" in caplog.text

    assert _account_count(db) == 1
    assert _uses(db, second_key) == 1


def test_register_storage_failure(
    db, test_settings, make_invite_key, monkeypatch
):
    raw_key = make_invite_key(uses=1)
    registrar = AccountRegistrar(db, test_settings)

    def broken_issue(account, context=None):
        raise OperationalError("INSERT INTO sessions", {}, Exception("disk full"))

    monkeypatch.setattr(registrar.sessions, "issue", broken_issue)

    with pytest.raises(StorageError):
        registrar.register(_request(raw_key))

    assert _account_count(db) == 0
    assert _uses(db, raw_key) == 1
    assert db.execute(select(func.count()).select_from(AuthSession)).scalar_one() == 0
