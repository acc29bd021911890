from datetime import timedelta

import pytest

from playims.config import Settings
from playims.errors import StorageError
from playims.security import hash_session_token, utcnow
from playims.services.sessions import RequestContext, SessionIssuer


@pytest.fixture
def issuer(db, test_settings):
    return SessionIssuer(db, test_settings)


@pytest.fixture
def issued(db, issuer, player_account):
    session, token = issuer.issue(
        player_account, RequestContext(ip_address="127.0.0.1", user_agent="ua")
    )
    db.commit()
    return session, token


def test_issue_stores_token_hash(issued):
    session, token = issued

    assert session.token_hash == hash_session_token(token, "test-session-secret")
    assert session.token_hash != token
    assert session.auth_provider == "password"
    assert session.expires_at - session.created_at == timedelta(hours=24)
    assert session.revoked_at is None


def test_issue_truncates_user_agent(db, issuer, player_account):
    session, _ = issuer.issue(player_account, RequestContext(user_agent="x" * 600))
    assert len(session.user_agent) == 512


def test_issue_requires_secret(db):
    with pytest.raises(StorageError):
        SessionIssuer(db, Settings(session_secret="  "))


def test_resolve_valid_token(issuer, issued):
    session, token = issued
    resolved = issuer.resolve(token)

    assert resolved is not None
    assert resolved.id == session.id
    assert resolved.account.email == "player@test.com"


def test_resolve_missing_or_unknown_token(issuer, issued):
    assert issuer.resolve(None) is None
    assert issuer.resolve("") is None
    assert issuer.resolve("unknown-token") is None


def test_resolve_with_other_secret(db, issued):
    _, token = issued
    other = SessionIssuer(db, Settings(session_secret="another-secret"))
    assert other.resolve(token) is None


def test_revoke_current_is_idempotent(db, issuer, issued):
    session, token = issued

    issuer.revoke_current(token)
    assert issuer.resolve(token) is None

    issuer.revoke_current(token)
    issuer.revoke_current(None)
    issuer.revoke_current("unknown-token")

    assert issuer.resolve(token) is None
    db.refresh(session)
    assert session.revoked_at is not None


def test_revoke_only_current_session(db, issuer, player_account, issued):
    _, first_token = issued
    _, second_token = issuer.issue(player_account)
    db.commit()

    issuer.revoke_current(first_token)

    assert issuer.resolve(first_token) is None
    assert issuer.resolve(second_token) is not None


def test_resolve_expired_session(db, issuer, issued):
    session, token = issued
    session.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    assert issuer.resolve(token) is None


def test_resolve_renews_inside_window(db, issuer, issued):
    session, token = issued
    now = utcnow()
    session.expires_at = now + timedelta(hours=1)
    db.commit()

    resolved = issuer.resolve(token, now=now)

    assert resolved.expires_at == now + timedelta(hours=24)
    assert resolved.last_seen_at == now


def test_resolve_does_not_renew_outside_window(db, issuer, issued):
    session, token = issued
    now = utcnow()
    expires_at = now + timedelta(hours=20)
    session.expires_at = expires_at
    db.commit()

    resolved = issuer.resolve(token, now=now)

    assert resolved.expires_at == expires_at


def test_renewal_capped_by_absolute_lifetime(db, issuer, issued):
    session, token = issued
    now = utcnow()
    session.created_at = now - timedelta(days=30) + timedelta(hours=2)
    session.expires_at = now + timedelta(hours=1)
    db.commit()

    resolved = issuer.resolve(token, now=now)

    assert resolved.expires_at == session.created_at + timedelta(days=30)


def test_resolve_past_absolute_lifetime_revokes(db, issuer, issued):
    session, token = issued
    now = utcnow()
    session.created_at = now - timedelta(days=31)
    session.expires_at = now + timedelta(hours=1)
    db.commit()

    assert issuer.resolve(token, now=now) is None
    db.refresh(session)
    assert session.revoked_at is not None


def test_resolve_inactive_account_revokes(db, issuer, player_account, issued):
    session, token = issued
    player_account.status = "suspended"
    db.commit()

    assert issuer.resolve(token) is None
    db.refresh(session)
    assert session.revoked_at is not None


def test_lookup_reports_renewal(db, issuer, issued):
    session, token = issued
    now = utcnow()

    assert issuer.lookup(token, now=now).renewed is False

    session.expires_at = now + timedelta(hours=1)
    db.commit()
    lookup = issuer.lookup(token, now=now)

    assert lookup.session.id == session.id
    assert lookup.renewed is True


def test_lookup_unknown_token(issuer):
    lookup = issuer.lookup("unknown-token")
    assert lookup.session is None
    assert lookup.renewed is False


def test_list_active(db, issuer, player_account, admin_account, issued):
    current, _ = issued
    _, revoked_token = issuer.issue(player_account)
    expired, _ = issuer.issue(player_account)
    expired.expires_at = utcnow() - timedelta(minutes=1)
    issuer.issue(admin_account)
    db.commit()
    issuer.revoke_current(revoked_token)

    active = issuer.list_active(player_account.id)

    assert [item.id for item in active] == [current.id]
