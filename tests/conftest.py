import os

os.environ.setdefault("PLAYIMS_SESSION_SECRET", "test-session-secret")
os.environ.setdefault("PLAYIMS_PASSWORD_PEPPER", "test-pepper")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import sessionmaker

from playims.config import Settings, settings
from playims.database import Base, get_db
from playims.dependencies import get_settings
from playims.main import app
from playims.models import Account
from playims.security import generate_raw_token, hash_token
from playims.services.invite_keys import InviteKeyStore
from playims.services.sessions import SessionIssuer


@pytest.fixture
def test_settings():
    return Settings(
        session_secret="test-session-secret",
        password_pepper="test-pepper",
        bcrypt_rounds=4,
        session_cookie_secure=False,
        rate_limit_enabled=False,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        settings.test_database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite so that threads get separate connections."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'playims.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def client(db, test_settings):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_invite_key(db):
    def _make(uses=1, expires_at=None):
        raw_key = generate_raw_token(24)
        InviteKeyStore(db).create(hash_token(raw_key), uses, expires_at)
        db.commit()
        return raw_key

    return _make


def _make_account(db, test_settings, email, role, password):
    account = Account(email=email, first_name="Test", role=role, password_hash="x")
    account.set_password(password, test_settings.password_pepper, rounds=4)
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def admin_account(db, test_settings):
    return _make_account(db, test_settings, "admin@test.com", "admin", "admin-pass-123")


@pytest.fixture
def player_account(db, test_settings):
    return _make_account(
        db, test_settings, "player@test.com", "player", "player-pass-123"
    )


def _issue_token(db, test_settings, account):
    _, token = SessionIssuer(db, test_settings).issue(account)
    db.commit()
    return token


@pytest.fixture
def admin_token(db, test_settings, admin_account):
    return _issue_token(db, test_settings, admin_account)


@pytest.fixture
def player_token(db, test_settings, player_account):
    return _issue_token(db, test_settings, player_account)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def player_headers(player_token):
    return {"Authorization": f"Bearer {player_token}"}
