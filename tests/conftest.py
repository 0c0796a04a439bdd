import os

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['APP_ENV'] = 'test'
os.environ['ARGON2_MEMORY_COST'] = '1024'
os.environ['ARGON2_TIME_COST'] = '1'
os.environ['SMTP_HOST'] = ''
os.environ['GOOGLE_CLIENT_ID'] = 'test-client-id'
os.environ['GOOGLE_CLIENT_SECRET'] = 'test-client-secret'

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from brandvigilante import database  # noqa: E402
from brandvigilante.auth.passwords import hash_password  # noqa: E402
from brandvigilante.auth.rate_limit import login_rate_limiter  # noqa: E402
from brandvigilante.auth.sessions import create_session  # noqa: E402
from brandvigilante.core.cache import cache  # noqa: E402
from brandvigilante.main import app  # noqa: E402
from brandvigilante.models.user import User  # noqa: E402

DEFAULT_PASSWORD = 'Abcdef12!'


@pytest.fixture
def session_factory(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    database.Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(database, 'SessionLocal', factory)
    try:
        yield factory
    finally:
        database.Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_in_memory_stores():
    login_rate_limiter.reset()
    cache.clear()
    yield
    login_rate_limiter.reset()
    cache.clear()


@pytest.fixture(autouse=True)
def outbox(monkeypatch: pytest.MonkeyPatch):
    sent: list[dict] = []

    def fake_send_email(to_email: str, subject: str, html_body: str) -> bool:
        sent.append({'to': to_email, 'subject': subject, 'html': html_body})
        return True

    monkeypatch.setattr('brandvigilante.services.email.send_email', fake_send_email)
    return sent


@pytest.fixture
def make_user(db):
    def _make_user(
        email: str = 'user@janusipm.com',
        password: str | None = DEFAULT_PASSWORD,
        role: str = 'user',
        email_verified: bool = True,
        **fields,
    ) -> User:
        user = User(
            email=email,
            hashed_password=hash_password(password) if password else None,
            role=role,
            first_name=fields.pop('first_name', 'Test'),
            last_name=fields.pop('last_name', 'User'),
            email_verified=email_verified,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def login(client, db):
    """Attach a fresh session cookie for ``user`` to the test client."""

    def _login(user: User) -> str:
        issued = create_session(db, user.id)
        client.cookies.set(issued.cookie.name, issued.id)
        return issued.id

    return _login
