from datetime import timedelta

import pytest

from brandvigilante import cleanup_sessions, create_admin
from brandvigilante.auth.passwords import verify_password
from brandvigilante.auth.sessions import create_session
from brandvigilante.auth.tokens import create_password_reset_token, create_verification_token
from brandvigilante.database import utcnow
from brandvigilante.models.session import UserSession
from brandvigilante.models.token import PasswordResetToken, VerificationToken
from brandvigilante.models.user import User


def test_create_admin_creates_new_account(db) -> None:
    user, created = create_admin.create_or_promote_admin(db, ' Owner@JanusIPM.com ', 'longenough')

    assert created is True
    assert user.email == 'owner@janusipm.com'
    assert user.role == 'admin'
    assert user.email_verified is True
    assert verify_password(user.hashed_password, 'longenough')


def test_create_admin_promotes_existing_user(db, make_user) -> None:
    existing = make_user(email='owner@janusipm.com', role='user')

    user, created = create_admin.create_or_promote_admin(db, 'owner@janusipm.com', 'newpassword')

    assert created is False
    assert user.id == existing.id
    assert user.role == 'admin'
    assert verify_password(user.hashed_password, 'newpassword')


def test_create_admin_main_rejects_short_password(session_factory) -> None:
    with pytest.raises(SystemExit):
        create_admin.main(['owner@janusipm.com', 'short'])


def test_create_admin_main_prints_result(session_factory, capsys) -> None:
    create_admin.main(['owner@janusipm.com', 'longenough'])

    assert 'Created admin owner@janusipm.com' in capsys.readouterr().out
    db = session_factory()
    try:
        assert db.query(User).filter(User.role == 'admin').count() == 1
    finally:
        db.close()


def test_cleanup_expired_removes_stale_sessions_and_tokens(db, make_user, capsys) -> None:
    user = make_user()
    stale = create_session(db, user.id)
    fresh = create_session(db, user.id)
    create_password_reset_token(db, user.id)
    create_verification_token(db, user.id)

    past = utcnow() - timedelta(minutes=1)
    db.get(UserSession, stale.id).expires_at = past
    db.query(PasswordResetToken).update({PasswordResetToken.expires_at: past})
    db.query(VerificationToken).update({VerificationToken.expires_at: past})
    db.commit()

    counts = cleanup_sessions.cleanup_expired()

    assert counts == {'sessions': 1, 'password_reset_tokens': 1, 'verification_tokens': 1}
    db.expire_all()
    assert db.get(UserSession, fresh.id) is not None

    cleanup_sessions.main()
    assert 'sessions: 0 deleted' in capsys.readouterr().out
