from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from brandvigilante.auth.sessions import (
    EPOCH,
    SESSION_ID_LENGTH,
    SessionStatus,
    create_blank_cookie,
    create_session,
    delete_expired_sessions,
    generate_session_id,
    invalidate_session,
    invalidate_user_sessions,
    resolve_session,
    validate_cookie_format,
    validate_session,
)
from brandvigilante.database import utcnow
from brandvigilante.models.session import UserSession


class _BrokenSession:
    def query(self, *_args, **_kwargs):
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    def rollback(self) -> None:
        pass


def _expire(db, session_id: str) -> None:
    row = db.get(UserSession, session_id)
    row.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()


def test_generate_session_id_is_lowercase_alphanumeric() -> None:
    session_id = generate_session_id()

    assert len(session_id) == SESSION_ID_LENGTH
    assert session_id.isalnum()
    assert session_id == session_id.lower()


def test_create_session_persists_row_and_builds_cookie(db, make_user) -> None:
    user = make_user()

    issued = create_session(db, user.id)

    row = db.get(UserSession, issued.id)
    assert row is not None
    assert row.user_id == user.id
    assert issued.cookie.name == 'session'
    assert issued.cookie.value == issued.id
    assert issued.cookie.httponly is True
    assert issued.cookie.samesite == 'lax'
    assert issued.cookie.path == '/'
    assert issued.cookie.max_age == 30 * 24 * 60 * 60


def test_resolve_session_returns_public_user_projection(db, make_user) -> None:
    user = make_user(email='owner@janusipm.com', role='admin')
    issued = create_session(db, user.id)

    resolved = resolve_session(db, issued.id)

    assert resolved is not None
    assert resolved.user.id == user.id
    assert resolved.user.email == 'owner@janusipm.com'
    assert resolved.user.is_admin is True
    assert not hasattr(resolved.user, 'hashed_password')


def test_invalidated_session_no_longer_resolves(db, make_user) -> None:
    user = make_user()
    issued = create_session(db, user.id)

    invalidate_session(db, issued.id)

    assert resolve_session(db, issued.id) is None


def test_expired_session_reports_expired(db, make_user) -> None:
    user = make_user()
    issued = create_session(db, user.id)
    _expire(db, issued.id)

    result = validate_session(db, issued.id)

    assert result.status is SessionStatus.EXPIRED
    assert resolve_session(db, issued.id) is None


@pytest.mark.parametrize(
    'raw, expected',
    [
        ('abc123', True),
        ('', False),
        (None, False),
        ('abc-123', False),
        ('abc 123', False),
        ('abé123', False),
    ],
)
def test_validate_cookie_format(raw, expected) -> None:
    assert validate_cookie_format(raw) is expected


def test_validate_session_distinguishes_missing_malformed_and_unknown(db) -> None:
    assert validate_session(db, None).status is SessionStatus.MISSING
    assert validate_session(db, 'not/alnum').status is SessionStatus.MALFORMED
    assert validate_session(db, 'a' * SESSION_ID_LENGTH).status is SessionStatus.NOT_FOUND


def test_validate_session_reports_storage_errors() -> None:
    result = validate_session(_BrokenSession(), 'a' * SESSION_ID_LENGTH)

    assert result.status is SessionStatus.ERROR
    assert result.is_authenticated is False


def test_invalidate_user_sessions_revokes_every_session(db, make_user) -> None:
    user = make_user()
    other = make_user(email='other@janusipm.com')
    first = create_session(db, user.id)
    second = create_session(db, user.id)
    kept = create_session(db, other.id)

    deleted = invalidate_user_sessions(db, user.id)

    assert deleted == 2
    assert resolve_session(db, first.id) is None
    assert resolve_session(db, second.id) is None
    assert resolve_session(db, kept.id) is not None


def test_delete_expired_sessions_only_removes_stale_rows(db, make_user) -> None:
    user = make_user()
    stale = create_session(db, user.id)
    fresh = create_session(db, user.id)
    _expire(db, stale.id)

    assert delete_expired_sessions(db) == 1
    db.expire_all()
    assert db.get(UserSession, stale.id) is None
    assert db.get(UserSession, fresh.id) is not None


def test_create_blank_cookie_expires_immediately() -> None:
    cookie = create_blank_cookie()

    assert cookie.value == ''
    assert cookie.max_age == 0
    assert cookie.expires == EPOCH
    assert cookie.httponly is True
