"""Opaque server-side sessions delivered through a cookie.

A session id is a random lowercase alphanumeric string stored in the
``user_session`` table. The cookie only carries that id; everything else is
looked up on each request.
"""

import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from fastapi import Response
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brandvigilante.core import config
from brandvigilante.database import utcnow
from brandvigilante.models.session import UserSession
from brandvigilante.models.user import User

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 40
SESSION_ID_ALPHABET = string.ascii_lowercase + string.digits
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SessionStatus(str, Enum):
    AUTHENTICATED = 'authenticated'
    MISSING = 'missing'
    MALFORMED = 'malformed'
    NOT_FOUND = 'not_found'
    EXPIRED = 'expired'
    ERROR = 'error'


class UserContext(BaseModel):
    """Public projection of a user; never carries the password hash."""

    id: int
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    email_verified: bool = False

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'


@dataclass
class CookieDescriptor:
    name: str
    value: str
    max_age: int
    httponly: bool = True
    secure: bool = False
    samesite: str = 'lax'
    path: str = '/'
    domain: str | None = None
    expires: datetime | None = None

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            expires=self.expires,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


@dataclass
class IssuedSession:
    id: str
    cookie: CookieDescriptor
    expires_at: datetime


@dataclass
class ResolvedSession:
    session: UserSession
    user: UserContext


@dataclass
class SessionValidation:
    status: SessionStatus
    session: UserSession | None = None
    user: UserContext | None = None
    reason: str = field(default='')

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED


def generate_session_id() -> str:
    return ''.join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(SESSION_ID_LENGTH))


def session_max_age() -> timedelta:
    return timedelta(days=config.SESSION_MAX_AGE_DAYS)


def build_session_cookie(value: str, max_age_seconds: int) -> CookieDescriptor:
    return CookieDescriptor(
        name=config.SESSION_COOKIE_NAME,
        value=value,
        max_age=max_age_seconds,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite=config.SESSION_SAME_SITE,
        path='/',
        domain=config.COOKIE_DOMAIN,
    )


def create_session(db: Session, user_id: int) -> IssuedSession:
    lifetime = session_max_age()
    session_id = generate_session_id()
    expires_at = utcnow() + lifetime

    try:
        db.add(UserSession(id=session_id, user_id=user_id, expires_at=expires_at))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to create session for user %s', user_id)
        raise

    logger.debug('Created session for user %s expiring %s', user_id, expires_at.isoformat())
    return IssuedSession(
        id=session_id,
        cookie=build_session_cookie(session_id, int(lifetime.total_seconds())),
        expires_at=expires_at,
    )


def validate_cookie_format(raw: str | None) -> bool:
    return bool(raw) and raw.isascii() and raw.isalnum()


def validate_session(db: Session, session_id: str | None) -> SessionValidation:
    if not session_id:
        return SessionValidation(SessionStatus.MISSING)

    if not validate_cookie_format(session_id):
        return SessionValidation(SessionStatus.MALFORMED, reason='cookie value is not alphanumeric')

    try:
        row = db.query(UserSession, User).join(User, User.id == UserSession.user_id).filter(
            UserSession.id == session_id,
        ).first()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Session lookup failed')
        return SessionValidation(SessionStatus.ERROR, reason='storage error')

    if row is None:
        return SessionValidation(SessionStatus.NOT_FOUND, reason='no such session')

    session, user = row
    if session.expires_at <= utcnow():
        return SessionValidation(SessionStatus.EXPIRED, session=session, reason='session expired')

    return SessionValidation(
        SessionStatus.AUTHENTICATED,
        session=session,
        user=UserContext.model_validate(user),
    )


def resolve_session(db: Session, session_id: str | None) -> ResolvedSession | None:
    result = validate_session(db, session_id)
    if not result.is_authenticated:
        return None
    return ResolvedSession(session=result.session, user=result.user)


def invalidate_session(db: Session, session_id: str) -> None:
    try:
        db.query(UserSession).filter(UserSession.id == session_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def invalidate_user_sessions(db: Session, user_id: int) -> int:
    try:
        deleted = db.query(UserSession).filter(UserSession.user_id == user_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return deleted


def delete_expired_sessions(db: Session) -> int:
    try:
        deleted = db.query(UserSession).filter(UserSession.expires_at <= utcnow()).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return deleted


def create_blank_cookie() -> CookieDescriptor:
    cookie = build_session_cookie('', 0)
    cookie.expires = EPOCH
    return cookie


def clear_session_cookie(response: Response) -> None:
    create_blank_cookie().apply(response)
