import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from brandvigilante import database
from brandvigilante.auth.sessions import (
    SessionStatus,
    SessionValidation,
    clear_session_cookie,
    invalidate_session,
    validate_session,
)
from brandvigilante.core import config

logger = logging.getLogger(__name__)

BYPASS_PATHS = frozenset({'/sign-out', '/logout'})
CLEARED_STATUSES = frozenset({SessionStatus.MALFORMED, SessionStatus.NOT_FOUND, SessionStatus.EXPIRED})


def authenticate_cookie(session_id: str) -> SessionValidation:
    try:
        db = database.SessionLocal()
    except SQLAlchemyError:
        logger.exception('Could not open a database session for cookie validation')
        return SessionValidation(SessionStatus.ERROR, reason='storage error')
    try:
        result = validate_session(db, session_id)
        if result.status is SessionStatus.EXPIRED:
            try:
                invalidate_session(db, session_id)
            except SQLAlchemyError:
                logger.exception('Failed to delete expired session')
        return result
    finally:
        db.close()


def response_sets_cookie(response, cookie_name: str) -> bool:
    prefix = f'{cookie_name}='
    return any(header.startswith(prefix) for header in response.headers.getlist('set-cookie'))


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Resolves the session cookie into ``request.state.user`` once per request."""

    async def dispatch(self, request: Request, call_next):
        request.state.user = None
        request.state.session_id = None

        if request.url.path in BYPASS_PATHS:
            return await call_next(request)

        session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
        if not session_id:
            return await call_next(request)

        result = await run_in_threadpool(authenticate_cookie, session_id)

        if result.is_authenticated:
            request.state.user = result.user
            request.state.session_id = session_id
        elif result.status is SessionStatus.ERROR:
            logger.warning('Session lookup unavailable; continuing unauthenticated')
        else:
            logger.warning('Rejected session cookie: %s', result.status.value)

        response = await call_next(request)

        if result.status in CLEARED_STATUSES and not response_sets_cookie(response, config.SESSION_COOKIE_NAME):
            clear_session_cookie(response)

        return response
