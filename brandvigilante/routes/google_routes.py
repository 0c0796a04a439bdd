import hmac
import logging

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brandvigilante.auth.google import (
    CODE_VERIFIER_COOKIE_NAME,
    STATE_COOKIE_NAME,
    GoogleOAuthClient,
    GoogleOAuthError,
    GoogleUserInfo,
    generate_code_verifier,
    generate_state,
    get_google_client,
)
from brandvigilante.auth.sessions import IssuedSession, create_session
from brandvigilante.core import config
from brandvigilante.database import get_db
from brandvigilante.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=['google'])


class OAuthCallbackError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


def set_oauth_cookie(response: RedirectResponse, name: str, value: str) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=config.OAUTH_COOKIE_MAX_AGE_SECONDS,
        path='/',
        secure=config.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite='lax',
    )


def states_match(state: str, stored_state: str | None) -> bool:
    if stored_state is None:
        return False
    return hmac.compare_digest(state.encode('utf-8'), stored_state.encode('utf-8'))


def resolve_google_user(db: Session, info: GoogleUserInfo) -> User:
    """Find the local account for a Google identity, linking or creating it as needed."""
    try:
        user = db.query(User).filter(User.google_user_id == info.sub).first()
        if user is not None:
            logger.debug('Google identity matched user %s', user.id)
            return user

        user = db.query(User).filter(User.email == info.email).first()
        if user is not None:
            user.google_user_id = info.sub
            user.email_verified = True
            logger.info('Linked Google identity to existing user %s', user.id)
        else:
            user = User(
                email=info.email,
                hashed_password=None,
                first_name=info.given_name,
                last_name=info.family_name,
                role='user',
                email_verified=True,
                google_user_id=info.sub,
            )
            db.add(user)

        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Could not resolve local user for Google sign-in')
        raise OAuthCallbackError('user_creation_failed') from exc


def complete_google_sign_in(
    db: Session,
    client: GoogleOAuthClient,
    *,
    code: str | None,
    state: str | None,
    stored_state: str | None,
    code_verifier: str | None,
) -> IssuedSession:
    if not code or not state or not code_verifier:
        raise OAuthCallbackError('missing_params')

    if not states_match(state, stored_state):
        logger.warning('Google callback state mismatch')
        raise OAuthCallbackError('invalid_state')

    try:
        access_token = client.exchange_code(code, code_verifier)
    except GoogleOAuthError as exc:
        raise OAuthCallbackError('oauth_flow_failed') from exc

    try:
        info = client.fetch_user_info(access_token)
    except GoogleOAuthError as exc:
        raise OAuthCallbackError('google_api_error') from exc

    user = resolve_google_user(db, info)

    try:
        return create_session(db, user.id)
    except SQLAlchemyError as exc:
        raise OAuthCallbackError('session_creation_failed') from exc


@router.get('/login/google')
def google_login(client: GoogleOAuthClient = Depends(get_google_client)):
    state = generate_state()
    code_verifier = generate_code_verifier()
    authorization_url = client.create_authorization_url(state, code_verifier)

    response = RedirectResponse(url=authorization_url, status_code=status.HTTP_302_FOUND)
    set_oauth_cookie(response, STATE_COOKIE_NAME, state)
    set_oauth_cookie(response, CODE_VERIFIER_COOKIE_NAME, code_verifier)
    return response


@router.get('/login/google/callback')
def google_callback(
    request: Request,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    db: Session = Depends(get_db),
    client: GoogleOAuthClient = Depends(get_google_client),
):
    try:
        issued = complete_google_sign_in(
            db,
            client,
            code=code,
            state=state,
            stored_state=request.cookies.get(STATE_COOKIE_NAME),
            code_verifier=request.cookies.get(CODE_VERIFIER_COOKIE_NAME),
        )
    except OAuthCallbackError as exc:
        logger.warning('Google sign-in failed: %s', exc.code)
        response = RedirectResponse(url=f'/sign-in?error={exc.code}', status_code=status.HTTP_303_SEE_OTHER)
    except Exception:
        logger.exception('Unexpected error during Google sign-in')
        response = RedirectResponse(url='/sign-in?error=oauth_flow_failed', status_code=status.HTTP_303_SEE_OTHER)
    else:
        response = RedirectResponse(url='/dashboard', status_code=status.HTTP_303_SEE_OTHER)
        issued.cookie.apply(response)

    response.delete_cookie(STATE_COOKIE_NAME, path='/')
    response.delete_cookie(CODE_VERIFIER_COOKIE_NAME, path='/')
    return response
