import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import redirect_signed_in
from brandvigilante.auth.passwords import hash_password, verify_password
from brandvigilante.auth.rate_limit import login_rate_limiter
from brandvigilante.auth.sessions import (
    clear_session_cookie,
    create_session,
    invalidate_session,
    validate_cookie_format,
)
from brandvigilante.auth.tokens import create_verification_token
from brandvigilante.core import config
from brandvigilante.core.errors import AuthenticationError, RateLimitError, ValidationError
from brandvigilante.database import get_db
from brandvigilante.models.user import User
from brandvigilante.schemas import check_password, digits_only, normalize_email, required_text
from brandvigilante.services.email import send_verification_email

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

INVALID_CREDENTIALS_MESSAGE = 'Invalid email or password'
RATE_LIMITED_MESSAGE = 'Too many login attempts. Please try again later.'


class SignUpRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: str | None = None
    password: str

    @field_validator('first_name')
    @classmethod
    def validate_first_name(cls, value: str) -> str:
        return required_text(value, 'First name', max_length=50)

    @field_validator('last_name')
    @classmethod
    def validate_last_name(cls, value: str) -> str:
        return required_text(value, 'Last name', max_length=50)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return digits_only(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password(value)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required')
        return value


def client_identifier(request: Request) -> str:
    forwarded_for = request.headers.get('x-forwarded-for')
    if config.TRUST_PROXY_HEADERS and forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.client.host if request.client else 'unknown'


@router.get('/sign-in', dependencies=[Depends(redirect_signed_in)])
def sign_in_page():
    return {'title': 'Sign In - JanusIPM', 'google_enabled': bool(config.GOOGLE_CLIENT_ID)}


@router.get('/sign-up', dependencies=[Depends(redirect_signed_in)])
def sign_up_page():
    return {'title': 'Sign Up - JanusIPM', 'google_enabled': bool(config.GOOGLE_CLIENT_ID)}


@router.post('/sign-up', status_code=status.HTTP_201_CREATED)
def sign_up(data: SignUpRequest, response: Response, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == data.email).first():
        raise ValidationError('Email already registered', code='EMAIL_TAKEN')

    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        phone=data.phone,
        first_name=data.first_name,
        last_name=data.last_name,
        role='user',
        email_verified=False,
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError('Email already registered', code='EMAIL_TAKEN') from exc

    token = create_verification_token(db, user.id)
    if not send_verification_email(user.email, token):
        logger.error('Failed to send verification email to new user %s', user.id)

    issued = create_session(db, user.id)
    issued.cookie.apply(response)

    logger.info('New user registered: %s', user.id)
    return {'success': True, 'user_id': user.id}


@router.post('/sign-in')
def sign_in(data: SignInRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    ip_address = client_identifier(request)
    if not login_rate_limiter.check(ip_address):
        logger.warning('Login rate limit hit for %s', ip_address)
        raise RateLimitError(RATE_LIMITED_MESSAGE)

    user = db.query(User).filter(User.email == data.email).first()
    if user is None or not verify_password(user.hashed_password, data.password):
        logger.warning('Failed login attempt from %s', ip_address)
        raise AuthenticationError(
            INVALID_CREDENTIALS_MESSAGE,
            status_code=status.HTTP_400_BAD_REQUEST,
            code='INVALID_CREDENTIALS',
        )

    issued = create_session(db, user.id)
    issued.cookie.apply(response)

    logger.info('User %s signed in', user.id)
    return {'success': True, 'redirect': '/dashboard'}


def end_session(request: Request, db: Session) -> None:
    session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not validate_cookie_format(session_id):
        return
    try:
        invalidate_session(db, session_id)
    except SQLAlchemyError:
        logger.exception('Failed to delete session during sign-out')


@router.post('/sign-out')
def sign_out(request: Request, response: Response, db: Session = Depends(get_db)):
    end_session(request, db)
    clear_session_cookie(response)
    return {'success': True}


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db)):
    end_session(request, db)
    response = RedirectResponse(url='/sign-in', status_code=status.HTTP_302_FOUND)
    clear_session_cookie(response)
    return response
