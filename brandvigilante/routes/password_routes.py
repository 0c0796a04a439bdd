import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, field_validator, model_validator
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import redirect_signed_in
from brandvigilante.auth.passwords import hash_password
from brandvigilante.auth.sessions import invalidate_user_sessions
from brandvigilante.auth.tokens import (
    create_password_reset_token,
    delete_password_reset_token,
    validate_password_reset_token,
)
from brandvigilante.core.errors import AppError, RedirectRequired, ValidationError
from brandvigilante.database import get_db
from brandvigilante.models.user import User
from brandvigilante.schemas import check_password, normalize_email
from brandvigilante.services.email import send_password_reset_email

logger = logging.getLogger(__name__)

router = APIRouter(tags=['password'])

FORGOT_PASSWORD_MESSAGE = (
    'If an account exists with this email, you will receive password reset instructions.'
)
INVALID_RESET_TOKEN_MESSAGE = 'Invalid or expired reset token. Please request a new password reset link.'


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
    confirm_password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password(value, require_special=True)

    @model_validator(mode='after')
    def passwords_match(self) -> 'ResetPasswordRequest':
        if self.password != self.confirm_password:
            raise ValueError('Passwords do not match')
        return self


@router.get('/forgot-password', dependencies=[Depends(redirect_signed_in)])
def forgot_password_page(error: str | None = Query(default=None)):
    if error == 'invalid_token':
        return {'error': INVALID_RESET_TOKEN_MESSAGE}
    return {}


@router.post('/forgot-password')
def forgot_password(data: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()

    if user is not None:
        token = create_password_reset_token(db, user.id)
        if not send_password_reset_email(user.email, token):
            raise AppError(
                'Failed to send password reset email. Please try again later.',
                code='EMAIL_SEND_FAILED',
            )
        logger.info('Password reset requested for user %s', user.id)

    return {'success': True, 'message': FORGOT_PASSWORD_MESSAGE}


@router.get('/reset-password', dependencies=[Depends(redirect_signed_in)])
def reset_password_page(token: str | None = Query(default=None), db: Session = Depends(get_db)):
    if not token:
        raise RedirectRequired('/forgot-password')

    if validate_password_reset_token(db, token) is None:
        raise RedirectRequired('/forgot-password?error=invalid_token')

    return {'token': token}


@router.post('/reset-password')
def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    reset_token = validate_password_reset_token(db, data.token)
    if reset_token is None:
        raise ValidationError(INVALID_RESET_TOKEN_MESSAGE, code='INVALID_TOKEN')

    user = db.get(User, reset_token.user_id)
    if user is None:
        raise ValidationError(INVALID_RESET_TOKEN_MESSAGE, code='INVALID_TOKEN')

    user.hashed_password = hash_password(data.password)
    delete_password_reset_token(db, data.token)
    db.commit()

    revoked = invalidate_user_sessions(db, user.id)
    logger.info('Password reset for user %s; revoked %s sessions', user.id, revoked)
    return {'success': True, 'message': 'Your password has been reset. Please sign in with your new password.'}
