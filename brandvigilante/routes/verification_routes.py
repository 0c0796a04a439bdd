import logging
from enum import Enum

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import require_user_api, require_user_page
from brandvigilante.auth.rate_limit import login_rate_limiter
from brandvigilante.auth.sessions import UserContext
from brandvigilante.auth.tokens import (
    create_verification_token,
    delete_verification_tokens,
    find_verification_token,
    increment_verification_attempts,
)
from brandvigilante.core import config
from brandvigilante.core.errors import AppError, RateLimitError, RedirectRequired, ValidationError
from brandvigilante.database import get_db, utcnow
from brandvigilante.models.user import User
from brandvigilante.services.email import send_verification_email

logger = logging.getLogger(__name__)

router = APIRouter(tags=['verification'])

STATUS_MESSAGES = {
    'email-sent': 'Verification email sent successfully. Please check your inbox.',
}
ERROR_MESSAGES = {
    'already-verified': 'Email already verified',
    'too-many-attempts': 'Too many verification attempts. Please try again later.',
    'max-attempts': 'Maximum verification attempts reached. Please contact support.',
    'send-failed': 'Failed to send verification email. Please try again.',
}


class ResendOutcome(str, Enum):
    SENT = 'email-sent'
    ALREADY_VERIFIED = 'already-verified'
    RATE_LIMITED = 'too-many-attempts'
    MAX_ATTEMPTS = 'max-attempts'
    SEND_FAILED = 'send-failed'


def resend_verification(db: Session, user: User) -> ResendOutcome:
    """Issue a fresh verification token, honouring the rate limit and the attempt cap."""
    if user.email_verified:
        return ResendOutcome.ALREADY_VERIFIED

    if not login_rate_limiter.check(f'verify_{user.id}'):
        return ResendOutcome.RATE_LIMITED

    attempts = increment_verification_attempts(db, user.id)
    if attempts > config.MAX_VERIFICATION_ATTEMPTS:
        logger.warning('User %s exceeded verification resend attempts', user.id)
        return ResendOutcome.MAX_ATTEMPTS

    # the new token carries the count forward so the cap survives re-issue
    delete_verification_tokens(db, user.id)
    token = create_verification_token(db, user.id, attempts=attempts)

    if not send_verification_email(user.email, token):
        return ResendOutcome.SEND_FAILED
    return ResendOutcome.SENT


def load_user(db: Session, current_user: UserContext) -> User:
    user = db.get(User, current_user.id)
    if user is None:
        raise RedirectRequired('/sign-in')
    return user


@router.get('/verify-email')
def verify_email(
    token: str | None = Query(default=None),
    status_param: str | None = Query(default=None, alias='status'),
    error: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if status_param in STATUS_MESSAGES:
        return {'success': STATUS_MESSAGES[status_param]}

    if error in ERROR_MESSAGES:
        return {'error': ERROR_MESSAGES[error]}

    if not token:
        return {'is_resend': True}

    verification_token = find_verification_token(db, token)
    if verification_token is None:
        return {'error': 'Invalid verification token'}

    if verification_token.expires_at <= utcnow():
        db.delete(verification_token)
        db.commit()
        return {'error': 'Verification token has expired'}

    user = db.get(User, verification_token.user_id)
    if user is None:
        return {'error': 'User not found'}

    if user.email_verified:
        return {'success': 'Email already verified'}

    user.email_verified = True
    delete_verification_tokens(db, user.id)
    db.commit()
    logger.info('User %s verified their email', user.id)
    return {'success': 'Email verified successfully'}


@router.post('/verify-email')
def resend_verification_email(
    current_user: UserContext = Depends(require_user_api),
    db: Session = Depends(get_db),
):
    outcome = resend_verification(db, load_user(db, current_user))

    if outcome is ResendOutcome.SENT:
        return {'success': True, 'message': 'Verification email sent'}
    if outcome is ResendOutcome.ALREADY_VERIFIED:
        raise ValidationError('Email already verified', code='ALREADY_VERIFIED')
    if outcome is ResendOutcome.RATE_LIMITED:
        raise RateLimitError(ERROR_MESSAGES['too-many-attempts'])
    if outcome is ResendOutcome.MAX_ATTEMPTS:
        raise ValidationError(ERROR_MESSAGES['max-attempts'], code='MAX_ATTEMPTS')
    raise AppError('Failed to send verification email', code='EMAIL_SEND_FAILED')


@router.post('/verify-email/resend')
def resend_verification_redirect(
    current_user: UserContext = Depends(require_user_page),
    db: Session = Depends(get_db),
):
    outcome = resend_verification(db, load_user(db, current_user))

    if outcome is ResendOutcome.SENT:
        location = '/verify-email?status=email-sent'
    else:
        location = f'/verify-email?error={outcome.value}'
    return RedirectResponse(url=location, status_code=status.HTTP_302_FOUND)
