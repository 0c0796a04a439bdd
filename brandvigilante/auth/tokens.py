import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from brandvigilante.core import config
from brandvigilante.database import utcnow
from brandvigilante.models.token import PasswordResetToken, VerificationToken


def generate_token() -> str:
    return secrets.token_hex(32)


def create_password_reset_token(db: Session, user_id: int) -> str:
    """Issue a reset token, replacing any token the user already holds."""
    token = generate_token()
    expires_at = utcnow() + timedelta(hours=config.PASSWORD_RESET_TOKEN_HOURS)

    existing = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user_id).first()
    if existing:
        existing.token = token
        existing.expires_at = expires_at
        existing.created_at = utcnow()
    else:
        db.add(PasswordResetToken(user_id=user_id, token=token, expires_at=expires_at))
    db.commit()
    return token


def validate_password_reset_token(db: Session, token: str | None) -> PasswordResetToken | None:
    if not token:
        return None

    reset_token = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if reset_token is None or reset_token.expires_at <= utcnow():
        return None
    return reset_token


def delete_password_reset_token(db: Session, token: str) -> None:
    db.query(PasswordResetToken).filter(PasswordResetToken.token == token).delete(synchronize_session=False)


def create_verification_token(db: Session, user_id: int, attempts: int = 0) -> str:
    token = generate_token()
    db.add(
        VerificationToken(
            user_id=user_id,
            token=token,
            expires_at=utcnow() + timedelta(days=config.VERIFICATION_TOKEN_DAYS),
            attempts=attempts,
        )
    )
    db.commit()
    return token


def find_verification_token(db: Session, token: str | None) -> VerificationToken | None:
    if not token:
        return None
    return db.query(VerificationToken).filter(VerificationToken.token == token).first()


def increment_verification_attempts(db: Session, user_id: int) -> int:
    latest = db.query(VerificationToken).filter(
        VerificationToken.user_id == user_id,
    ).order_by(VerificationToken.created_at.desc(), VerificationToken.id.desc()).first()
    attempts = (latest.attempts if latest else 0) + 1

    db.query(VerificationToken).filter(VerificationToken.user_id == user_id).update(
        {VerificationToken.attempts: attempts},
        synchronize_session=False,
    )
    db.commit()
    return attempts


def delete_verification_tokens(db: Session, user_id: int) -> None:
    db.query(VerificationToken).filter(VerificationToken.user_id == user_id).delete(synchronize_session=False)


def delete_expired_tokens(db: Session) -> tuple[int, int]:
    now = utcnow()
    reset_deleted = db.query(PasswordResetToken).filter(
        PasswordResetToken.expires_at <= now,
    ).delete(synchronize_session=False)
    verification_deleted = db.query(VerificationToken).filter(
        VerificationToken.expires_at <= now,
    ).delete(synchronize_session=False)
    db.commit()
    return reset_deleted, verification_deleted
