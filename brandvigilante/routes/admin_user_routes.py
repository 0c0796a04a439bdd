import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import require_admin_page
from brandvigilante.auth.passwords import hash_password
from brandvigilante.auth.sessions import UserContext
from brandvigilante.core.errors import ConflictError
from brandvigilante.database import get_db
from brandvigilante.models.user import USER_ROLES, User
from brandvigilante.schemas import (
    PASSWORD_MIN_LENGTH,
    UserRecord,
    digits_only,
    normalize_email,
    page_meta,
    required_text,
)
from brandvigilante.services.activity import record_activity
from brandvigilante.services.crud import commit_or_conflict, get_or_404, invalidate_admin_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/admin/users', tags=['admin'])

EMAIL_TAKEN_MESSAGE = 'A user with this email already exists'


def check_role(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in USER_ROLES:
        raise ValueError('Role must be user, admin or lead')
    return normalized


class UserFields(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: str | None = None
    role: str = 'user'

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

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        return check_role(value)


class NewUserRequest(UserFields):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < PASSWORD_MIN_LENGTH:
            raise ValueError(f'Password must be at least {PASSWORD_MIN_LENGTH} characters')
        return value


class EditUserRequest(UserFields):
    email_verified: bool | None = None
    password: str | None = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str | None) -> str | None:
        if not value:
            return None
        if len(value) < PASSWORD_MIN_LENGTH:
            raise ValueError(f'Password must be at least {PASSWORD_MIN_LENGTH} characters')
        return value


@router.get('')
def list_users(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    role: str | None = Query(default=None),
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(
            or_(User.email.ilike(pattern), User.first_name.ilike(pattern), User.last_name.ilike(pattern))
        )
    if role:
        query = query.filter(User.role == role.strip().lower())

    total = query.with_entities(func.count(User.id)).scalar()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * per_page).limit(per_page).all()

    return {
        'users': [UserRecord.model_validate(user).model_dump(mode='json') for user in users],
        'pagination': page_meta(page, per_page, total).model_dump(),
    }


@router.post('', status_code=status.HTTP_201_CREATED)
def add_user(data: NewUserRequest, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == data.email).first():
        raise ConflictError(EMAIL_TAKEN_MESSAGE, code='EMAIL_TAKEN')

    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=data.role,
        email_verified=False,
    )
    db.add(user)
    db.flush()
    record_activity(db, entity_type='user', entity_id=user.id, action='created', user_id=admin.id)
    commit_or_conflict(db, EMAIL_TAKEN_MESSAGE)
    db.refresh(user)
    invalidate_admin_stats()

    logger.info('Admin %s created user %s', admin.id, user.id)
    return {'success': True, 'user': UserRecord.model_validate(user).model_dump(mode='json')}


@router.get('/{user_id}')
def show_user(user_id: int, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    user = get_or_404(db, User, user_id, 'User')
    return {'user': UserRecord.model_validate(user).model_dump(mode='json')}


@router.put('/{user_id}')
def edit_user(
    user_id: int,
    data: EditUserRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    user = get_or_404(db, User, user_id, 'User')

    duplicate = db.query(User).filter(User.email == data.email, User.id != user.id).first()
    if duplicate:
        raise ConflictError(EMAIL_TAKEN_MESSAGE, code='EMAIL_TAKEN')

    user.first_name = data.first_name
    user.last_name = data.last_name
    user.email = data.email
    user.phone = data.phone
    user.role = data.role
    if data.email_verified is not None:
        user.email_verified = data.email_verified
    if data.password:
        user.hashed_password = hash_password(data.password)

    record_activity(db, entity_type='user', entity_id=user.id, action='updated', user_id=admin.id)
    commit_or_conflict(db, EMAIL_TAKEN_MESSAGE)
    db.refresh(user)
    return {'success': True, 'user': UserRecord.model_validate(user).model_dump(mode='json')}
