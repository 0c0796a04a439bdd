import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import require_user_page
from brandvigilante.auth.passwords import hash_password, verify_password
from brandvigilante.auth.sessions import UserContext
from brandvigilante.core.errors import RedirectRequired, ValidationError
from brandvigilante.database import get_db
from brandvigilante.models.brand import Brand
from brandvigilante.models.user import User
from brandvigilante.schemas import (
    BrandRecord,
    ListingRecord,
    UserRecord,
    check_password,
    digits_only,
    page_meta,
    required_text,
)
from brandvigilante.services.listings import list_listings

logger = logging.getLogger(__name__)

router = APIRouter(tags=['account'])


class ProfileUpdateRequest(BaseModel):
    first_name: str
    last_name: str
    phone: str | None = None

    @field_validator('first_name')
    @classmethod
    def validate_first_name(cls, value: str) -> str:
        return required_text(value, 'First name', max_length=50)

    @field_validator('last_name')
    @classmethod
    def validate_last_name(cls, value: str) -> str:
        return required_text(value, 'Last name', max_length=50)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return digits_only(value)


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password(value)


def load_account(db: Session, current_user: UserContext) -> User:
    user = db.get(User, current_user.id)
    if user is None:
        raise RedirectRequired('/sign-in')
    return user


@router.get('/dashboard')
def dashboard(current_user: UserContext = Depends(require_user_page), db: Session = Depends(get_db)):
    user = load_account(db, current_user)
    brands = db.query(Brand).filter(Brand.users.any(User.id == user.id)).order_by(Brand.name.asc()).all()
    return {
        'user': UserRecord.model_validate(user).model_dump(mode='json'),
        'brands': [BrandRecord.model_validate(brand).model_dump(mode='json') for brand in brands],
    }


@router.get('/profile')
def profile(current_user: UserContext = Depends(require_user_page), db: Session = Depends(get_db)):
    user = load_account(db, current_user)
    return {
        'user': UserRecord.model_validate(user).model_dump(mode='json'),
        'has_password': bool(user.hashed_password),
        'google_linked': bool(user.google_user_id),
    }


@router.post('/profile')
def update_profile(
    data: ProfileUpdateRequest,
    current_user: UserContext = Depends(require_user_page),
    db: Session = Depends(get_db),
):
    user = load_account(db, current_user)
    user.first_name = data.first_name
    user.last_name = data.last_name
    user.phone = data.phone
    db.commit()
    db.refresh(user)
    return {'success': True, 'user': UserRecord.model_validate(user).model_dump(mode='json')}


@router.post('/profile/password')
def change_password(
    data: PasswordChangeRequest,
    current_user: UserContext = Depends(require_user_page),
    db: Session = Depends(get_db),
):
    user = load_account(db, current_user)

    if not verify_password(user.hashed_password, data.current_password):
        raise ValidationError('Current password is incorrect', code='INVALID_PASSWORD')
    if data.new_password != data.confirm_password:
        raise ValidationError('Passwords do not match', code='PASSWORD_MISMATCH')

    user.hashed_password = hash_password(data.new_password)
    db.commit()
    logger.info('User %s changed their password', user.id)
    return {'success': True, 'message': 'Password updated successfully'}


@router.get('/listings')
def browse_listings(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    marketplace_id: int | None = Query(default=None),
    product_id: int | None = Query(default=None),
    current_user: UserContext = Depends(require_user_page),
    db: Session = Depends(get_db),
):
    listings, total = list_listings(
        db,
        page=page,
        per_page=per_page,
        search=search,
        marketplace_id=marketplace_id,
        product_id=product_id,
    )
    return {
        'listings': [ListingRecord.model_validate(listing).model_dump(mode='json') for listing in listings],
        'pagination': page_meta(page, per_page, total).model_dump(),
    }
