import asyncio
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from brandvigilante import database
from brandvigilante.auth.dependencies import require_admin_api
from brandvigilante.auth.sessions import UserContext
from brandvigilante.core import config
from brandvigilante.core.errors import AppError, NotFoundError, ValidationError, error_body
from brandvigilante.database import get_db
from brandvigilante.models.brand import BRAND_STATUSES, Brand, BrandMarketplace
from brandvigilante.models.marketplace import Marketplace
from brandvigilante.models.user import User
from brandvigilante.schemas import digits_only, normalize_email, required_text
from brandvigilante.services.activity import record_activity
from brandvigilante.services.crud import get_or_404, invalidate_admin_stats
from brandvigilante.services.email import send_lead_confirmation, send_lead_notification, send_test_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api', tags=['api'])

LEAD_THANK_YOU_MESSAGE = 'Thank you for your inquiry! We will be in touch soon.'


class UserIdsRequest(BaseModel):
    user_ids: list[int]

    @field_validator('user_ids')
    @classmethod
    def validate_user_ids(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError('Invalid user IDs')
        return value


class MarketplaceIdsRequest(BaseModel):
    marketplace_ids: list[int]

    @field_validator('marketplace_ids')
    @classmethod
    def validate_marketplace_ids(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError('Invalid marketplace IDs')
        return value


class StatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        if value not in BRAND_STATUSES:
            raise ValueError('Invalid status')
        return value


class LeadRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    company: str | None = None
    phone: str | None = None

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


class TestEmailRequest(BaseModel):
    to: EmailStr


@router.post('/brands/{brand_id}/users')
def add_brand_users(
    brand_id: int,
    data: UserIdsRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    users = db.query(User).filter(User.id.in_(set(data.user_ids))).all()
    if len(users) != len(set(data.user_ids)):
        raise ValidationError('Invalid user IDs', code='INVALID_REFERENCE')

    assigned = {user.id for user in brand.users}
    for user in users:
        if user.id not in assigned:
            brand.users.append(user)
    record_activity(db, entity_type='brand', entity_id=brand.id, action='users_added', user_id=admin.id,
                    details=','.join(str(user.id) for user in users))
    db.commit()
    return {'success': True}


@router.delete('/brands/{brand_id}/users')
def remove_brand_users(
    brand_id: int,
    data: UserIdsRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    removed_ids = set(data.user_ids)
    brand.users = [user for user in brand.users if user.id not in removed_ids]
    record_activity(db, entity_type='brand', entity_id=brand.id, action='users_removed', user_id=admin.id,
                    details=','.join(str(user_id) for user_id in sorted(removed_ids)))
    db.commit()
    return {'success': True}


@router.post('/brands/{brand_id}/marketplaces')
def add_brand_marketplaces(
    brand_id: int,
    data: MarketplaceIdsRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    requested_ids = set(data.marketplace_ids)
    found = db.query(Marketplace.id).filter(Marketplace.id.in_(requested_ids)).count()
    if found != len(requested_ids):
        raise ValidationError('Invalid marketplace IDs', code='INVALID_REFERENCE')

    linked = {link.marketplace_id for link in brand.marketplace_links}
    for marketplace_id in sorted(requested_ids - linked):
        brand.marketplace_links.append(BrandMarketplace(marketplace_id=marketplace_id, status='active'))
    record_activity(db, entity_type='brand', entity_id=brand.id, action='marketplaces_added', user_id=admin.id)
    db.commit()
    return {'success': True}


@router.delete('/brands/{brand_id}/marketplaces')
def remove_brand_marketplaces(
    brand_id: int,
    data: MarketplaceIdsRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    removed_ids = set(data.marketplace_ids)
    brand.marketplace_links = [link for link in brand.marketplace_links if link.marketplace_id not in removed_ids]
    record_activity(db, entity_type='brand', entity_id=brand.id, action='marketplaces_removed', user_id=admin.id)
    db.commit()
    return {'success': True}


@router.put('/brands/{brand_id}/marketplaces/{marketplace_id}/status')
def update_brand_marketplace_status(
    brand_id: int,
    marketplace_id: int,
    data: StatusRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    link = db.get(BrandMarketplace, (brand_id, marketplace_id))
    if link is None:
        raise NotFoundError('Marketplace is not linked to this brand')

    link.status = data.status
    record_activity(db, entity_type='brand', entity_id=brand_id, action='marketplace_status',
                    user_id=admin.id, details=f'{marketplace_id}:{data.status}')
    db.commit()
    return {'success': True}


@router.delete('/users/{user_id}')
def delete_user(user_id: int, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    if user_id == admin.id:
        raise ValidationError('Cannot delete your own account', code='SELF_DELETE')

    user = get_or_404(db, User, user_id, 'User')
    record_activity(db, entity_type='user', entity_id=user.id, action='deleted', user_id=admin.id)
    db.delete(user)
    db.commit()
    invalidate_admin_stats()
    logger.info('Admin %s deleted user %s', admin.id, user_id)
    return {'success': True}


@router.post('/leads')
def create_lead(data: LeadRequest, db: Session = Depends(get_db)):
    lead_details = {
        'Name': f'{data.first_name} {data.last_name}',
        'Email': data.email,
        'Company': data.company or '',
        'Phone': data.phone or 'N/A',
    }

    if db.query(User).filter(User.email == data.email).first():
        send_lead_notification(lead_details, existing_user=True)
        return {'success': True, 'message': LEAD_THANK_YOU_MESSAGE, 'existing_user': True}

    db.add(
        User(
            email=data.email,
            hashed_password=None,
            phone=data.phone,
            first_name=data.first_name,
            last_name=data.last_name,
            role='lead',
            email_verified=False,
        )
    )
    db.commit()

    if not send_lead_confirmation(data.email, data.first_name):
        logger.warning('Lead confirmation email was not sent')
    send_lead_notification(lead_details, existing_user=False)
    return {'success': True, 'message': LEAD_THANK_YOU_MESSAGE}


@router.post('/test-email')
def test_email(data: TestEmailRequest, admin: UserContext = Depends(require_admin_api)):
    if not send_test_email(data.to):
        raise AppError('Failed to send test email. Check server logs for details.', code='EMAIL_SEND_FAILED')
    return {'success': True, 'message': 'Test email sent successfully'}


def ping_database() -> None:
    db = database.SessionLocal()
    try:
        db.execute(text('SELECT 1'))
    finally:
        db.close()


@router.get('/health')
async def health():
    try:
        await asyncio.wait_for(run_in_threadpool(ping_database), timeout=config.QUERY_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error('Database health check timed out after %ss', config.QUERY_TIMEOUT_SECONDS)
        return JSONResponse(
            error_body('Database query timed out', 'QUERY_TIMEOUT'),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    except SQLAlchemyError:
        logger.exception('Database health check failed')
        return JSONResponse(
            error_body('Database connection error occurred', 'CONNECTION_ERROR'),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return {'status': 'ok', 'database': 'working'}
