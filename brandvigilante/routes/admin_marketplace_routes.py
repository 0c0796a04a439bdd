from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import require_admin_page
from brandvigilante.auth.sessions import UserContext
from brandvigilante.database import get_db
from brandvigilante.models.marketplace import Marketplace
from brandvigilante.schemas import MarketplaceRecord, check_url, required_text
from brandvigilante.services.activity import record_activity
from brandvigilante.services.crud import get_or_404, invalidate_admin_stats

router = APIRouter(prefix='/admin/marketplaces', tags=['admin'])


class MarketplaceRequest(BaseModel):
    platform_name: str
    country_code: str
    currency_code: str
    base_url: str
    external_id: str | None = None

    @field_validator('platform_name')
    @classmethod
    def validate_platform_name(cls, value: str) -> str:
        return required_text(value, 'Platform name')

    @field_validator('country_code')
    @classmethod
    def validate_country_code(cls, value: str) -> str:
        normalized = value.strip().upper()
        if len(normalized) != 2 or not normalized.isalpha():
            raise ValueError('Country code must be two letters')
        return normalized

    @field_validator('currency_code')
    @classmethod
    def validate_currency_code(cls, value: str) -> str:
        normalized = value.strip().upper()
        if len(normalized) != 3 or not normalized.isalpha():
            raise ValueError('Currency code must be three letters')
        return normalized

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = check_url(value)
        if normalized is None:
            raise ValueError('URL is required')
        return normalized

    @field_validator('external_id')
    @classmethod
    def validate_external_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


@router.get('')
def list_marketplaces(admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    marketplaces = db.query(Marketplace).order_by(
        Marketplace.platform_name.asc(),
        Marketplace.country_code.asc(),
    ).all()
    return {'marketplaces': [MarketplaceRecord.model_validate(item).model_dump(mode='json') for item in marketplaces]}


@router.post('', status_code=status.HTTP_201_CREATED)
def create_marketplace(
    data: MarketplaceRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    marketplace = Marketplace(**data.model_dump())
    db.add(marketplace)
    db.flush()
    record_activity(
        db,
        entity_type='marketplace',
        entity_id=marketplace.id,
        action='created',
        user_id=admin.id,
        details=f'{marketplace.platform_name} {marketplace.country_code}',
    )
    db.commit()
    db.refresh(marketplace)
    invalidate_admin_stats()
    return {'success': True, 'marketplace': MarketplaceRecord.model_validate(marketplace).model_dump(mode='json')}


@router.get('/{marketplace_id}')
def show_marketplace(
    marketplace_id: int,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    marketplace = get_or_404(db, Marketplace, marketplace_id, 'Marketplace')
    return {'marketplace': MarketplaceRecord.model_validate(marketplace).model_dump(mode='json')}


@router.put('/{marketplace_id}')
def update_marketplace(
    marketplace_id: int,
    data: MarketplaceRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    marketplace = get_or_404(db, Marketplace, marketplace_id, 'Marketplace')
    for field, value in data.model_dump().items():
        setattr(marketplace, field, value)
    record_activity(db, entity_type='marketplace', entity_id=marketplace.id, action='updated', user_id=admin.id)
    db.commit()
    db.refresh(marketplace)
    return {'success': True, 'marketplace': MarketplaceRecord.model_validate(marketplace).model_dump(mode='json')}


@router.delete('/{marketplace_id}')
def delete_marketplace(
    marketplace_id: int,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    marketplace = get_or_404(db, Marketplace, marketplace_id, 'Marketplace')
    record_activity(db, entity_type='marketplace', entity_id=marketplace.id, action='deleted', user_id=admin.id)
    db.delete(marketplace)
    db.commit()
    invalidate_admin_stats()
    return {'success': True}
