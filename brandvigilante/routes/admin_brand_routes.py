import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from brandvigilante.auth.dependencies import require_admin_page
from brandvigilante.auth.sessions import UserContext
from brandvigilante.core.cache import cache
from brandvigilante.core.errors import ConflictError, NotFoundError
from brandvigilante.database import get_db
from brandvigilante.models.brand import BRAND_STATUSES, Brand, BrandMarketplace
from brandvigilante.models.marketplace import Marketplace
from brandvigilante.models.trademark_term import TrademarkTerm
from brandvigilante.models.user import User
from brandvigilante.schemas import (
    ActivityRecord,
    BrandMarketplaceRecord,
    BrandRecord,
    MarketplaceRecord,
    TermRecord,
    UserRecord,
    check_url,
    required_text,
)
from brandvigilante.services.activity import list_activity, record_activity
from brandvigilante.services.crud import (
    ADMIN_STATS_CACHE_KEY,
    commit_or_conflict,
    get_or_404,
    invalidate_admin_stats,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/admin', tags=['admin'])

ADMIN_STATS_TTL_SECONDS = 60
DUPLICATE_TERM_MESSAGE = 'This term already exists for the brand'


class BrandRequest(BaseModel):
    name: str
    display_name: str
    url: str | None = None
    description: str | None = None
    status: str = 'active'

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return required_text(value, 'Brand name')

    @field_validator('display_name')
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        return required_text(value, 'Display name')

    @field_validator('url')
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        return check_url(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in BRAND_STATUSES:
            raise ValueError('Status must be active or inactive')
        return normalized


class TermRequest(BaseModel):
    term: str

    @field_validator('term')
    @classmethod
    def validate_term(cls, value: str) -> str:
        return required_text(value, 'Term')


class NewTermRequest(TermRequest):
    brand_id: int


class BrandSummary(BrandRecord):
    term_count: int = 0


def admin_stats(db: Session) -> dict[str, int]:
    stats = cache.get(ADMIN_STATS_CACHE_KEY)
    if stats is None:
        stats = {
            'brands': db.query(func.count(Brand.id)).filter(Brand.status == 'active').scalar(),
            'users': db.query(func.count(User.id)).scalar(),
            'terms': db.query(func.count(TrademarkTerm.id)).scalar(),
            'marketplaces': db.query(func.count(Marketplace.id)).scalar(),
        }
        cache.set(ADMIN_STATS_CACHE_KEY, stats, ttl=ADMIN_STATS_TTL_SECONDS)
    return stats


def add_term(db: Session, brand: Brand, term: str, admin: UserContext) -> TrademarkTerm:
    if db.query(TrademarkTerm).filter(TrademarkTerm.brand_id == brand.id, TrademarkTerm.term == term).first():
        raise_duplicate_term()

    new_term = TrademarkTerm(brand_id=brand.id, term=term)
    db.add(new_term)
    db.flush()
    record_activity(db, entity_type='term', entity_id=new_term.id, action='created', user_id=admin.id, details=term)
    commit_or_conflict(db, DUPLICATE_TERM_MESSAGE)
    db.refresh(new_term)
    invalidate_admin_stats()
    return new_term


def rename_term(db: Session, term: TrademarkTerm, new_value: str, admin: UserContext) -> TrademarkTerm:
    duplicate = db.query(TrademarkTerm).filter(
        TrademarkTerm.brand_id == term.brand_id,
        TrademarkTerm.term == new_value,
        TrademarkTerm.id != term.id,
    ).first()
    if duplicate:
        raise_duplicate_term()

    term.term = new_value
    record_activity(db, entity_type='term', entity_id=term.id, action='updated', user_id=admin.id, details=new_value)
    commit_or_conflict(db, DUPLICATE_TERM_MESSAGE)
    db.refresh(term)
    return term


def raise_duplicate_term():
    raise ConflictError(DUPLICATE_TERM_MESSAGE, code='DUPLICATE_TERM')


@router.get('')
def admin_dashboard(admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    return {'stats': admin_stats(db)}


@router.get('/activity')
def recent_activity(
    entity_type: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    entries = list_activity(db, entity_type=entity_type, entity_id=entity_id, limit=limit)
    return {'activity': [ActivityRecord.model_validate(entry).model_dump(mode='json') for entry in entries]}


@router.get('/brands')
def list_brands(admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    rows = db.query(Brand, func.count(TrademarkTerm.id)).outerjoin(
        TrademarkTerm, TrademarkTerm.brand_id == Brand.id,
    ).group_by(Brand.id).order_by(Brand.name.asc()).all()

    return {
        'brands': [
            BrandSummary.model_validate(brand).model_copy(update={'term_count': term_count}).model_dump(mode='json')
            for brand, term_count in rows
        ]
    }


@router.post('/brands', status_code=status.HTTP_201_CREATED)
def create_brand(data: BrandRequest, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    brand = Brand(**data.model_dump())
    db.add(brand)
    db.flush()
    record_activity(db, entity_type='brand', entity_id=brand.id, action='created', user_id=admin.id, details=brand.name)
    db.commit()
    db.refresh(brand)
    invalidate_admin_stats()

    logger.info('Admin %s created brand %s', admin.id, brand.id)
    return {
        'success': True,
        'message': 'Brand created successfully!',
        'brand': BrandRecord.model_validate(brand).model_dump(mode='json'),
    }


@router.get('/brands/{brand_id}')
def show_brand(brand_id: int, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    return {
        'brand': BrandRecord.model_validate(brand).model_dump(mode='json'),
        'terms': [TermRecord.model_validate(term).model_dump(mode='json') for term in brand.trademark_terms],
        'users': [UserRecord.model_validate(user).model_dump(mode='json') for user in brand.users],
    }


@router.put('/brands/{brand_id}')
def update_brand(
    brand_id: int,
    data: BrandRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    for field, value in data.model_dump().items():
        setattr(brand, field, value)
    record_activity(db, entity_type='brand', entity_id=brand.id, action='updated', user_id=admin.id, details=brand.name)
    db.commit()
    db.refresh(brand)
    invalidate_admin_stats()
    return {'success': True, 'brand': BrandRecord.model_validate(brand).model_dump(mode='json')}


@router.delete('/brands/{brand_id}')
def delete_brand(brand_id: int, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    record_activity(db, entity_type='brand', entity_id=brand.id, action='deleted', user_id=admin.id, details=brand.name)
    brand.users = []
    db.delete(brand)
    db.commit()
    invalidate_admin_stats()
    return {'success': True}


@router.get('/brands/{brand_id}/manage')
def manage_brand(brand_id: int, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    brand = db.query(Brand).options(
        selectinload(Brand.users),
        selectinload(Brand.trademark_terms),
        selectinload(Brand.marketplace_links).selectinload(BrandMarketplace.marketplace),
    ).filter(Brand.id == brand_id).first()
    if brand is None:
        raise NotFoundError('Brand not found')

    assigned_ids = {user.id for user in brand.users}
    available_users = [
        user for user in db.query(User).order_by(User.email.asc()).all() if user.id not in assigned_ids
    ]
    marketplaces = db.query(Marketplace).order_by(Marketplace.platform_name.asc(), Marketplace.country_code.asc()).all()

    return {
        'brand': BrandRecord.model_validate(brand).model_dump(mode='json'),
        'terms': [TermRecord.model_validate(term).model_dump(mode='json') for term in brand.trademark_terms],
        'users': [UserRecord.model_validate(user).model_dump(mode='json') for user in brand.users],
        'available_users': [UserRecord.model_validate(user).model_dump(mode='json') for user in available_users],
        'brand_marketplaces': [
            BrandMarketplaceRecord.model_validate(link).model_dump(mode='json') for link in brand.marketplace_links
        ],
        'marketplaces': [MarketplaceRecord.model_validate(item).model_dump(mode='json') for item in marketplaces],
    }


@router.post('/brands/{brand_id}/terms', status_code=status.HTTP_201_CREATED)
def create_brand_term(
    brand_id: int,
    data: TermRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    brand = get_or_404(db, Brand, brand_id, 'Brand')
    term = add_term(db, brand, data.term, admin)
    return {'success': True, 'term': TermRecord.model_validate(term).model_dump(mode='json')}


@router.put('/brands/{brand_id}/terms/{term_id}')
def update_brand_term(
    brand_id: int,
    term_id: int,
    data: TermRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    term = get_or_404(db, TrademarkTerm, term_id, 'Term')
    if term.brand_id != brand_id:
        raise NotFoundError('Term not found')
    term = rename_term(db, term, data.term, admin)
    return {'success': True, 'term': TermRecord.model_validate(term).model_dump(mode='json')}


@router.get('/terms')
def list_terms(
    brand_id: int | None = Query(default=None),
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    query = db.query(TrademarkTerm).options(selectinload(TrademarkTerm.brand))
    if brand_id is not None:
        query = query.filter(TrademarkTerm.brand_id == brand_id)
    terms = query.order_by(TrademarkTerm.term.asc()).all()
    brands = db.query(Brand).order_by(Brand.name.asc()).all()
    return {
        'terms': [TermRecord.model_validate(term).model_dump(mode='json') for term in terms],
        'brands': [BrandRecord.model_validate(brand).model_dump(mode='json') for brand in brands],
    }


@router.post('/terms', status_code=status.HTTP_201_CREATED)
def create_term(data: NewTermRequest, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    brand = get_or_404(db, Brand, data.brand_id, 'Brand')
    term = add_term(db, brand, data.term, admin)
    return {'success': True, 'term': TermRecord.model_validate(term).model_dump(mode='json')}


@router.put('/terms/{term_id}')
def update_term(
    term_id: int,
    data: TermRequest,
    admin: UserContext = Depends(require_admin_page),
    db: Session = Depends(get_db),
):
    term = rename_term(db, get_or_404(db, TrademarkTerm, term_id, 'Term'), data.term, admin)
    return {'success': True, 'term': TermRecord.model_validate(term).model_dump(mode='json')}


@router.delete('/terms/{term_id}')
def delete_term(term_id: int, admin: UserContext = Depends(require_admin_page), db: Session = Depends(get_db)):
    term = get_or_404(db, TrademarkTerm, term_id, 'Term')
    record_activity(db, entity_type='term', entity_id=term.id, action='deleted', user_id=admin.id, details=term.term)
    db.delete(term)
    db.commit()
    invalidate_admin_stats()
    return {'success': True}
