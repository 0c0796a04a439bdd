from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import or_
from sqlalchemy.orm import Session

from brandvigilante.auth.dependencies import require_admin_api
from brandvigilante.auth.sessions import UserContext
from brandvigilante.core.errors import ConflictError
from brandvigilante.database import get_db
from brandvigilante.models.product import Product
from brandvigilante.models.listing import Listing
from brandvigilante.models.seller import Seller, SellerListing
from brandvigilante.schemas import (
    ListingRecord,
    ProductRecord,
    SellerListingRecord,
    SellerRecord,
    check_url,
    page_meta,
    required_text,
)
from brandvigilante.services.activity import record_activity
from brandvigilante.services.crud import commit_or_conflict, get_or_404
from brandvigilante.services.listings import (
    create_listing,
    delete_listing,
    get_listing,
    list_listings,
    normalize_price,
    update_listing,
)

router = APIRouter(prefix='/api', tags=['catalog'])

DUPLICATE_SELLER_MESSAGE = 'A seller with this external id already exists'
SELLER_IN_USE_MESSAGE = 'This seller still has listings'


class ListingRequest(BaseModel):
    product_id: int
    marketplace_id: int
    url: str | None = None
    external_id: str | None = None
    seller_id: int | None = None
    price: Decimal | None = None
    currency: str | None = None
    trademark_term_ids: list[int] | None = None

    @field_validator('url')
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        return check_url(value)

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: Decimal | None) -> Decimal | None:
        if value is not None and value < 0:
            raise ValueError('Price cannot be negative')
        return normalize_price(value)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().upper()
        if len(normalized) != 3:
            raise ValueError('Currency must be a three-letter code')
        return normalized

    def listing_values(self) -> dict:
        return self.model_dump(exclude={'trademark_term_ids'})


class SellerRequest(BaseModel):
    external_seller_id: str
    seller_name: str
    seller_url: str | None = None

    @field_validator('external_seller_id')
    @classmethod
    def validate_external_seller_id(cls, value: str) -> str:
        return required_text(value, 'External seller id')

    @field_validator('seller_name')
    @classmethod
    def validate_seller_name(cls, value: str) -> str:
        return required_text(value, 'Seller name')

    @field_validator('seller_url')
    @classmethod
    def validate_seller_url(cls, value: str | None) -> str | None:
        return check_url(value)


class SellerListingRequest(BaseModel):
    listing_id: int
    is_buybox_winner: bool | None = None


class ProductRequest(BaseModel):
    title: str | None = None
    upc: str | None = None
    ean: str | None = None

    @field_validator('title', 'upc', 'ean')
    @classmethod
    def strip_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


@router.get('/listings')
def api_list_listings(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    marketplace_id: int | None = Query(default=None),
    product_id: int | None = Query(default=None),
    admin: UserContext = Depends(require_admin_api),
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


@router.get('/listings/{listing_id}', response_model=ListingRecord)
def api_get_listing(listing_id: int, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    return get_listing(db, listing_id)


@router.post('/listings', response_model=ListingRecord, status_code=status.HTTP_201_CREATED)
def api_create_listing(
    data: ListingRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    return create_listing(db, data.listing_values(), data.trademark_term_ids or [], actor_id=admin.id)


@router.put('/listings/{listing_id}', response_model=ListingRecord)
def api_update_listing(
    listing_id: int,
    data: ListingRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    return update_listing(db, listing_id, data.listing_values(), data.trademark_term_ids, actor_id=admin.id)


@router.delete('/listings/{listing_id}')
def api_delete_listing(listing_id: int, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    delete_listing(db, listing_id, actor_id=admin.id)
    return {'success': True}


@router.get('/sellers', response_model=list[SellerRecord])
def list_sellers(
    search: str | None = Query(default=None),
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    query = db.query(Seller)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(Seller.seller_name.ilike(pattern), Seller.external_seller_id.ilike(pattern)))
    return query.order_by(Seller.seller_name.asc()).all()


@router.get('/sellers/{seller_id}', response_model=SellerRecord)
def get_seller(seller_id: int, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    return get_or_404(db, Seller, seller_id, 'Seller')


@router.post('/sellers', response_model=SellerRecord, status_code=status.HTTP_201_CREATED)
def create_seller(data: SellerRequest, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    if db.query(Seller).filter(Seller.external_seller_id == data.external_seller_id).first():
        raise ConflictError(DUPLICATE_SELLER_MESSAGE, code='DUPLICATE_SELLER')

    seller = Seller(**data.model_dump())
    db.add(seller)
    db.flush()
    record_activity(db, entity_type='seller', entity_id=seller.id, action='created', user_id=admin.id)
    commit_or_conflict(db, DUPLICATE_SELLER_MESSAGE, code='DUPLICATE_SELLER')
    db.refresh(seller)
    return seller


@router.put('/sellers/{seller_id}', response_model=SellerRecord)
def update_seller(
    seller_id: int,
    data: SellerRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    seller = get_or_404(db, Seller, seller_id, 'Seller')
    for field, value in data.model_dump().items():
        setattr(seller, field, value)
    record_activity(db, entity_type='seller', entity_id=seller.id, action='updated', user_id=admin.id)
    commit_or_conflict(db, DUPLICATE_SELLER_MESSAGE, code='DUPLICATE_SELLER')
    db.refresh(seller)
    return seller


@router.delete('/sellers/{seller_id}')
def delete_seller(seller_id: int, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    seller = get_or_404(db, Seller, seller_id, 'Seller')
    if db.query(Listing.id).filter(Listing.seller_id == seller.id).first() is not None:
        raise ConflictError(SELLER_IN_USE_MESSAGE, code='SELLER_IN_USE')

    db.query(SellerListing).filter(SellerListing.seller_id == seller.id).delete(synchronize_session=False)
    record_activity(db, entity_type='seller', entity_id=seller.id, action='deleted', user_id=admin.id)
    db.delete(seller)
    commit_or_conflict(db, SELLER_IN_USE_MESSAGE, code='SELLER_IN_USE')
    return {'success': True}


@router.get('/sellers/{seller_id}/listings', response_model=list[SellerListingRecord])
def list_seller_listings(seller_id: int, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    get_or_404(db, Seller, seller_id, 'Seller')
    return db.query(SellerListing).filter(SellerListing.seller_id == seller_id).order_by(SellerListing.id.asc()).all()


@router.post(
    '/sellers/{seller_id}/listings',
    response_model=SellerListingRecord,
    status_code=status.HTTP_201_CREATED,
)
def add_seller_listing(
    seller_id: int,
    data: SellerListingRequest,
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    """Record that a seller offers a listing. Only one offer per listing holds the buy box."""
    get_or_404(db, Seller, seller_id, 'Seller')
    get_or_404(db, Listing, data.listing_id, 'Listing')

    if data.is_buybox_winner:
        db.query(SellerListing).filter(
            SellerListing.listing_id == data.listing_id,
            SellerListing.is_buybox_winner.is_(True),
        ).update({SellerListing.is_buybox_winner: False}, synchronize_session=False)

    offer = SellerListing(seller_id=seller_id, listing_id=data.listing_id, is_buybox_winner=data.is_buybox_winner)
    db.add(offer)
    db.commit()
    db.refresh(offer)
    return offer


@router.get('/products', response_model=list[ProductRecord])
def list_products(
    search: str | None = Query(default=None),
    admin: UserContext = Depends(require_admin_api),
    db: Session = Depends(get_db),
):
    query = db.query(Product)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(Product.title.ilike(pattern), Product.upc.ilike(pattern), Product.ean.ilike(pattern)))
    return query.order_by(Product.id.desc()).all()


@router.post('/products', response_model=ProductRecord, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductRequest, admin: UserContext = Depends(require_admin_api), db: Session = Depends(get_db)):
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product
