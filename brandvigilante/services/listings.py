"""Listing queries and writes.

Each write touches the ``listings`` row and its ``listing_brand_tmterms``
links; both happen inside the caller's session and are committed together.
"""

import logging
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from brandvigilante.core.errors import NotFoundError, ValidationError
from brandvigilante.models.listing import Listing
from brandvigilante.models.marketplace import Marketplace
from brandvigilante.models.product import Product
from brandvigilante.models.seller import Seller, SellerListing
from brandvigilante.models.trademark_term import TrademarkTerm
from brandvigilante.services.activity import record_activity

logger = logging.getLogger(__name__)

LISTING_FIELDS = ('url', 'product_id', 'marketplace_id', 'external_id', 'seller_id', 'price', 'currency')


def listing_query(db: Session):
    return db.query(Listing).options(
        selectinload(Listing.product),
        selectinload(Listing.marketplace),
        selectinload(Listing.seller),
        selectinload(Listing.trademark_terms),
    )


def list_listings(
    db: Session,
    *,
    page: int = 1,
    per_page: int = 10,
    search: str | None = None,
    marketplace_id: int | None = None,
    product_id: int | None = None,
) -> tuple[list[Listing], int]:
    query = db.query(Listing)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.join(Product, Product.id == Listing.product_id).filter(
            or_(Product.title.ilike(pattern), Product.upc.ilike(pattern), Product.ean.ilike(pattern))
        )
    if marketplace_id is not None:
        query = query.filter(Listing.marketplace_id == marketplace_id)
    if product_id is not None:
        query = query.filter(Listing.product_id == product_id)

    total = query.count()
    ids = [
        listing_id
        for (listing_id,) in query.with_entities(Listing.id)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    ]
    if not ids:
        return [], total

    listings = listing_query(db).filter(Listing.id.in_(ids)).all()
    listings.sort(key=lambda listing: ids.index(listing.id))
    return listings, total


def get_listing(db: Session, listing_id: int) -> Listing:
    listing = listing_query(db).filter(Listing.id == listing_id).first()
    if listing is None:
        raise NotFoundError('Listing not found')
    return listing


def _check_references(db: Session, values: dict) -> None:
    if 'product_id' in values and db.get(Product, values['product_id']) is None:
        raise ValidationError('Product does not exist', code='INVALID_REFERENCE')
    if 'marketplace_id' in values and db.get(Marketplace, values['marketplace_id']) is None:
        raise ValidationError('Marketplace does not exist', code='INVALID_REFERENCE')
    if values.get('seller_id') is not None and db.get(Seller, values['seller_id']) is None:
        raise ValidationError('Seller does not exist', code='INVALID_REFERENCE')


def _load_terms(db: Session, term_ids: list[int]) -> list[TrademarkTerm]:
    unique_ids = sorted(set(term_ids))
    terms = db.query(TrademarkTerm).filter(TrademarkTerm.id.in_(unique_ids)).all() if unique_ids else []
    if len(terms) != len(unique_ids):
        raise ValidationError('One or more trademark terms do not exist', code='INVALID_REFERENCE')
    return terms


def create_listing(db: Session, values: dict, term_ids: list[int], actor_id: int | None = None) -> Listing:
    _check_references(db, values)
    terms = _load_terms(db, term_ids)

    listing = Listing(**{field: values.get(field) for field in LISTING_FIELDS})
    listing.trademark_terms = terms
    try:
        db.add(listing)
        db.flush()
        record_activity(db, entity_type='listing', entity_id=listing.id, action='created', user_id=actor_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to create listing')
        raise
    return get_listing(db, listing.id)


def update_listing(
    db: Session,
    listing_id: int,
    values: dict,
    term_ids: list[int] | None,
    actor_id: int | None = None,
) -> Listing:
    listing = get_listing(db, listing_id)
    _check_references(db, values)
    terms = _load_terms(db, term_ids) if term_ids is not None else None

    for field, value in values.items():
        if field in LISTING_FIELDS:
            setattr(listing, field, value)
    if terms is not None:
        listing.trademark_terms = terms
    record_activity(db, entity_type='listing', entity_id=listing.id, action='updated', user_id=actor_id)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to update listing %s', listing_id)
        raise
    return get_listing(db, listing_id)


def delete_listing(db: Session, listing_id: int, actor_id: int | None = None) -> None:
    listing = get_listing(db, listing_id)
    try:
        listing.trademark_terms = []
        db.query(SellerListing).filter(SellerListing.listing_id == listing_id).delete(synchronize_session=False)
        db.delete(listing)
        record_activity(db, entity_type='listing', entity_id=listing_id, action='deleted', user_id=actor_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to delete listing %s', listing_id)
        raise


def normalize_price(value: Decimal | float | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal('0.01'))
