"""Response records shared by the route modules, plus common field rules."""

import re
from datetime import datetime
from decimal import Decimal
from urllib.parse import urlparse

from pydantic import BaseModel

PASSWORD_MIN_LENGTH = 8


def normalize_email(value: str) -> str:
    return value.strip().lower()


def digits_only(value: str | None) -> str | None:
    if value is None:
        return None
    digits = re.sub(r'\D', '', value)
    return digits or None


def password_rule_errors(password: str, *, require_special: bool = False) -> list[str]:
    errors: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f'Password must be at least {PASSWORD_MIN_LENGTH} characters')
    if not re.search(r'[A-Z]', password):
        errors.append('Password must contain at least one uppercase letter')
    if not re.search(r'[a-z]', password):
        errors.append('Password must contain at least one lowercase letter')
    if not re.search(r'[0-9]', password):
        errors.append('Password must contain at least one number')
    if require_special and not re.search(r'[^A-Za-z0-9]', password):
        errors.append('Password must contain at least one special character')
    return errors


def check_password(password: str, *, require_special: bool = False) -> str:
    errors = password_rule_errors(password, require_special=require_special)
    if errors:
        raise ValueError(errors[0])
    return password


def check_url(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    parsed = urlparse(normalized)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError('Please enter a valid URL')
    return normalized


def required_text(value: str, label: str, max_length: int = 255) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required')
    if len(normalized) > max_length:
        raise ValueError(f'{label} cannot exceed {max_length} characters')
    return normalized


class UserRecord(BaseModel):
    id: int
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email_verified: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class TermRecord(BaseModel):
    id: int
    brand_id: int
    term: str
    brand_name: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class MarketplaceRecord(BaseModel):
    id: int
    currency_code: str
    platform_name: str
    country_code: str
    external_id: str | None = None
    base_url: str

    class Config:
        from_attributes = True


class BrandRecord(BaseModel):
    id: int
    name: str
    display_name: str
    url: str | None = None
    description: str | None = None
    status: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class BrandMarketplaceRecord(BaseModel):
    marketplace_id: int
    status: str
    marketplace: MarketplaceRecord

    class Config:
        from_attributes = True


class ProductRecord(BaseModel):
    id: int
    title: str | None = None
    upc: str | None = None
    ean: str | None = None

    class Config:
        from_attributes = True


class SellerRecord(BaseModel):
    id: int
    external_seller_id: str
    seller_name: str
    seller_url: str | None = None

    class Config:
        from_attributes = True


class SellerListingRecord(BaseModel):
    id: int
    seller_id: int
    listing_id: int
    is_buybox_winner: bool | None = None

    class Config:
        from_attributes = True


class ListingRecord(BaseModel):
    id: int
    url: str | None = None
    product_id: int
    marketplace_id: int
    external_id: str | None = None
    seller_id: int | None = None
    price: Decimal | None = None
    currency: str | None = None
    product: ProductRecord | None = None
    marketplace: MarketplaceRecord | None = None
    seller: SellerRecord | None = None
    trademark_terms: list[TermRecord] = []
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ActivityRecord(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    action: str
    details: str | None = None
    user_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class Page(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


def page_meta(page: int, per_page: int, total: int) -> Page:
    total_pages = max(1, -(-total // per_page))
    return Page(page=page, per_page=per_page, total=total, total_pages=total_pages)
