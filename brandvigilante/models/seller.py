"""Seller model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from brandvigilante.database import Base, utcnow


class Seller(Base):
    """A marketplace seller."""
    __tablename__ = "sellers"

    id = Column(Integer, primary_key=True, index=True)
    external_seller_id = Column(String(255), unique=True, nullable=False)
    seller_name = Column(String(255), nullable=False)
    seller_url = Column(String(2048), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)


class SellerListing(Base):
    """A seller offering a listing; one offer per listing holds the buy box."""
    __tablename__ = "seller_listings"

    id = Column(Integer, primary_key=True)
    seller_id = Column(Integer, ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    is_buybox_winner = Column(Boolean, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)
