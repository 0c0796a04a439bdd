"""Listing model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Table
from sqlalchemy.orm import relationship

from brandvigilante.database import Base, utcnow

listing_brand_tmterms = Table(
    "listing_brand_tmterms",
    Base.metadata,
    Column("listing_id", Integer, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True),
    Column("brand_tmterm_id", Integer, ForeignKey("brand_tmterms.id", ondelete="CASCADE"), primary_key=True),
)


class Listing(Base):
    """A product offered on a marketplace, matched against trademark terms."""
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(2048), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    marketplace_id = Column(Integer, ForeignKey("marketplaces.id"), nullable=False, index=True)
    external_id = Column(String(255), nullable=True)
    seller_id = Column(Integer, ForeignKey("sellers.id"), nullable=True, index=True)
    price = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    product = relationship("Product")
    marketplace = relationship("Marketplace")
    seller = relationship("Seller")
    trademark_terms = relationship("TrademarkTerm", secondary=listing_brand_tmterms)
