"""Product model definitions."""

from sqlalchemy import Column, DateTime, Integer, String

from brandvigilante.database import Base, utcnow


class Product(Base):
    """A catalogue product identified by UPC/EAN."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(512), nullable=True)
    upc = Column(String(32), nullable=True, index=True)
    ean = Column(String(32), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)
