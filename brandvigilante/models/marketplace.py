"""Marketplace model definitions."""

from sqlalchemy import Column, DateTime, Integer, String

from brandvigilante.database import Base, utcnow


class Marketplace(Base):
    """A sales platform in one country, e.g. Amazon US."""
    __tablename__ = "marketplaces"

    id = Column(Integer, primary_key=True, index=True)
    currency_code = Column(String(3), nullable=False)
    platform_name = Column(String(255), nullable=False)
    country_code = Column(String(2), nullable=False, index=True)
    external_id = Column(String(255), nullable=True, index=True)
    base_url = Column(String(2048), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)
