"""Brand model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from brandvigilante.database import Base, utcnow

BRAND_STATUSES = ('active', 'inactive')

brands_user = Table(
    "brands_user",
    Base.metadata,
    Column("brand_id", Integer, ForeignKey("brands.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Brand(Base):
    """A monitored brand."""
    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default='active')
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    trademark_terms = relationship(
        "TrademarkTerm",
        back_populates="brand",
        cascade="all, delete-orphan",
        order_by="TrademarkTerm.term",
    )
    users = relationship("User", secondary=brands_user, order_by="User.email")
    marketplace_links = relationship("BrandMarketplace", back_populates="brand", cascade="all, delete-orphan")


class BrandMarketplace(Base):
    """Marketplace watched for a brand, with its own monitoring status."""
    __tablename__ = "brand_marketplaces"

    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="CASCADE"), primary_key=True)
    marketplace_id = Column(Integer, ForeignKey("marketplaces.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String(16), nullable=False, default='active')

    brand = relationship("Brand", back_populates="marketplace_links")
    marketplace = relationship("Marketplace")
