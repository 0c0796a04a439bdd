"""Trademark term model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from brandvigilante.database import Base, utcnow


class TrademarkTerm(Base):
    """A protected term searched for on marketplaces."""
    __tablename__ = "brand_tmterms"
    __table_args__ = (UniqueConstraint("brand_id", "term", name="uq_brand_tmterms_brand_term"),)

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    term = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    brand = relationship("Brand", back_populates="trademark_terms")

    @property
    def brand_name(self) -> str | None:
        return self.brand.name if self.brand else None
