"""Activity log model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from brandvigilante.database import Base, utcnow

ENTITY_TYPES = ('brand', 'term', 'user', 'marketplace', 'listing', 'seller')


class ActivityLog(Base):
    """Audit trail entry for an administrative change."""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(64), nullable=False)
    details = Column(Text, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
