"""Server-side session records."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from brandvigilante.database import Base, utcnow


class UserSession(Base):
    """Binds an opaque cookie value to a user until ``expires_at``."""
    __tablename__ = "user_session"

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User")
