"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from brandvigilante.database import Base, utcnow

USER_ROLES = ('user', 'admin', 'lead')


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)  # empty for OAuth-only and lead accounts
    phone = Column(String(32), nullable=True)
    role = Column(String(16), nullable=False, default='user')  # user/admin/lead
    first_name = Column(String(50), nullable=False, default='')
    last_name = Column(String(50), nullable=False, default='')
    email_verified = Column(Boolean, nullable=False, default=False)
    google_user_id = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'
