from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from dataconfirm.core.database import Base
from dataconfirm.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    AGENCY = "agency"
    ADMIN = "admin"


class User(Base):
    """Agency officer or administrator"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)

    role = Column(SQLEnum(UserRole), default=UserRole.AGENCY, nullable=False)
    agency = Column(String(255), nullable=True)  # matches an agency key in the catalog
    is_active = Column(Boolean, default=True)

    # Password reset fields
    reset_token_hash = Column(String(255), nullable=True)
    reset_token_expires = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    submissions = relationship("Submission", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User {self.email}>"
