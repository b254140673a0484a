from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from datetime import datetime
import enum

from letterdesk.core.database import Base
from letterdesk.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    STUDENT = "student"
    LECTURER = "lecturer"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"


# Roles allowed to approve/reject letters and manage letter numbers
SUPERVISORY_ROLES = frozenset({UserRole.SUPERVISOR, UserRole.ADMIN})


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)

    role = Column(SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Campus identifiers
    nim = Column(String(20), unique=True, nullable=True)  # student number
    nip = Column(String(20), unique=True, nullable=True)  # staff number
    phone = Column(String(20), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_supervisory(self) -> bool:
        return self.role in SUPERVISORY_ROLES

    def __repr__(self):
        return f"<User {self.email}>"
