from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from .base import Base, TimestampMixin
from school_api.schemas.enums import UserRole


class User(TimestampMixin, Base):
    """
    Every account: administrators, principals, teachers and parents.
    Super admins have no school; everyone else belongs to exactly one.
    """
    __tablename__ = "users"

    __tenant_column__ = "school_id"
    __class_column__ = None
    __student_column__ = None

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String(100), nullable=False)
    surname = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)
    sex = Column(String(10), nullable=True)
    birthday = Column(Date, nullable=True)
    image_url = Column(String(500), nullable=True)

    role = Column(String(32), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=True, index=True)

    # Teacher profile
    qualifications = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String, unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<RevokedToken(id={self.id}, jti={self.jti}, revoked_at={self.revoked_at})>"
