"""User model: landlords, agents, admins and tenants share one table."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from propertyhub.app.db.base_class import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    AGENT = "agent"
    LANDLORD = "landlord"
    TENANT = "tenant"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.TENANT.value)
    is_active = Column(Boolean, nullable=False, default=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    properties = relationship("Property", back_populates="landlord", foreign_keys="Property.landlord_id")
