"""Tenancy model linking a tenant to a property for a rent period."""

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String

from propertyhub.app.db.base_class import Base


class Tenancy(Base):
    __tablename__ = "tenancies"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    monthly_rent = Column(Numeric(12, 2), nullable=True)
    status = Column(String(30), nullable=False, default="active")
