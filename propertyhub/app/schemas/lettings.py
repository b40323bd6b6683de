"""Compact read schemas for the entities a payment can point at."""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PropertySummary(BaseModel):
    id: int
    name: str
    city: Optional[str] = None
    postcode: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TenancySummary(BaseModel):
    id: int
    property_id: int
    tenant_id: int
    start_date: date
    end_date: Optional[date] = None
    monthly_rent: Optional[Decimal] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class BookingSummary(BaseModel):
    id: int
    property_id: int
    check_in: date
    check_out: date
    status: str

    model_config = ConfigDict(from_attributes=True)


class MaintenanceRequestSummary(BaseModel):
    id: int
    property_id: int
    title: str
    status: str

    model_config = ConfigDict(from_attributes=True)
