"""Payment dashboard and summary schemas."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from propertyhub.app.schemas.lettings import PropertySummary
from propertyhub.app.schemas.payment import PaymentRead
from propertyhub.app.schemas.user import UserSummary


class BreakdownEntry(BaseModel):
    count: int
    amount: str


class MonthlyTrendPoint(BaseModel):
    month: str
    total_payments: int
    total_amount: str
    completed_payments: int
    completed_amount: str


class TopProperty(BaseModel):
    property_id: int
    property_name: str
    total_payments: int
    total_amount: str


class RecentPayment(PaymentRead):
    payer: Optional[UserSummary] = None
    property: Optional[PropertySummary] = None

    model_config = ConfigDict(from_attributes=True)


class DashboardStats(BaseModel):
    as_of: str
    total_payments: int
    total_amount: str
    pending_payments: int
    pending_amount: str
    completed_payments: int
    completed_amount: str
    failed_payments: int
    failed_amount: str
    refunded_payments: int
    refunded_amount: str
    average_payment_amount: str
    payments_by_type: Dict[str, BreakdownEntry]
    payments_by_method: Dict[str, BreakdownEntry]
    payments_by_status: Dict[str, BreakdownEntry]
    monthly_trends: List[MonthlyTrendPoint]
    top_properties: List[TopProperty]
    recent_payments: List[RecentPayment]


class PaymentSummary(BaseModel):
    total_payments: int
    total_completed: str
    total_pending: str
    total_failed: str
    total_rent: str
    total_deposits: str
    average_payment: str
