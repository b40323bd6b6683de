"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from propertyhub.app.models.payment import (
    PaymentFrequency,
    PaymentMethod,
    PaymentPriority,
    PaymentStatus,
    PaymentType,
    RefundStatus,
)
from propertyhub.app.schemas.lettings import (
    BookingSummary,
    MaintenanceRequestSummary,
    PropertySummary,
    TenancySummary,
)
from propertyhub.app.schemas.user import UserSummary


class BillingAddress(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class PaymentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    type: PaymentType
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    fee_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_method: PaymentMethod
    frequency: PaymentFrequency = PaymentFrequency.ONE_TIME
    priority: PaymentPriority = PaymentPriority.MEDIUM

    payer_id: Optional[int] = None
    recipient_id: Optional[int] = None
    property_id: Optional[int] = None
    booking_id: Optional[int] = None
    tenancy_id: Optional[int] = None
    maintenance_request_id: Optional[int] = None

    due_date: Optional[datetime] = None
    is_recurring: bool = False
    next_payment_date: Optional[datetime] = None
    recurring_end_date: Optional[datetime] = None
    remaining_payments: Optional[int] = Field(default=None, ge=1)

    billing_name: Optional[str] = None
    billing_email: Optional[EmailStr] = None
    billing_phone: Optional[str] = None
    billing_address: Optional[BillingAddress] = None

    payment_instructions: Optional[str] = None
    customer_notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    custom_fields: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    is_test: bool = False
    requires_review: bool = False

    @model_validator(mode="after")
    def _fee_within_amount(self):
        if self.fee_amount > self.amount:
            raise ValueError("fee_amount cannot exceed amount")
        return self


class PaymentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    fee_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    priority: Optional[PaymentPriority] = None
    due_date: Optional[datetime] = None
    payment_instructions: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    requires_review: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None
    custom_fields: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None

    # Omit a field to leave it unchanged; these columns cannot be cleared
    @field_validator("title", "amount", "fee_amount", "priority", "requires_review")
    @classmethod
    def reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class ProcessPaymentRequest(BaseModel):
    payment_method_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    confirm_payment: bool = False


class RefundPaymentRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    reason: Optional[str] = None


class PaymentIntentCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="GBP", min_length=3, max_length=3)
    payment_method_types: Optional[List[str]] = None
    customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PaymentIntentRead(BaseModel):
    id: str
    client_secret: Optional[str] = None
    status: str
    amount: int
    currency: str


class PaymentFilters(BaseModel):
    payer_id: Optional[int] = None
    recipient_id: Optional[int] = None
    property_id: Optional[int] = None
    booking_id: Optional[int] = None
    tenancy_id: Optional[int] = None
    maintenance_request_id: Optional[int] = None
    type: Optional[PaymentType] = None
    status: Optional[PaymentStatus] = None
    payment_method: Optional[PaymentMethod] = None
    frequency: Optional[PaymentFrequency] = None
    refund_status: Optional[RefundStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    due_date_start: Optional[datetime] = None
    due_date_end: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    is_recurring: Optional[bool] = None
    is_test: Optional[bool] = None
    is_manual: Optional[bool] = None
    requires_review: Optional[bool] = None
    billing_email: Optional[str] = None
    search: Optional[str] = None
    include_deleted: bool = False


class PaymentRead(BaseModel):
    id: int
    reference: str
    title: str
    description: Optional[str] = None
    type: str
    status: str
    priority: str

    payer_id: Optional[int] = None
    recipient_id: Optional[int] = None
    property_id: Optional[int] = None
    booking_id: Optional[int] = None
    tenancy_id: Optional[int] = None
    maintenance_request_id: Optional[int] = None
    parent_payment_id: Optional[int] = None

    amount: Decimal
    currency: str
    fee_amount: Decimal
    net_amount: Optional[Decimal] = None
    payment_method: str
    frequency: str
    processor: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_charge_id: Optional[str] = None

    due_date: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    captured_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    refund_status: str
    refunded_amount: Decimal
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None

    is_recurring: bool
    next_payment_date: Optional[datetime] = None
    recurring_end_date: Optional[datetime] = None
    remaining_payments: Optional[int] = None

    billing_name: Optional[str] = None
    billing_email: Optional[str] = None
    billing_phone: Optional[str] = None
    billing_address: Optional[Dict[str, Any]] = None
    payment_instructions: Optional[str] = None
    internal_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    failure_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None

    requires_review: bool
    is_test: bool
    is_manual: bool
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("extra_metadata", "metadata")
    )
    custom_fields: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None

    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentLink(BaseModel):
    id: int
    reference: str
    status: str
    due_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentEventRead(BaseModel):
    event: str
    from_status: str
    to_status: str
    actor_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentDetail(PaymentRead):
    payer: Optional[UserSummary] = None
    recipient: Optional[UserSummary] = None
    property: Optional[PropertySummary] = None
    booking: Optional[BookingSummary] = None
    tenancy: Optional[TenancySummary] = None
    maintenance_request: Optional[MaintenanceRequestSummary] = None
    parent_payment: Optional[PaymentLink] = None
    child_payments: List[PaymentLink] = []
    events: List[PaymentEventRead] = []


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class PaymentPage(BaseModel):
    payments: List[PaymentRead]
    pagination: Pagination


class WebhookReceipt(BaseModel):
    event_id: Optional[str] = None
    event_type: str
    handled: bool
    payment_id: Optional[int] = None
