"""Payment model and its enumerations."""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from propertyhub.app.db.base_class import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentType(str, enum.Enum):
    RENT = "rent"
    DEPOSIT = "deposit"
    SECURITY_DEPOSIT = "security_deposit"
    CLEANING_FEE = "cleaning_fee"
    DAMAGE_FEE = "damage_fee"
    LATE_FEE = "late_fee"
    ADMIN_FEE = "admin_fee"
    BOOKING_FEE = "booking_fee"
    MAINTENANCE_FEE = "maintenance_fee"
    UTILITY_BILL = "utility_bill"
    SERVICE_CHARGE = "service_charge"
    GROUND_RENT = "ground_rent"
    INSURANCE = "insurance"
    REFUND = "refund"
    COMPENSATION = "compensation"
    OTHER = "other"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    DIRECT_DEBIT = "direct_debit"
    STANDING_ORDER = "standing_order"
    CASH = "cash"
    CHEQUE = "cheque"
    PAYPAL = "paypal"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"
    BACS = "bacs"
    FASTER_PAYMENTS = "faster_payments"
    CHAPS = "chaps"
    OTHER = "other"


class PaymentFrequency(str, enum.Enum):
    ONE_TIME = "one_time"
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class PaymentPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class RefundStatus(str, enum.Enum):
    NOT_REFUNDED = "not_refunded"
    PARTIAL_REFUND = "partial_refund"
    FULL_REFUND = "full_refund"
    REFUND_PENDING = "refund_pending"
    REFUND_FAILED = "refund_failed"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String(64), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(30), nullable=False, index=True)
    status = Column(String(30), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    priority = Column(String(20), nullable=False, default=PaymentPriority.MEDIUM.value)

    payer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    tenancy_id = Column(Integer, ForeignKey("tenancies.id", ondelete="SET NULL"), nullable=True, index=True)
    maintenance_request_id = Column(
        Integer, ForeignKey("maintenance_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    parent_payment_id = Column(Integer, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    fee_amount = Column(Numeric(12, 2), nullable=False, default=0)
    net_amount = Column(Numeric(12, 2), nullable=True)

    payment_method = Column(String(30), nullable=False)
    frequency = Column(String(20), nullable=False, default=PaymentFrequency.ONE_TIME.value)
    processor = Column(String(50), nullable=True)
    gateway_response = Column(JSON, nullable=True)
    stripe_payment_intent_id = Column(String(255), unique=True, nullable=True)
    stripe_charge_id = Column(String(255), nullable=True)

    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    refund_status = Column(String(30), nullable=False, default=RefundStatus.NOT_REFUNDED.value)
    refunded_amount = Column(Numeric(12, 2), nullable=False, default=0)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    is_recurring = Column(Boolean, nullable=False, default=False)
    next_payment_date = Column(DateTime(timezone=True), nullable=True, index=True)
    recurring_end_date = Column(DateTime(timezone=True), nullable=True)
    remaining_payments = Column(Integer, nullable=True)

    billing_name = Column(String(255), nullable=True)
    billing_email = Column(String(255), nullable=True)
    billing_phone = Column(String(50), nullable=True)
    billing_address = Column(JSON, nullable=True)

    payment_instructions = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    customer_notes = Column(Text, nullable=True)
    failure_reason = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    requires_review = Column(Boolean, nullable=False, default=False)
    is_test = Column(Boolean, nullable=False, default=False)
    is_manual = Column(Boolean, nullable=False, default=False)

    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=True)
    custom_fields = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    payer = relationship("User", foreign_keys=[payer_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    property = relationship("Property")
    booking = relationship("Booking")
    tenancy = relationship("Tenancy")
    maintenance_request = relationship("MaintenanceRequest")
    parent_payment = relationship("Payment", remote_side=[id], back_populates="child_payments")
    child_payments = relationship("Payment", back_populates="parent_payment")
    events = relationship(
        "PaymentEvent", back_populates="payment", cascade="all, delete-orphan", order_by="PaymentEvent.id"
    )
