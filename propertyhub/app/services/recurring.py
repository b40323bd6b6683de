"""Recurring payment series: date advance and successor generation."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from propertyhub.app.core.settings import get_settings
from propertyhub.app.core.time import ensure_utc, utc_now
from propertyhub.app.models.payment import Payment, PaymentFrequency, PaymentStatus, RefundStatus
from propertyhub.app.services.payments import generate_payment_reference

logger = logging.getLogger(__name__)

FREQUENCY_STEPS = {
    PaymentFrequency.WEEKLY.value: timedelta(days=7),
    PaymentFrequency.FORTNIGHTLY.value: timedelta(days=14),
    PaymentFrequency.MONTHLY.value: relativedelta(months=1),
    PaymentFrequency.QUARTERLY.value: relativedelta(months=3),
    PaymentFrequency.ANNUALLY.value: relativedelta(years=1),
}

# Copied onto each successor; gateway, processing and refund state starts fresh
CLONED_FIELDS = (
    "title",
    "description",
    "type",
    "priority",
    "payer_id",
    "recipient_id",
    "property_id",
    "booking_id",
    "tenancy_id",
    "maintenance_request_id",
    "amount",
    "currency",
    "fee_amount",
    "net_amount",
    "payment_method",
    "frequency",
    "billing_name",
    "billing_email",
    "billing_phone",
    "billing_address",
    "payment_instructions",
    "customer_notes",
    "extra_metadata",
    "custom_fields",
    "tags",
    "is_test",
)


def advance_payment_date(value: datetime, frequency: str | PaymentFrequency) -> datetime:
    key = frequency.value if isinstance(frequency, PaymentFrequency) else frequency
    step = FREQUENCY_STEPS.get(key)
    if step is None:
        return value
    return value + step


def _spawn_successor(payment: Payment, next_date: datetime) -> Payment:
    successor = Payment(**{field: getattr(payment, field) for field in CLONED_FIELDS})
    successor.reference = generate_payment_reference()
    successor.status = PaymentStatus.PENDING.value
    successor.refund_status = RefundStatus.NOT_REFUNDED.value
    successor.refunded_amount = Decimal("0.00")
    successor.parent_payment_id = payment.id
    successor.due_date = next_date
    successor.is_recurring = False
    successor.created_by = payment.created_by
    return successor


def process_recurring_payments(db: Session, now: datetime | None = None) -> List[Payment]:
    """Create the next pending payment for every recurring series that has come due.

    Runs sequentially; one failing series is rolled back and logged without
    stopping the rest of the batch.
    """
    current = ensure_utc(now) or utc_now()
    window_start = current - timedelta(hours=get_settings().recurring_lookback_hours)

    candidates = (
        db.query(Payment)
        .filter(
            Payment.deleted_at.is_(None),
            Payment.is_recurring.is_(True),
            Payment.status == PaymentStatus.COMPLETED.value,
            Payment.next_payment_date >= window_start,
            Payment.next_payment_date <= current,
        )
        .order_by(Payment.next_payment_date.asc(), Payment.id.asc())
        .all()
    )
    candidate_ids = [payment.id for payment in candidates]
    logger.info("Recurring run at %s: %d candidate(s)", current.isoformat(), len(candidate_ids))

    created: List[Payment] = []
    for payment_id in candidate_ids:
        try:
            payment = db.query(Payment).filter(Payment.id == payment_id).one()
            next_date = advance_payment_date(ensure_utc(payment.next_payment_date), payment.frequency)
            successor = _spawn_successor(payment, next_date)
            db.add(successor)

            payment.next_payment_date = next_date
            if payment.remaining_payments is not None:
                payment.remaining_payments = payment.remaining_payments - 1
                if payment.remaining_payments <= 0:
                    payment.is_recurring = False
            end_date = ensure_utc(payment.recurring_end_date)
            if end_date is not None and next_date > end_date:
                payment.is_recurring = False
            if not payment.is_recurring:
                payment.next_payment_date = None

            db.commit()
            db.refresh(successor)
            created.append(successor)
            logger.info("Created recurring payment %s from %s", successor.reference, payment.reference)
        except Exception:
            db.rollback()
            logger.exception("Failed to create recurring payment for payment %s", payment_id)
    return created
