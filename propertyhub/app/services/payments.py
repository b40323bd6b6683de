"""Payment lifecycle service.

Creation, lookup, listing, updates, soft deletion, processing, refunds and
gateway webhook reconciliation. Status changes go through
``payment_lifecycle.apply_event``; gateway calls go through whatever object the
router injects (``StripeGateway`` in production).
"""

import logging
import secrets
import string
import time
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from propertyhub.app.core.settings import get_settings
from propertyhub.app.core.time import utc_now
from propertyhub.app.models.payment import Payment, PaymentMethod, PaymentStatus, RefundStatus
from propertyhub.app.models.payment_event import PaymentEvent
from propertyhub.app.schemas.payment import (
    PaymentCreate,
    PaymentFilters,
    PaymentIntentCreate,
    PaymentUpdate,
    ProcessPaymentRequest,
    RefundPaymentRequest,
)
from propertyhub.app.services.payment_gateway import (
    PaymentGatewayError,
    from_minor_units,
    to_minor_units,
)
from propertyhub.app.services.payment_lifecycle import (
    IMMUTABLE_STATUSES,
    InvalidTransition,
    PaymentEventType,
    apply_event,
    can_apply,
    is_processable,
    is_refundable,
)

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits

SORTABLE_FIELDS = {
    "created_at": Payment.created_at,
    "updated_at": Payment.updated_at,
    "due_date": Payment.due_date,
    "amount": Payment.amount,
    "status": Payment.status,
    "type": Payment.type,
    "reference": Payment.reference,
    "title": Payment.title,
    "id": Payment.id,
}

GATEWAY_EVENT_MAP = {
    "payment_intent.processing": PaymentEventType.GATEWAY_PROCESSING,
    "payment_intent.succeeded": PaymentEventType.GATEWAY_SUCCEEDED,
    "payment_intent.payment_failed": PaymentEventType.GATEWAY_FAILED,
    "payment_intent.canceled": PaymentEventType.GATEWAY_CANCELLED,
}


def generate_payment_reference() -> str:
    # Advisory uniqueness only; the unique index on payments.reference is the backstop
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
    return f"PAY-{int(time.time() * 1000)}-{suffix}"


def _not_found(payment_id: int | str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Payment with ID {payment_id} not found")


def _gateway_ready(gateway) -> bool:
    return gateway is not None and gateway.is_configured


def _load_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise _not_found(payment_id)
    return payment


def create_payment(db: Session, payload: PaymentCreate, actor_id: int, gateway=None) -> Payment:
    settings = get_settings()
    data = payload.model_dump(exclude={"metadata", "billing_address", "currency"})
    currency = (payload.currency or settings.default_currency).upper()

    payment = Payment(
        **{key: (value.value if hasattr(value, "value") else value) for key, value in data.items()},
        reference=generate_payment_reference(),
        status=PaymentStatus.PENDING.value,
        currency=currency,
        net_amount=payload.amount - payload.fee_amount,
        billing_address=payload.billing_address.model_dump(exclude_none=True) if payload.billing_address else None,
        extra_metadata=payload.metadata,
        refunded_amount=Decimal("0.00"),
        created_by=actor_id,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s created (%s %s %s)", payment.reference, payment.amount, currency, payment.payment_method)

    if payload.payment_method == PaymentMethod.CARD and _gateway_ready(gateway):
        try:
            intent = gateway.create_intent(
                amount_minor=to_minor_units(payment.amount),
                currency=currency,
                description=f"{payment.title} - {payment.reference}",
                metadata={"payment_id": payment.id, "reference": payment.reference, **(payload.metadata or {})},
                idempotency_key=f"{payment.reference}-intent",
            )
        except PaymentGatewayError as exc:
            # Row stays pending and can be processed manually later
            logger.warning("Failed to create payment intent for %s: %s", payment.reference, exc)
        else:
            payment.stripe_payment_intent_id = intent["id"]
            payment.processor = "stripe"
            apply_event(payment, PaymentEventType.INTENT_CREATED, actor_id=actor_id)
            db.commit()
            db.refresh(payment)

    return payment


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = (
        db.query(Payment)
        .options(
            joinedload(Payment.payer),
            joinedload(Payment.recipient),
            joinedload(Payment.property),
            joinedload(Payment.booking),
            joinedload(Payment.tenancy),
            joinedload(Payment.maintenance_request),
            joinedload(Payment.parent_payment),
            selectinload(Payment.child_payments),
            selectinload(Payment.events),
        )
        .filter(Payment.id == payment_id)
        .first()
    )
    if not payment:
        raise _not_found(payment_id)
    return payment


def get_payment_by_reference(db: Session, reference: str) -> Payment:
    payment = db.query(Payment).filter(Payment.reference == reference).first()
    if not payment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Payment with reference {reference} not found"
        )
    return get_payment(db, payment.id)


def _apply_filters(query, filters: PaymentFilters):
    exact_matches = {
        Payment.payer_id: filters.payer_id,
        Payment.recipient_id: filters.recipient_id,
        Payment.property_id: filters.property_id,
        Payment.booking_id: filters.booking_id,
        Payment.tenancy_id: filters.tenancy_id,
        Payment.maintenance_request_id: filters.maintenance_request_id,
        Payment.type: filters.type.value if filters.type else None,
        Payment.status: filters.status.value if filters.status else None,
        Payment.payment_method: filters.payment_method.value if filters.payment_method else None,
        Payment.frequency: filters.frequency.value if filters.frequency else None,
        Payment.refund_status: filters.refund_status.value if filters.refund_status else None,
        Payment.currency: filters.currency.upper() if filters.currency else None,
        Payment.is_recurring: filters.is_recurring,
        Payment.is_test: filters.is_test,
        Payment.is_manual: filters.is_manual,
        Payment.requires_review: filters.requires_review,
    }
    for column, value in exact_matches.items():
        if value is not None:
            query = query.filter(column == value)

    if not filters.include_deleted:
        query = query.filter(Payment.deleted_at.is_(None))
    if filters.start_date is not None:
        query = query.filter(Payment.created_at >= filters.start_date)
    if filters.end_date is not None:
        query = query.filter(Payment.created_at <= filters.end_date)
    if filters.due_date_start is not None:
        query = query.filter(Payment.due_date >= filters.due_date_start)
    if filters.due_date_end is not None:
        query = query.filter(Payment.due_date <= filters.due_date_end)
    if filters.min_amount is not None:
        query = query.filter(Payment.amount >= filters.min_amount)
    if filters.max_amount is not None:
        query = query.filter(Payment.amount <= filters.max_amount)
    if filters.billing_email:
        query = query.filter(Payment.billing_email.ilike(f"%{filters.billing_email}%"))
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.filter(
            or_(
                Payment.title.ilike(pattern),
                Payment.description.ilike(pattern),
                Payment.reference.ilike(pattern),
                Payment.billing_name.ilike(pattern),
            )
        )
    return query


def list_payments(
    db: Session,
    filters: PaymentFilters,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Payment], int, int, int]:
    """Return ``(payments, total, page, limit)`` for the filtered, sorted page."""
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail="Invalid sort_by value")
    sort_order_normalized = (sort_order or "desc").lower()
    if sort_order_normalized not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")

    query = _apply_filters(db.query(Payment), filters)
    total = query.count()

    sort_column = SORTABLE_FIELDS[sort_by]
    if sort_order_normalized == "asc":
        order_by_clause = [sort_column.asc(), Payment.id.asc()]
    else:
        order_by_clause = [sort_column.desc(), Payment.id.desc()]

    payments = query.order_by(*order_by_clause).offset((page - 1) * limit).limit(limit).all()
    return payments, total, page, limit


def update_payment(db: Session, payment_id: int, payload: PaymentUpdate, actor_id: int) -> Payment:
    payment = _load_payment(db, payment_id)
    if payment.status in IMMUTABLE_STATUSES:
        raise HTTPException(status_code=400, detail="Cannot update completed, failed, or refunded payments")

    changes = payload.model_dump(exclude_unset=True)
    if "metadata" in changes:
        payment.extra_metadata = changes.pop("metadata")
    for field, value in changes.items():
        setattr(payment, field, value.value if hasattr(value, "value") else value)

    if "amount" in changes or "fee_amount" in changes:
        amount = Decimal(str(payment.amount))
        fee = Decimal(str(payment.fee_amount or 0))
        if fee > amount:
            raise HTTPException(status_code=400, detail="fee_amount cannot exceed amount")
        payment.net_amount = amount - fee

    payment.updated_by = actor_id
    db.commit()
    db.refresh(payment)
    return payment


def delete_payment(db: Session, payment_id: int, actor_id: int, gateway=None) -> Payment:
    payment = _load_payment(db, payment_id)
    if payment.status == PaymentStatus.COMPLETED.value:
        raise HTTPException(status_code=400, detail="Cannot delete completed payments")

    if payment.stripe_payment_intent_id and _gateway_ready(gateway):
        try:
            gateway.cancel_intent(payment.stripe_payment_intent_id)
        except PaymentGatewayError as exc:
            logger.warning("Failed to cancel payment intent %s: %s", payment.stripe_payment_intent_id, exc)

    payment.deleted_at = utc_now()
    payment.updated_by = actor_id
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s soft-deleted by user %s", payment.reference, actor_id)
    return payment


def _record_intent(payment: Payment, intent: Dict[str, Any]) -> None:
    payment.stripe_payment_intent_id = intent["id"]
    payment.stripe_charge_id = intent.get("latest_charge") or payment.stripe_charge_id
    payment.gateway_response = intent
    payment.processor = "stripe"


def process_payment(
    db: Session, payment_id: int, payload: ProcessPaymentRequest, actor_id: int, gateway=None
) -> Payment:
    payment = _load_payment(db, payment_id)
    if not is_processable(payment):
        raise HTTPException(status_code=400, detail="Payment is not in a processable state")
    if payload.stripe_payment_intent_id and not _gateway_ready(gateway):
        raise HTTPException(status_code=400, detail="Payment gateway is not configured")

    try:
        now = utc_now()
        if payload.stripe_payment_intent_id:
            intent = gateway.retrieve_intent(payload.stripe_payment_intent_id)
            if payload.confirm_payment and intent.get("status") == "requires_confirmation":
                intent = gateway.confirm_intent(intent["id"], payload.payment_method_id)
            _record_intent(payment, intent)

            gateway_status = intent.get("status")
            if gateway_status == "succeeded":
                apply_event(payment, PaymentEventType.GATEWAY_SUCCEEDED, actor_id=actor_id)
                payment.processed_at = now
                payment.captured_at = now
            elif gateway_status == "requires_payment_method":
                apply_event(payment, PaymentEventType.GATEWAY_FAILED, actor_id=actor_id)
                payment.failed_at = now
                payment.failure_reason = "Payment method required"
            else:
                logger.info("Payment %s left as %s (gateway status %s)", payment.reference, payment.status, gateway_status)
        else:
            apply_event(payment, PaymentEventType.MANUAL_COMPLETED, actor_id=actor_id)
            payment.processed_at = now
            payment.is_manual = True

        payment.updated_by = actor_id
        db.commit()
        db.refresh(payment)
        return payment
    except Exception as exc:
        db.rollback()
        logger.error("Processing payment %s failed: %s", payment_id, exc)
        payment = _load_payment(db, payment_id)
        if can_apply(payment, PaymentEventType.PROCESS_ERROR):
            apply_event(payment, PaymentEventType.PROCESS_ERROR, actor_id=actor_id)
        payment.failed_at = utc_now()
        payment.failure_reason = str(exc)
        payment.updated_by = actor_id
        db.commit()
        raise


def refund_payment(
    db: Session, payment_id: int, payload: RefundPaymentRequest, actor_id: int, gateway=None
) -> Payment:
    payment = _load_payment(db, payment_id)
    if not is_refundable(payment):
        raise HTTPException(status_code=400, detail="Only completed payments can be refunded")

    original_amount = Decimal(str(payment.amount))
    refund_amount = payload.amount if payload.amount is not None else original_amount
    # Checked against the original amount, not the remaining balance
    if refund_amount > original_amount:
        raise HTTPException(status_code=400, detail="Refund amount cannot exceed payment amount")
    if payment.stripe_charge_id and not _gateway_ready(gateway):
        raise HTTPException(status_code=400, detail="Payment gateway is not configured")

    try:
        if payment.stripe_charge_id:
            refund_count = sum(1 for event in payment.events if event.event.startswith("refund_"))
            refund = gateway.create_refund(
                charge_id=payment.stripe_charge_id,
                amount_minor=to_minor_units(refund_amount),
                reason=payload.reason,
                metadata={"payment_id": payment.id, "refunded_by": actor_id},
                idempotency_key=f"{payment.reference}-refund-{refund_count + 1}",
            )
            payment.gateway_response = {**(payment.gateway_response or {}), "refund": refund}

        refunded_total = Decimal(str(payment.refunded_amount or 0)) + refund_amount
        payment.refunded_amount = refunded_total
        payment.refund_reason = payload.reason
        payment.refunded_at = utc_now()
        if refunded_total >= original_amount:
            apply_event(payment, PaymentEventType.REFUND_FULL, actor_id=actor_id)
            payment.refund_status = RefundStatus.FULL_REFUND.value
        else:
            apply_event(payment, PaymentEventType.REFUND_PARTIAL, actor_id=actor_id)
            payment.refund_status = RefundStatus.PARTIAL_REFUND.value

        payment.updated_by = actor_id
        db.commit()
        db.refresh(payment)
        logger.info("Refunded %s on payment %s (total %s)", refund_amount, payment.reference, refunded_total)
        return payment
    except Exception as exc:
        db.rollback()
        logger.error("Refund of payment %s failed: %s", payment_id, exc)
        payment = _load_payment(db, payment_id)
        payment.refund_status = RefundStatus.REFUND_FAILED.value
        payment.updated_by = actor_id
        db.commit()
        raise


def create_gateway_intent(payload: PaymentIntentCreate, actor_id: int, gateway=None) -> Dict[str, Any]:
    if not _gateway_ready(gateway):
        raise HTTPException(status_code=400, detail="Stripe is not configured")
    intent = gateway.create_intent(
        amount_minor=to_minor_units(payload.amount),
        currency=payload.currency,
        description=payload.description,
        metadata={**(payload.metadata or {}), "user_id": actor_id},
        payment_method_types=payload.payment_method_types,
        customer_id=payload.customer_id,
        payment_method_id=payload.payment_method_id,
    )
    return {
        "id": intent["id"],
        "client_secret": intent.get("client_secret"),
        "status": intent.get("status", "requires_payment_method"),
        "amount": intent.get("amount", to_minor_units(payload.amount)),
        "currency": intent.get("currency", payload.currency.lower()),
    }


def _reconcile_refund(db: Session, payment: Payment, charge: Dict[str, Any], event_id: str | None) -> bool:
    refunded_total = from_minor_units(int(charge.get("amount_refunded") or 0))
    if refunded_total <= Decimal(str(payment.refunded_amount or 0)):
        return False
    original_amount = Decimal(str(payment.amount))
    event_type = PaymentEventType.REFUND_FULL if refunded_total >= original_amount else PaymentEventType.REFUND_PARTIAL
    if not can_apply(payment, event_type):
        return False
    apply_event(payment, event_type, gateway_event_id=event_id)
    payment.refunded_amount = refunded_total
    payment.refunded_at = utc_now()
    payment.refund_status = (
        RefundStatus.FULL_REFUND.value if event_type == PaymentEventType.REFUND_FULL else RefundStatus.PARTIAL_REFUND.value
    )
    return True


def ingest_gateway_event(db: Session, event: Dict[str, Any]) -> Dict[str, Any]:
    """Apply an asynchronous gateway notification to the matching payment."""
    event_id = event.get("id")
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}
    receipt = {"event_id": event_id, "event_type": event_type, "handled": False, "payment_id": None}

    if event_id and db.query(PaymentEvent).filter(PaymentEvent.gateway_event_id == event_id).first():
        logger.info("Ignoring duplicate gateway event %s", event_id)
        return receipt

    if event_type in GATEWAY_EVENT_MAP:
        intent_id = obj.get("id")
    elif event_type == "charge.refunded":
        intent_id = obj.get("payment_intent")
    else:
        logger.info("Unhandled gateway event type: %s", event_type)
        return receipt

    payment = db.query(Payment).filter(Payment.stripe_payment_intent_id == intent_id).first() if intent_id else None
    if not payment:
        logger.info("No payment matches gateway event %s (intent %s)", event_id, intent_id)
        return receipt
    receipt["payment_id"] = payment.id

    now = utc_now()
    if event_type == "charge.refunded":
        handled = _reconcile_refund(db, payment, obj, event_id)
    else:
        transition = GATEWAY_EVENT_MAP[event_type]
        try:
            apply_event(payment, transition, gateway_event_id=event_id)
        except InvalidTransition as exc:
            logger.info("Ignoring gateway event %s for payment %s: %s", event_id, payment.id, exc)
            return receipt
        handled = True
        payment.gateway_response = obj
        if obj.get("latest_charge"):
            payment.stripe_charge_id = obj["latest_charge"]
        if transition == PaymentEventType.GATEWAY_SUCCEEDED:
            payment.processed_at = now
            payment.captured_at = now
        elif transition == PaymentEventType.GATEWAY_FAILED:
            payment.failed_at = now
            error = obj.get("last_payment_error") or {}
            payment.failure_reason = error.get("message") or "Payment failed"
        elif transition == PaymentEventType.GATEWAY_CANCELLED:
            payment.cancelled_at = now
            payment.cancellation_reason = obj.get("cancellation_reason")

    if handled:
        db.commit()
        logger.info("Gateway event %s (%s) applied to payment %s", event_id, event_type, payment.id)
    receipt["handled"] = handled
    return receipt
