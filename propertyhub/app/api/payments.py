"""Payment endpoints: CRUD, processing, refunds, dashboard and recurring runs."""

import math
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from propertyhub.app.db.session import get_db
from propertyhub.app.dependencies.auth import STAFF_ROLES, get_current_user, is_tenant, require_roles
from propertyhub.app.models.payment import Payment
from propertyhub.app.models.user import User, UserRole
from propertyhub.app.schemas.dashboard import DashboardStats, PaymentSummary
from propertyhub.app.schemas.envelope import Envelope
from propertyhub.app.schemas.payment import (
    Pagination,
    PaymentCreate,
    PaymentDetail,
    PaymentFilters,
    PaymentIntentCreate,
    PaymentIntentRead,
    PaymentPage,
    PaymentRead,
    PaymentUpdate,
    ProcessPaymentRequest,
    RefundPaymentRequest,
)
from propertyhub.app.services import payment_dashboard, payments as payment_service
from propertyhub.app.services.payment_gateway import StripeGateway, get_payment_gateway
from propertyhub.app.services.recurring import process_recurring_payments

router = APIRouter(prefix="/payments", tags=["payments"])

require_staff = require_roles(*STAFF_ROLES)


def _ensure_visible(payment: Payment, current_user: User) -> None:
    # Tenants only ever see payments they are paying
    if is_tenant(current_user) and payment.payer_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.post("", response_model=Envelope[PaymentRead], status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payment = payment_service.create_payment(db, payload, actor_id=current_user.id, gateway=gateway)
    return Envelope(message="Payment created successfully", data=PaymentRead.model_validate(payment))


@router.get("", response_model=Envelope[PaymentPage])
def list_payments(
    filters: PaymentFilters = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if is_tenant(current_user):
        filters.payer_id = current_user.id

    items, total, page, limit = payment_service.list_payments(
        db, filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    data = PaymentPage(
        payments=[PaymentRead.model_validate(item) for item in items],
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)),
    )
    return Envelope(message="Payments retrieved successfully", data=data)


@router.get("/dashboard", response_model=Envelope[DashboardStats])
def get_dashboard(db: Session = Depends(get_db), current_user: User = Depends(require_staff)):
    stats = payment_dashboard.get_dashboard_stats(db)
    return Envelope(
        message="Dashboard statistics retrieved successfully",
        data=DashboardStats.model_validate(stats, from_attributes=True),
    )


@router.get("/summary", response_model=Envelope[PaymentSummary])
def get_summary(
    payer_id: int | None = None,
    recipient_id: int | None = None,
    property_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    summary = payment_dashboard.get_payment_summary(
        db,
        payer_id=payer_id,
        recipient_id=recipient_id,
        property_id=property_id,
        date_from=date_from,
        date_to=date_to,
    )
    return Envelope(message="Payment summary retrieved successfully", data=PaymentSummary(**summary))


@router.get("/reference/{reference}", response_model=Envelope[PaymentDetail])
def get_payment_by_reference(
    reference: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    payment = payment_service.get_payment_by_reference(db, reference)
    _ensure_visible(payment, current_user)
    return Envelope(message="Payment retrieved successfully", data=PaymentDetail.model_validate(payment))


@router.post("/stripe/payment-intent", response_model=Envelope[PaymentIntentRead])
def create_payment_intent(
    payload: PaymentIntentCreate,
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    intent = payment_service.create_gateway_intent(payload, actor_id=current_user.id, gateway=gateway)
    return Envelope(message="Payment intent created successfully", data=PaymentIntentRead(**intent))


@router.post("/recurring/run", response_model=Envelope[List[PaymentRead]])
def run_recurring_payments(
    db: Session = Depends(get_db), current_user: User = Depends(require_roles(UserRole.ADMIN))
):
    created = process_recurring_payments(db)
    return Envelope(
        message=f"Created {len(created)} recurring payment(s)",
        data=[PaymentRead.model_validate(payment) for payment in created],
    )


@router.get("/{payment_id}", response_model=Envelope[PaymentDetail])
def get_payment(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    payment = payment_service.get_payment(db, payment_id)
    _ensure_visible(payment, current_user)
    return Envelope(message="Payment retrieved successfully", data=PaymentDetail.model_validate(payment))


@router.patch("/{payment_id}", response_model=Envelope[PaymentRead])
def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    payment = payment_service.update_payment(db, payment_id, payload, actor_id=current_user.id)
    return Envelope(message="Payment updated successfully", data=PaymentRead.model_validate(payment))


@router.delete("/{payment_id}", response_model=Envelope[PaymentRead])
def delete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payment = payment_service.delete_payment(db, payment_id, actor_id=current_user.id, gateway=gateway)
    return Envelope(message="Payment deleted successfully", data=PaymentRead.model_validate(payment))


@router.post("/{payment_id}/process", response_model=Envelope[PaymentRead])
def process_payment(
    payment_id: int,
    payload: ProcessPaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    existing = db.query(Payment).filter(Payment.id == payment_id).first()
    if existing is not None:
        _ensure_visible(existing, current_user)
    payment = payment_service.process_payment(db, payment_id, payload, actor_id=current_user.id, gateway=gateway)
    return Envelope(message="Payment processed successfully", data=PaymentRead.model_validate(payment))


@router.post("/{payment_id}/refund", response_model=Envelope[PaymentRead])
def refund_payment(
    payment_id: int,
    payload: RefundPaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payment = payment_service.refund_payment(db, payment_id, payload, actor_id=current_user.id, gateway=gateway)
    return Envelope(message="Payment refunded successfully", data=PaymentRead.model_validate(payment))
