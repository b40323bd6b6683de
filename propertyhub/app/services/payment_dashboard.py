"""Payment dashboard snapshot and payment summary reporting."""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Type

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from propertyhub.app.core.time import last_n_months, month_bounds, utc_now
from propertyhub.app.models.payment import Payment, PaymentMethod, PaymentStatus, PaymentType
from propertyhub.app.models.property import Property

TWO_PLACES = Decimal("0.01")
WHOLE_UNITS = Decimal("1")


def _money(value) -> str:
    return str(Decimal(str(value or 0)).quantize(TWO_PLACES))


def _count_and_sum(query, column=Payment.amount):
    count, total = query.with_entities(func.count(Payment.id), func.coalesce(func.sum(column), 0)).one()
    return int(count or 0), Decimal(str(total or 0))


def _breakdown(db: Session, column, enum_cls: Type) -> Dict[str, dict]:
    # Every enum value is present, zero-filled
    breakdown = {member.value: {"count": 0, "amount": "0.00"} for member in enum_cls}
    rows = (
        db.query(column, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.deleted_at.is_(None))
        .group_by(column)
        .all()
    )
    for key, count, total in rows:
        breakdown[key] = {"count": int(count), "amount": _money(total)}
    return breakdown


def get_dashboard_stats(db: Session, today: date | None = None) -> dict:
    as_of_date = today or utc_now().date()
    live = db.query(Payment).filter(Payment.deleted_at.is_(None))

    total_payments, total_amount = _count_and_sum(live)
    pending_payments, pending_amount = _count_and_sum(live.filter(Payment.status == PaymentStatus.PENDING.value))
    completed_payments, completed_amount = _count_and_sum(
        live.filter(Payment.status == PaymentStatus.COMPLETED.value)
    )
    failed_payments, failed_amount = _count_and_sum(live.filter(Payment.status == PaymentStatus.FAILED.value))
    refunded_payments, refunded_amount = _count_and_sum(
        live.filter(
            Payment.status.in_([PaymentStatus.REFUNDED.value, PaymentStatus.PARTIALLY_REFUNDED.value])
        ),
        column=Payment.refunded_amount,
    )
    # Whole currency units, half up
    average_payment_amount = Decimal("0")
    if total_payments > 0:
        average_payment_amount = (total_amount / total_payments).quantize(WHOLE_UNITS, rounding=ROUND_HALF_UP)

    monthly_trends = []
    for year, month in last_n_months(as_of_date, 12):
        start, end = month_bounds(year, month)
        in_month = live.filter(Payment.created_at >= start, Payment.created_at < end)
        month_count, month_amount = _count_and_sum(in_month)
        month_completed, month_completed_amount = _count_and_sum(
            in_month.filter(Payment.status == PaymentStatus.COMPLETED.value)
        )
        monthly_trends.append(
            {
                "month": f"{year:04d}-{month:02d}",
                "total_payments": month_count,
                "total_amount": _money(month_amount),
                "completed_payments": month_completed,
                "completed_amount": _money(month_completed_amount),
            }
        )

    amount_sum = func.coalesce(func.sum(Payment.amount), 0)
    property_rows = (
        db.query(Property.id, Property.name, func.count(Payment.id), amount_sum)
        .join(Payment, Payment.property_id == Property.id)
        .filter(Payment.deleted_at.is_(None))
        .group_by(Property.id, Property.name)
        .order_by(amount_sum.desc(), Property.id.asc())
        .limit(10)
        .all()
    )
    top_properties = [
        {
            "property_id": property_id,
            "property_name": name,
            "total_payments": int(count),
            "total_amount": _money(total),
        }
        for property_id, name, count, total in property_rows
    ]

    recent_payments = (
        live.options(joinedload(Payment.payer), joinedload(Payment.property))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(10)
        .all()
    )

    return {
        "as_of": as_of_date.isoformat(),
        "total_payments": total_payments,
        "total_amount": _money(total_amount),
        "pending_payments": pending_payments,
        "pending_amount": _money(pending_amount),
        "completed_payments": completed_payments,
        "completed_amount": _money(completed_amount),
        "failed_payments": failed_payments,
        "failed_amount": _money(failed_amount),
        "refunded_payments": refunded_payments,
        "refunded_amount": _money(refunded_amount),
        "average_payment_amount": _money(average_payment_amount),
        "payments_by_type": _breakdown(db, Payment.type, PaymentType),
        "payments_by_method": _breakdown(db, Payment.payment_method, PaymentMethod),
        "payments_by_status": _breakdown(db, Payment.status, PaymentStatus),
        "monthly_trends": monthly_trends,
        "top_properties": top_properties,
        "recent_payments": recent_payments,
    }


def get_payment_summary(
    db: Session,
    *,
    payer_id: int | None = None,
    recipient_id: int | None = None,
    property_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    query = db.query(Payment).filter(Payment.deleted_at.is_(None))
    if payer_id is not None:
        query = query.filter(Payment.payer_id == payer_id)
    if recipient_id is not None:
        query = query.filter(Payment.recipient_id == recipient_id)
    if property_id is not None:
        query = query.filter(Payment.property_id == property_id)
    if date_from is not None:
        query = query.filter(Payment.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Payment.created_at <= date_to)

    total_payments, _ = _count_and_sum(query)
    completed = query.filter(Payment.status == PaymentStatus.COMPLETED.value)
    completed_count, total_completed = _count_and_sum(completed)
    _, total_pending = _count_and_sum(query.filter(Payment.status == PaymentStatus.PENDING.value))
    _, total_failed = _count_and_sum(query.filter(Payment.status == PaymentStatus.FAILED.value))
    _, total_rent = _count_and_sum(completed.filter(Payment.type == PaymentType.RENT.value))
    _, total_deposits = _count_and_sum(
        completed.filter(Payment.type.in_([PaymentType.DEPOSIT.value, PaymentType.SECURITY_DEPOSIT.value]))
    )
    average_payment = (
        (total_completed / completed_count).quantize(TWO_PLACES) if completed_count > 0 else Decimal("0.00")
    )

    return {
        "total_payments": total_payments,
        "total_completed": _money(total_completed),
        "total_pending": _money(total_pending),
        "total_failed": _money(total_failed),
        "total_rent": _money(total_rent),
        "total_deposits": _money(total_deposits),
        "average_payment": _money(average_payment),
    }
