"""Payment lifecycle state table.

Every status change on a payment goes through ``apply_event`` so the allowed
transitions live in one place. The synchronous processing path, refunds and
gateway webhooks all feed events into the same table.
"""

import enum
import logging
from typing import Dict, Tuple

from propertyhub.app.models.payment import Payment, PaymentStatus
from propertyhub.app.models.payment_event import PaymentEvent

logger = logging.getLogger(__name__)


class PaymentEventType(str, enum.Enum):
    INTENT_CREATED = "intent_created"
    GATEWAY_PROCESSING = "gateway_processing"
    GATEWAY_SUCCEEDED = "gateway_succeeded"
    GATEWAY_FAILED = "gateway_failed"
    GATEWAY_CANCELLED = "gateway_cancelled"
    MANUAL_COMPLETED = "manual_completed"
    PROCESS_ERROR = "process_error"
    REFUND_PARTIAL = "refund_partial"
    REFUND_FULL = "refund_full"


class InvalidTransition(ValueError):
    def __init__(self, current: str, event: PaymentEventType):
        self.current = current
        self.event = event
        super().__init__(f"Cannot apply '{event.value}' to a payment in status '{current}'")


_S = PaymentStatus
_E = PaymentEventType

_OPEN_TRANSITIONS = {
    _E.GATEWAY_PROCESSING: _S.PROCESSING,
    _E.GATEWAY_SUCCEEDED: _S.COMPLETED,
    _E.GATEWAY_FAILED: _S.FAILED,
    _E.GATEWAY_CANCELLED: _S.CANCELLED,
    _E.MANUAL_COMPLETED: _S.COMPLETED,
    _E.PROCESS_ERROR: _S.FAILED,
}

_REFUND_TRANSITIONS = {
    _E.REFUND_PARTIAL: _S.PARTIALLY_REFUNDED,
    _E.REFUND_FULL: _S.REFUNDED,
}

TRANSITIONS: Dict[Tuple[PaymentStatus, PaymentEventType], PaymentStatus] = {}
TRANSITIONS[(_S.PENDING, _E.INTENT_CREATED)] = _S.PROCESSING
for _event, _target in _OPEN_TRANSITIONS.items():
    TRANSITIONS[(_S.PENDING, _event)] = _target
    TRANSITIONS[(_S.PROCESSING, _event)] = _target
for _event, _target in _REFUND_TRANSITIONS.items():
    TRANSITIONS[(_S.COMPLETED, _event)] = _target
    TRANSITIONS[(_S.PARTIALLY_REFUNDED, _event)] = _target

# Settled payments cannot be edited through the update path
IMMUTABLE_STATUSES = frozenset({_S.COMPLETED.value, _S.FAILED.value, _S.REFUNDED.value})


def next_status(current: str, event: PaymentEventType) -> PaymentStatus:
    try:
        current_status = PaymentStatus(current)
    except ValueError as exc:
        raise InvalidTransition(current, event) from exc
    target = TRANSITIONS.get((current_status, event))
    if target is None:
        raise InvalidTransition(current, event)
    return target


def can_apply(payment: Payment, event: PaymentEventType) -> bool:
    try:
        next_status(payment.status, event)
    except InvalidTransition:
        return False
    return True


def is_processable(payment: Payment) -> bool:
    return payment.status in (_S.PENDING.value, _S.PROCESSING.value)


def is_refundable(payment: Payment) -> bool:
    return can_apply(payment, _E.REFUND_PARTIAL)


def apply_event(
    payment: Payment,
    event: PaymentEventType,
    actor_id: int | None = None,
    gateway_event_id: str | None = None,
) -> PaymentEvent:
    """Move ``payment`` to the status the table dictates and record the transition."""
    target = next_status(payment.status, event)
    record = PaymentEvent(
        event=event.value,
        from_status=payment.status,
        to_status=target.value,
        actor_id=actor_id,
        gateway_event_id=gateway_event_id,
    )
    payment.events.append(record)
    logger.debug("Payment %s: %s -> %s (%s)", payment.id, payment.status, target.value, event.value)
    payment.status = target.value
    return record
