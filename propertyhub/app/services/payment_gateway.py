"""
Stripe adapter for the payment service.

The service layer only talks to ``StripeGateway`` through the methods below and
receives plain dictionaries back, so tests can swap in any object with the same
surface via ``app.dependency_overrides[get_payment_gateway]``.
"""

import logging
from collections.abc import Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

import stripe

from propertyhub.app.core.settings import get_settings

logger = logging.getLogger(__name__)

# Refund reasons the Stripe API accepts verbatim; anything else goes into metadata
STRIPE_REFUND_REASONS = {"duplicate", "fraudulent", "requested_by_customer"}


class PaymentGatewayError(Exception):
    """Raised when the gateway rejects a call or cannot be reached."""


class GatewayNotConfigured(PaymentGatewayError):
    pass


class WebhookSignatureError(PaymentGatewayError):
    pass


def to_minor_units(amount: Decimal | float | int) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / Decimal("100")).quantize(Decimal("0.01"))


def _to_plain(value: Any) -> Any:
    # Newer SDK releases no longer subclass dict; older ones return a shallow copy
    if isinstance(value, stripe.StripeObject):
        return _to_plain(value.to_dict())
    if isinstance(value, Mapping):
        return {key: _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


class StripeGateway:
    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    @property
    def is_configured(self) -> bool:
        return bool(self._secret_key)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise GatewayNotConfigured("Stripe is not configured")

    def create_intent(
        self,
        *,
        amount_minor: int,
        currency: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        payment_method_types: Optional[List[str]] = None,
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._require_configured()
        params: Dict[str, Any] = {
            "amount": amount_minor,
            "currency": currency.lower(),
            "payment_method_types": payment_method_types or ["card"],
            "metadata": {key: str(value) for key, value in (metadata or {}).items()},
        }
        if description:
            params["description"] = description
        if customer_id:
            params["customer"] = customer_id
        if payment_method_id:
            params["payment_method"] = payment_method_id
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._secret_key, idempotency_key=idempotency_key, **params
            )
        except stripe.StripeError as exc:
            raise PaymentGatewayError(str(exc)) from exc
        intent = _to_plain(intent)
        logger.info("Stripe payment intent created: %s", intent["id"])
        return intent

    def retrieve_intent(self, intent_id: str) -> Dict[str, Any]:
        self._require_configured()
        try:
            return _to_plain(stripe.PaymentIntent.retrieve(intent_id, api_key=self._secret_key))
        except stripe.StripeError as exc:
            raise PaymentGatewayError(str(exc)) from exc

    def confirm_intent(self, intent_id: str, payment_method_id: Optional[str] = None) -> Dict[str, Any]:
        self._require_configured()
        params: Dict[str, Any] = {}
        if payment_method_id:
            params["payment_method"] = payment_method_id
        try:
            return _to_plain(stripe.PaymentIntent.confirm(intent_id, api_key=self._secret_key, **params))
        except stripe.StripeError as exc:
            raise PaymentGatewayError(str(exc)) from exc

    def cancel_intent(self, intent_id: str) -> Dict[str, Any]:
        self._require_configured()
        try:
            return _to_plain(stripe.PaymentIntent.cancel(intent_id, api_key=self._secret_key))
        except stripe.StripeError as exc:
            raise PaymentGatewayError(str(exc)) from exc

    def create_refund(
        self,
        *,
        charge_id: str,
        amount_minor: int,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._require_configured()
        refund_metadata = {key: str(value) for key, value in (metadata or {}).items()}
        params: Dict[str, Any] = {"charge": charge_id, "amount": amount_minor}
        if reason in STRIPE_REFUND_REASONS:
            params["reason"] = reason
        elif reason:
            refund_metadata["reason"] = reason
        params["metadata"] = refund_metadata
        try:
            refund = stripe.Refund.create(api_key=self._secret_key, idempotency_key=idempotency_key, **params)
        except stripe.StripeError as exc:
            raise PaymentGatewayError(str(exc)) from exc
        refund = _to_plain(refund)
        logger.info("Stripe refund created: %s for charge %s", refund["id"], charge_id)
        return refund

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if not self._webhook_secret:
            raise GatewayNotConfigured("Stripe webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError("Invalid webhook signature") from exc
        except ValueError as exc:
            raise WebhookSignatureError("Invalid webhook payload") from exc
        return _to_plain(event)


def get_payment_gateway() -> StripeGateway:
    settings = get_settings()
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )
