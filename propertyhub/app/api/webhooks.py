"""Stripe webhook receiver."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from propertyhub.app.db.session import get_db
from propertyhub.app.schemas.envelope import Envelope
from propertyhub.app.schemas.payment import WebhookReceipt
from propertyhub.app.services.payment_gateway import (
    GatewayNotConfigured,
    StripeGateway,
    WebhookSignatureError,
    get_payment_gateway,
)
from propertyhub.app.services.payments import ingest_gateway_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=Envelope[WebhookReceipt])
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payload = await request.body()
    try:
        event = gateway.construct_event(payload, stripe_signature)
    except GatewayNotConfigured as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except WebhookSignatureError as exc:
        logger.warning("Rejected Stripe webhook: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info("Received Stripe event %s (%s)", event.get("id"), event.get("type"))
    receipt = ingest_gateway_event(db, event)
    return Envelope(message="Webhook processed", data=WebhookReceipt(**receipt))
