# PropertyHub payments backend entrypoint: FastAPI app wiring.

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from propertyhub.app.api import auth, payments, webhooks
from propertyhub.app.core.dev_seed import ensure_default_dev_admin
from propertyhub.app.core.logging import setup_logging
from propertyhub.app.core.settings import get_settings
from propertyhub.app.db.base import Base
from propertyhub.app.db.session import SessionLocal, engine
from propertyhub.app.services.payment_gateway import PaymentGatewayError
from propertyhub.app.services.payment_lifecycle import InvalidTransition

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(webhooks.router)
app.include_router(payments.router)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(PaymentGatewayError)
async def payment_gateway_error_handler(request: Request, exc: PaymentGatewayError):
    logger.error("Payment gateway error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/")
def read_root():
    return {"app": "PropertyHub Payments backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def seed_default_dev_admin():
    db = SessionLocal()
    try:
        ensure_default_dev_admin(db)
    finally:
        db.close()
