"""
Swish Gateway: mobile payment requests over mutual TLS.

Creates payment requests at the provider and polls them until they reach a
terminal status, returning the final status payload to the caller.

Start the server:
    uvicorn swish_gateway.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from swish_gateway.api.health import router as health_router
from swish_gateway.api.payments import router as payments_router
from swish_gateway.config import settings
from swish_gateway.engine.errors import (
    ChannelError,
    CredentialError,
    PaymentGatewayError,
    PollTimeout,
    SubmissionError,
)
from swish_gateway.security.channel import channel_cache

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close cached provider channels on shutdown."""
    yield
    await channel_cache.aclose()


app = FastAPI(
    title="Swish Gateway",
    description=(
        "Creates mobile payment requests over mutually authenticated TLS and "
        "polls them to a terminal status."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


def _status_code_for(exc: PaymentGatewayError) -> int:
    if isinstance(exc, (CredentialError, ChannelError)):
        return 500
    if isinstance(exc, PollTimeout):
        return 504
    return 502


@app.exception_handler(PaymentGatewayError)
async def gateway_error_handler(request: Request, exc: PaymentGatewayError):
    content = {"stage": exc.stage, "message": exc.message}
    if isinstance(exc, SubmissionError):
        content["outcomeUnknown"] = exc.outcome_unknown
        if exc.errors:
            content["providerErrors"] = exc.errors
    return JSONResponse(status_code=_status_code_for(exc), content=content)


app.include_router(health_router)
app.include_router(payments_router)
