"""
Payment endpoints.

POST /payments           Create a payment request and wait for its terminal status.
POST /payments/callback  Provider notification; logged, not acted upon.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from swish_gateway.config import Settings, settings
from swish_gateway.engine.orchestrator import build_payment_request, create_and_await_payment
from swish_gateway.security.channel import ChannelCache, channel_cache

logger = logging.getLogger("swish_gateway.api")

router = APIRouter(prefix="/payments", tags=["payments"])


class CreatePaymentBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(gt=0, decimal_places=2)
    currency: Optional[str] = None
    payer_alias: Optional[str] = Field(None, alias="payerAlias")
    payee_alias: Optional[str] = Field(None, alias="payeeAlias")
    message: Optional[str] = None


def get_settings() -> Settings:
    return settings


def get_channels() -> ChannelCache:
    return channel_cache


@router.post("")
async def create_payment(
    body: CreatePaymentBody,
    app_settings: Settings = Depends(get_settings),
    channels: ChannelCache = Depends(get_channels),
) -> dict[str, Any]:
    """
    Create a payment and block until the provider resolves it.

    Returns the provider's terminal status payload as-is. Gateway errors are
    mapped to HTTP responses by the handler registered in main.
    """
    try:
        request = build_payment_request(
            app_settings,
            amount=body.amount,
            currency=body.currency,
            payer_alias=body.payer_alias,
            payee_alias=body.payee_alias,
            message=body.message,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    result = await create_and_await_payment(request, app_settings, channels=channels)
    return result.payload


@router.post("/callback")
async def payment_callback(notification: Optional[dict[str, Any]] = Body(None)) -> dict[str, bool]:
    """Acknowledge a provider notification. Completion is detected by polling only."""
    notification = notification or {}
    logger.info(
        "Payment callback received: id=%s status=%s",
        notification.get("id", "-"),
        notification.get("status", "-"),
    )
    return {"received": True}
