"""
Payment orchestrator: create a payment and wait for its outcome.

The flow for each payment:

  1. Channel lookup (credentials decrypted and TLS context built on first use)
  2. Submission (create the payment request, get its Location)
  3. Polling (GET the Location until the status leaves CREATED)
  4. Audit logging (every stage recorded)

The orchestrator holds no state of its own and performs no recovery: any
error from a stage is logged and propagated unchanged. Submission happens
at most once per call.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from swish_gateway.audit.logger import log_event
from swish_gateway.config import Settings
from swish_gateway.engine.errors import PaymentGatewayError, SubmissionError
from swish_gateway.engine.poller import poll_payment
from swish_gateway.engine.submitter import submit_payment
from swish_gateway.models.payment import PaymentRequest, PaymentResult
from swish_gateway.security.channel import ChannelCache, channel_cache

logger = logging.getLogger("swish_gateway.orchestrator")


def build_payment_request(
    settings: Settings,
    amount: Decimal | int | str,
    currency: Optional[str] = None,
    payer_alias: Optional[str] = None,
    payee_alias: Optional[str] = None,
    message: Optional[str] = None,
) -> PaymentRequest:
    """Fill callback URL, payee and currency defaults from settings."""
    return PaymentRequest(
        callback_url=settings.callback_url,
        payee_alias=payee_alias or settings.payee_alias,
        payer_alias=payer_alias,
        amount=amount,
        currency=currency or settings.currency,
        message=message,
    )


async def create_and_await_payment(
    request: PaymentRequest,
    settings: Settings,
    channels: ChannelCache = channel_cache,
    cancel: Optional[asyncio.Event] = None,
) -> PaymentResult:
    """
    Create a payment request and poll it to a terminal status.

    Args:
        request: The payment to create.
        settings: Credentials, provider URL and polling parameters.
        channels: Cache supplying the authenticated channel.
        cancel: Optional token that stops polling.

    Returns:
        The provider's terminal status payload.

    Raises:
        CredentialError, ChannelError, SubmissionError, PollError: unchanged
            from the failing stage.
    """
    payment_id = None
    try:
        channel = await channels.get(settings)

        log_event("submission_started", details={
            "payee": request.payee_alias,
            "amount": str(request.amount),
            "currency": request.currency,
        })
        handle = await submit_payment(channel, request, settings.provider_base_url)
        payment_id = handle.payment_id
        log_event("payment_created", payment_id=payment_id, details={"location": handle.location})

        result = await poll_payment(
            channel,
            handle,
            interval=settings.poll_interval,
            max_attempts=settings.poll_max_attempts,
            timeout=settings.poll_timeout,
            cancel=cancel,
        )
    except SubmissionError as e:
        log_event("submission_failed", details={
            "error": str(e),
            "status_code": e.status_code,
            "outcome_unknown": e.outcome_unknown,
        }, level=logging.ERROR)
        raise
    except PaymentGatewayError as e:
        log_event(f"{e.stage}_failed", payment_id=payment_id, details={
            "error": str(e),
        }, level=logging.ERROR)
        raise

    log_event("payment_resolved", payment_id=payment_id, details={
        "status": result.status,
        "attempts": result.attempts,
    })
    return result
