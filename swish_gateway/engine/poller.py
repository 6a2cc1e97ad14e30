"""
Payment status poller.

Two-state machine: PENDING while the provider reports CREATED, RESOLVED as
soon as it reports anything else. Terminal statuses never change again, so
no request is made after the first terminal response.

The loop is bounded three ways:
  - max_attempts: number of status requests
  - timeout: overall deadline; no wait is started that would cross it
  - cancel: an asyncio.Event checked before each request and during waits

Repeating the GET while the payment is pending is the designed behavior. A
failed GET is not retried: transport errors and malformed payloads abort
the loop with PollError.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from swish_gateway.audit.logger import log_event
from swish_gateway.engine.errors import PollCancelled, PollError, PollTimeout
from swish_gateway.models.enums import HttpMethod, PollState
from swish_gateway.models.payment import PaymentHandle, PaymentResult, StatusPayload
from swish_gateway.security.channel import SecureChannel

logger = logging.getLogger("swish_gateway.poller")

DEFAULT_INTERVAL = 4.0
DEFAULT_MAX_ATTEMPTS = 45


async def _pause(interval: float, cancel: Optional[asyncio.Event]) -> bool:
    """Wait ``interval`` seconds. Returns True if the cancel token fired."""
    if cancel is None:
        await asyncio.sleep(interval)
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=interval)
    except asyncio.TimeoutError:
        return False
    return True


async def fetch_status(channel: SecureChannel, handle: PaymentHandle) -> tuple[StatusPayload, dict[str, Any]]:
    """
    Fetch and validate the current status payload of a payment.

    Returns the validated payload together with the body exactly as received.

    Raises:
        PollError: Transport failure, non-success status, or a body that is
            not a JSON object with a string ``status``.
    """
    try:
        response = await channel.call(HttpMethod.GET, handle.location)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise PollError(f"Transport failure while polling {handle.location}: {e}") from e

    if not response.is_success:
        raise PollError(
            f"Status request for {handle.payment_id} failed with HTTP {response.status_code}",
            status_code=response.status_code,
        )

    try:
        body = response.json()
        return StatusPayload.model_validate(body), body
    except (ValueError, ValidationError) as e:
        raise PollError(f"Malformed status payload for {handle.payment_id}: {e}") from e


async def poll_payment(
    channel: SecureChannel,
    handle: PaymentHandle,
    interval: float = DEFAULT_INTERVAL,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    timeout: Optional[float] = None,
    cancel: Optional[asyncio.Event] = None,
) -> PaymentResult:
    """
    Poll a payment until it leaves the CREATED state.

    Args:
        channel: Authenticated channel to the provider.
        handle: The payment to watch.
        interval: Seconds to wait between status requests.
        max_attempts: Maximum number of status requests.
        timeout: Optional overall deadline in seconds.
        cancel: Optional cancellation token.

    Returns:
        The terminal status payload, verbatim.

    Raises:
        PollTimeout: Still pending after max_attempts or at the deadline.
        PollCancelled: The cancel token was set.
        PollError: Transport failure or malformed payload.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None
    state = PollState.PENDING
    attempts = 0

    while state is PollState.PENDING:
        if cancel is not None and cancel.is_set():
            raise PollCancelled(attempts=attempts)

        attempts += 1
        payload, body = await fetch_status(channel, handle)
        log_event("status_polled", payment_id=handle.payment_id, details={
            "attempt": attempts,
            "status": payload.status,
        }, level=logging.DEBUG)

        if payload.is_terminal:
            state = PollState.RESOLVED
            continue

        if attempts >= max_attempts:
            raise PollTimeout(
                f"Payment {handle.payment_id} still pending after {attempts} attempts",
                attempts=attempts,
            )
        if deadline is not None and loop.time() + interval > deadline:
            raise PollTimeout(
                f"Payment {handle.payment_id} still pending at the {timeout:.1f}s deadline",
                attempts=attempts,
            )

        if await _pause(interval, cancel):
            raise PollCancelled(attempts=attempts)

    logger.info(
        "Payment %s resolved to %s after %d attempt(s)",
        handle.payment_id,
        payload.status,
        attempts,
    )
    return PaymentResult(
        payload=body,
        attempts=attempts,
        handle=handle,
    )
