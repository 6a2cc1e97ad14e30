"""
Payment request submission.

Creating a payment request is the one irrevocable side effect of a payment
lifecycle: every successful POST creates a live payment at the provider.
No idempotency key exists for this endpoint, so a submission is attempted
at most once. When the outcome cannot be determined (a timeout after the
request went out, a success without a Location header) the raised
SubmissionError has ``outcome_unknown`` set and the caller must reconcile
before trying again.
"""

import logging
from typing import Optional

import httpx

from swish_gateway.engine.errors import SubmissionError
from swish_gateway.models.enums import HttpMethod
from swish_gateway.models.payment import PaymentHandle, PaymentRequest
from swish_gateway.security.channel import SecureChannel

logger = logging.getLogger("swish_gateway.submitter")

PAYMENT_REQUESTS_PATH = "/paymentrequests/"

# Failures raised before any request bytes could reach the provider
_NOT_SENT_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.PoolTimeout,
    httpx.UnsupportedProtocol,
    httpx.InvalidURL,
)


def payment_requests_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{PAYMENT_REQUESTS_PATH}"


def _provider_errors(response: httpx.Response) -> list[dict]:
    """Extract the provider's [{errorCode, errorMessage}, ...] body, if any."""
    try:
        body = response.json()
    except ValueError:
        return []
    if isinstance(body, dict):
        body = [body]
    if not isinstance(body, list):
        return []
    return [entry for entry in body if isinstance(entry, dict) and "errorCode" in entry]


async def submit_payment(
    channel: SecureChannel,
    request: PaymentRequest,
    base_url: str,
) -> PaymentHandle:
    """
    Create a payment request at the provider.

    Args:
        channel: Authenticated channel to the provider.
        request: The payment to create.
        base_url: Provider API base URL.

    Returns:
        Handle pointing at the created payment resource.

    Raises:
        SubmissionError: Transport failure, non-success status, or a success
            response without a Location header.
    """
    url = payment_requests_url(base_url)
    try:
        response = await channel.call(HttpMethod.POST, url, request.to_payload())
    except _NOT_SENT_ERRORS as e:
        raise SubmissionError(f"Could not connect to provider: {e}") from e
    except httpx.HTTPError as e:
        raise SubmissionError(
            f"Transport failure during submission, payment may exist: {e}",
            outcome_unknown=True,
        ) from e

    if not response.is_success:
        errors = _provider_errors(response)
        logger.warning(
            "Payment request rejected with HTTP %d: %s",
            response.status_code,
            ", ".join(f"{err.get('errorCode')}: {err.get('errorMessage')}" for err in errors) or "no details",
        )
        raise SubmissionError(
            f"Provider rejected payment request with HTTP {response.status_code}",
            status_code=response.status_code,
            errors=errors,
        )

    location: Optional[str] = response.headers.get("Location")
    if not location:
        raise SubmissionError(
            f"Provider answered HTTP {response.status_code} without a Location header",
            status_code=response.status_code,
            outcome_unknown=True,
        )

    handle = PaymentHandle.from_location(
        location,
        request_token=response.headers.get("PaymentRequestToken"),
    )
    logger.info("Payment request created: %s", handle.location)
    return handle
