"""
Error taxonomy for the payment request/poll flow.

Each stage of a payment lifecycle raises its own error kind so callers can
tell which stage failed:

  - CredentialError: the merchant certificate bundle could not be loaded
  - ChannelError: the TLS trust material is unusable
  - SubmissionError: the payment request could not be created
  - PollError: the payment status could not be resolved

Nothing in this package retries on these errors. A submission in particular
is never retried, since the provider may already have created the payment.
"""

from typing import Optional


class PaymentGatewayError(Exception):
    """Base exception for all payment gateway errors."""

    stage = "gateway"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CredentialError(PaymentGatewayError):
    """Missing or unreadable certificate bundle, or wrong passphrase."""

    stage = "credentials"


class ChannelError(PaymentGatewayError):
    """Root CA file missing or unparseable, or TLS context setup failed."""

    stage = "channel"


class SubmissionError(PaymentGatewayError):
    """
    The payment request was not (or not verifiably) created.

    ``outcome_unknown`` is True when the request may have reached the provider
    and created a live payment anyway (read timeouts, a success response
    without a Location header). Such a failure must not be resubmitted
    blindly: doing so can create a duplicate payment.
    """

    stage = "submission"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[list[dict]] = None,
        outcome_unknown: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []
        self.outcome_unknown = outcome_unknown


class PollError(PaymentGatewayError):
    """Transport failure or malformed status payload while polling."""

    stage = "poll"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PollTimeout(PollError):
    """The payment was still pending when the attempt budget or deadline ran out."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class PollCancelled(PollError):
    """Polling was stopped by the caller's cancellation token."""

    def __init__(self, message: str = "Polling cancelled", attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts
