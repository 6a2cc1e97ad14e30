"""Value types flowing through a payment lifecycle."""

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from swish_gateway.models.enums import PaymentStatus

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999999.99")
MAX_MESSAGE_LENGTH = 50

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_ALIAS_RE = re.compile(r"^\d{5,15}$")


def _to_amount(value: Any) -> Decimal:
    """Coerce to a positive Decimal with at most two fraction digits."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"Amount must be positive: {value!r}")
    if amount > MAX_AMOUNT:
        raise ValueError(f"Amount exceeds {MAX_AMOUNT}: {value!r}")
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise ValueError(f"Amount has more than two decimals: {value!r}")
    return quantized


@dataclass(frozen=True)
class PaymentRequest:
    """
    A payment request to submit to the provider.

    Built fresh per payment and never mutated. Construction validates the
    fields, so an instance is always safe to serialize.
    """

    callback_url: str
    payee_alias: str
    amount: Decimal
    currency: str = "SEK"
    payer_alias: Optional[str] = None
    message: Optional[str] = None
    payee_payment_reference: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "amount", _to_amount(self.amount))

        if not _CURRENCY_RE.match(self.currency or ""):
            raise ValueError(f"Invalid currency code: {self.currency!r}")
        if urlparse(self.callback_url or "").scheme != "https":
            raise ValueError(f"Callback URL must use https: {self.callback_url!r}")
        if not _ALIAS_RE.match(self.payee_alias or ""):
            raise ValueError(f"Invalid payee alias: {self.payee_alias!r}")
        if self.payer_alias is not None and not _ALIAS_RE.match(self.payer_alias):
            raise ValueError(f"Invalid payer alias: {self.payer_alias!r}")
        if self.message is not None and len(self.message) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message longer than {MAX_MESSAGE_LENGTH} characters")

    def to_payload(self) -> dict[str, str]:
        """Render the provider's JSON request body."""
        payload = {
            "callbackUrl": self.callback_url,
            "payeeAlias": self.payee_alias,
            "amount": f"{self.amount:.2f}",
            "currency": self.currency,
        }
        if self.payer_alias:
            payload["payerAlias"] = self.payer_alias
        if self.message:
            payload["message"] = self.message
        if self.payee_payment_reference:
            payload["payeePaymentReference"] = self.payee_payment_reference
        return payload


@dataclass(frozen=True)
class PaymentHandle:
    """Locator of a payment resource created by the provider."""

    location: str
    payment_id: str
    request_token: Optional[str] = None

    @classmethod
    def from_location(cls, location: str, request_token: Optional[str] = None) -> "PaymentHandle":
        payment_id = urlparse(location).path.rstrip("/").rsplit("/", 1)[-1]
        return cls(location=location, payment_id=payment_id, request_token=request_token)


class StatusPayload(BaseModel):
    """Schema check for a status poll body. Unknown provider fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: str
    id: Optional[str] = None
    paymentReference: Optional[str] = None
    errorCode: Optional[str] = None
    errorMessage: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return PaymentStatus.is_terminal(self.status)


@dataclass(frozen=True)
class PaymentResult:
    """The provider's terminal status payload, passed back verbatim."""

    payload: dict[str, Any]
    attempts: int = 1
    handle: Optional[PaymentHandle] = field(default=None, compare=False)

    @property
    def status(self) -> str:
        return self.payload["status"]
