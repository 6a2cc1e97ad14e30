"""Enumerations for the payment gateway domain model."""

from enum import Enum


class PaymentStatus(str, Enum):
    """
    Payment states reported by the provider.

    Only CREATED is pending. The provider may report states not listed here;
    anything other than CREATED is terminal.
    """

    CREATED = "CREATED"
    PAID = "PAID"
    DECLINED = "DECLINED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status != cls.CREATED.value


class PollState(str, Enum):
    """States of the status poller."""

    PENDING = "pending"
    RESOLVED = "resolved"


class HttpMethod(str, Enum):
    """Verbs the secure channel accepts."""

    GET = "GET"
    POST = "POST"
