from swish_gateway.models.enums import HttpMethod, PaymentStatus, PollState
from swish_gateway.models.payment import PaymentHandle, PaymentRequest, PaymentResult, StatusPayload

__all__ = [
    "HttpMethod",
    "PaymentStatus",
    "PollState",
    "PaymentHandle",
    "PaymentRequest",
    "PaymentResult",
    "StatusPayload",
]
