"""
Mock payment provider for tests and local development.

Simulates the provider's payment request API behind an httpx.MockTransport:
  - POST .../paymentrequests/ creates a payment and answers 201 + Location
  - GET <Location> answers CREATED for a configurable number of polls, then
    a configurable terminal status
  - Configurable latency, rejection status and malformed responses

Plug it into the real channel code with ChannelCache(transport=provider.transport)
or build_channel(..., transport=provider.transport); the TLS configuration
is still built, only the network is replaced.
"""

import asyncio
import json
import random
from dataclasses import dataclass, field
from typing import Optional

import httpx

from swish_gateway.engine.submitter import PAYMENT_REQUESTS_PATH
from swish_gateway.models.enums import PaymentStatus


@dataclass
class MockPayment:
    """Provider-side state of one created payment."""

    id: str
    request: dict
    polls: int = 0


@dataclass
class MockSwishProvider:
    """
    In-process stand-in for the provider.

    Records every submission and status call so tests can assert exactly
    how many requests a lifecycle made.
    """

    pending_polls: int = 0
    final_status: str = PaymentStatus.PAID.value
    location_base: str = "https://provider.test/req/"
    first_id: int = 42
    create_status_code: int = 201
    omit_location: bool = False
    malformed_status: bool = False
    latency_ms: int = 0

    submissions: list[dict] = field(default_factory=list)
    status_calls: list[str] = field(default_factory=list)
    payments: dict[str, MockPayment] = field(default_factory=dict)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if self.latency_ms > 0:
            jitter = random.uniform(0.5, 1.5)
            await asyncio.sleep(self.latency_ms * jitter / 1000)

        if request.method == "POST" and request.url.path.endswith(PAYMENT_REQUESTS_PATH):
            return self._create(request)
        if request.method == "GET":
            return self._status(request)
        return httpx.Response(405, json=[{"errorCode": "MOCK", "errorMessage": "Method not allowed"}])

    def _create(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.submissions.append(body)

        if self.create_status_code >= 400:
            return httpx.Response(
                self.create_status_code,
                json=[{"errorCode": "RP03", "errorMessage": "Callback URL is missing or does not use HTTPS"}],
            )

        payment_id = str(self.first_id + len(self.payments))
        location = f"{self.location_base}{payment_id}"
        self.payments[location] = MockPayment(id=payment_id, request=body)

        headers = {} if self.omit_location else {"Location": location}
        return httpx.Response(self.create_status_code, headers=headers)

    def _status(self, request: httpx.Request) -> httpx.Response:
        location = str(request.url)
        self.status_calls.append(location)

        payment: Optional[MockPayment] = self.payments.get(location)
        if payment is None:
            return httpx.Response(404, json=[{"errorCode": "RP04", "errorMessage": "No payment request found"}])

        if self.malformed_status:
            return httpx.Response(200, text="<html>maintenance</html>")

        payment.polls += 1
        status = PaymentStatus.CREATED.value if payment.polls <= self.pending_polls else self.final_status
        body = {
            "id": payment.id,
            "payeeAlias": payment.request.get("payeeAlias"),
            "amount": payment.request.get("amount"),
            "currency": payment.request.get("currency"),
            "status": status,
        }
        if status == PaymentStatus.PAID.value:
            body["paymentReference"] = f"REF{payment.id.zfill(8)}"
        return httpx.Response(200, json=body)
