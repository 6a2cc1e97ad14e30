"""
Secure channel factory.

Builds the mutually authenticated HTTP client used for every call to the
payment provider:

  1. Trust anchor: the CA certificates embedded in the merchant bundle plus
     the provider's root CA file. The system trust store is NOT consulted,
     so only endpoints chaining to these certificates are accepted.
  2. Client authentication: the merchant certificate (with its chain) and
     private key are presented during the handshake.

A channel is immutable once built and safe to share between concurrent
payment lifecycles. ChannelCache keeps one per credential set for the
lifetime of the process, so the bundle is decrypted once, not per call.
"""

import asyncio
import hashlib
import logging
import secrets
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx
from cryptography import x509
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    PrivateFormat,
)

from swish_gateway.config import Settings
from swish_gateway.engine.errors import ChannelError
from swish_gateway.models.enums import HttpMethod
from swish_gateway.security.credentials import ClientIdentity, load_identity

logger = logging.getLogger("swish_gateway.channel")

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class TrustAnchor:
    """Certificates accepted as roots when verifying the provider."""

    certificates: tuple[x509.Certificate, ...]

    def to_pem(self) -> str:
        return "".join(cert.public_bytes(Encoding.PEM).decode("ascii") for cert in self.certificates)


def load_trust_anchor(identity: ClientIdentity, root_ca_path: str | Path) -> TrustAnchor:
    """Combine the bundle's embedded CAs with the certificates in a root CA PEM file."""
    path = Path(root_ca_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ChannelError(f"Cannot read root CA file {path}: {e}") from e

    try:
        roots = x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise ChannelError(f"No valid PEM certificate in root CA file {path}: {e}") from e

    return TrustAnchor(certificates=tuple(identity.ca_certificates) + tuple(roots))


def _client_ssl_context(identity: ClientIdentity, anchor: TrustAnchor) -> ssl.SSLContext:
    try:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cadata=anchor.to_pem())
    except ssl.SSLError as e:
        raise ChannelError(f"Trust anchor rejected by TLS context: {e}") from e

    # load_cert_chain only reads from files; the key is written encrypted
    # with a one-off password and removed right after loading.
    password = secrets.token_bytes(32)
    chain = (identity.certificate,) + identity.ca_certificates
    with tempfile.TemporaryDirectory(prefix="swish-identity-") as tmp:
        cert_file = Path(tmp) / "client-chain.pem"
        key_file = Path(tmp) / "client-key.pem"
        cert_file.write_bytes(b"".join(cert.public_bytes(Encoding.PEM) for cert in chain))
        key_file.write_bytes(
            identity.private_key.private_bytes(
                Encoding.PEM, PrivateFormat.PKCS8, BestAvailableEncryption(password)
            )
        )
        try:
            context.load_cert_chain(str(cert_file), str(key_file), password=password)
        except ssl.SSLError as e:
            raise ChannelError(f"Client identity rejected by TLS context: {e}") from e

    return context


class SecureChannel:
    """
    HTTP client bound to a client identity and trust anchor.

    Wraps a single httpx.AsyncClient so the submission and every status poll
    reuse the same TLS configuration and connection pool.
    """

    def __init__(
        self,
        ssl_context: ssl.SSLContext,
        trust_anchor: TrustAnchor,
        subject: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.trust_anchor = trust_anchor
        self.subject = subject
        self._client = httpx.AsyncClient(
            verify=ssl_context,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def call(
        self,
        method: HttpMethod,
        url: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Issue one authenticated request.

        A payload is sent as a JSON body (Content-Type: application/json).
        Transport errors (httpx.HTTPError) propagate to the caller.
        """
        if not isinstance(method, HttpMethod):
            raise TypeError(f"Unsupported HTTP method: {method!r}")
        return await self._client.request(method.value, url, json=payload)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SecureChannel":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def build_channel(
    identity: ClientIdentity,
    root_ca_path: str | Path,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SecureChannel:
    """
    Build a mutually authenticated channel.

    Args:
        identity: Client identity to present.
        root_ca_path: PEM file with the provider's root CA certificate(s).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (e.g. a MockTransport).

    Raises:
        ChannelError: Root CA unreadable or unparseable, or TLS setup failed.
    """
    anchor = load_trust_anchor(identity, root_ca_path)
    context = _client_ssl_context(identity, anchor)
    logger.info(
        "Built secure channel for %s (%d trusted certificates)",
        identity.subject,
        len(anchor.certificates),
    )
    return SecureChannel(context, anchor, identity.subject, timeout=timeout, transport=transport)


class ChannelCache:
    """
    Process-wide, lazily built channels keyed by credential set.

    Channels are created on first use and reused until aclose(). They are
    never mutated, so sharing one between payments is safe.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self._channels: dict[tuple, SecureChannel] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _key(settings: Settings) -> tuple:
        return (
            settings.cert_bundle_path,
            hashlib.sha256(settings.cert_passphrase.get_secret_value().encode("utf-8")).hexdigest(),
            settings.root_ca_path,
            settings.request_timeout,
        )

    def _build(self, settings: Settings) -> SecureChannel:
        identity = load_identity(settings.cert_bundle_path, settings.cert_passphrase.get_secret_value())
        return build_channel(
            identity,
            settings.root_ca_path,
            timeout=settings.request_timeout,
            transport=self._transport,
        )

    async def get(self, settings: Settings) -> SecureChannel:
        """Return the channel for these credentials, building it on first use."""
        key = self._key(settings)
        channel = self._channels.get(key)
        if channel is not None:
            return channel

        async with self._lock:
            channel = self._channels.get(key)
            if channel is None:
                # Decryption and file I/O stay off the event loop
                channel = await asyncio.to_thread(self._build, settings)
                self._channels[key] = channel
        return channel

    def __len__(self) -> int:
        return len(self._channels)

    async def aclose(self) -> None:
        channels = list(self._channels.values())
        self._channels.clear()
        for channel in channels:
            await channel.aclose()


channel_cache = ChannelCache()
