"""Shared test fixtures."""

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)
from cryptography.x509.oid import NameOID

from swish_gateway.config import Settings
from swish_gateway.providers.mock_provider import MockSwishProvider
from swish_gateway.security.channel import ChannelCache, build_channel
from swish_gateway.security.credentials import load_identity

PASSPHRASE = "swish"
MERCHANT_ALIAS = "1231181189"


@dataclass
class PKIFiles:
    bundle_path: Path
    root_ca_path: Path
    cert_only_bundle_path: Path
    passphrase: str
    subject: str


@dataclass
class ProviderPKIFiles:
    root_ca_path: Path
    cert_chain_path: Path
    key_path: Path


def _name(common_name: str, organization: str = "Test Merchant AB") -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "SE"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def _issue(
    common_name: str,
    key: ec.EllipticCurvePrivateKey,
    issuer: Optional[x509.Certificate] = None,
    issuer_key: Optional[ec.EllipticCurvePrivateKey] = None,
    ca: bool = False,
    organization: str = "Test Merchant AB",
    server: bool = False,
) -> x509.Certificate:
    now = datetime.now(timezone.utc)
    subject = _name(common_name, organization)
    signing_key = issuer_key or key
    # Key identifiers and key usage are required by strict X.509 verification
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.subject if issuer else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=not ca,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=ca,
                crl_sign=ca,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    )
    if server:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName("localhost"),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]),
            critical=False,
        )
    return builder.sign(signing_key, hashes.SHA256())


@pytest.fixture(scope="session")
def pki(tmp_path_factory) -> PKIFiles:
    """Root CA -> intermediate CA -> merchant certificate, packed like the provider's test bundle."""
    directory = tmp_path_factory.mktemp("pki")

    root_key = ec.generate_private_key(ec.SECP256R1())
    root = _issue("Test TLS Root CA", root_key, ca=True)
    intermediate_key = ec.generate_private_key(ec.SECP256R1())
    intermediate = _issue("Test Merchant CA", intermediate_key, root, root_key, ca=True)
    leaf_key = ec.generate_private_key(ec.SECP256R1())
    leaf = _issue(MERCHANT_ALIAS, leaf_key, intermediate, intermediate_key)

    root_ca_path = directory / "root_ca.pem"
    root_ca_path.write_bytes(root.public_bytes(Encoding.PEM))

    bundle_path = directory / "merchant.p12"
    bundle_path.write_bytes(pkcs12.serialize_key_and_certificates(
        name=b"merchant",
        key=leaf_key,
        cert=leaf,
        cas=[intermediate],
        encryption_algorithm=BestAvailableEncryption(PASSPHRASE.encode()),
    ))

    cert_only_bundle_path = directory / "cert_only.p12"
    cert_only_bundle_path.write_bytes(pkcs12.serialize_key_and_certificates(
        name=b"merchant",
        key=None,
        cert=leaf,
        cas=None,
        encryption_algorithm=BestAvailableEncryption(PASSPHRASE.encode()),
    ))

    return PKIFiles(
        bundle_path=bundle_path,
        root_ca_path=root_ca_path,
        cert_only_bundle_path=cert_only_bundle_path,
        passphrase=PASSPHRASE,
        subject=leaf.subject.rfc4514_string(),
    )


@pytest.fixture(scope="session")
def provider_pki(tmp_path_factory) -> ProviderPKIFiles:
    """Provider root CA and a server certificate valid for 127.0.0.1."""
    directory = tmp_path_factory.mktemp("provider-pki")

    root_key = ec.generate_private_key(ec.SECP256R1())
    root = _issue("Test Provider Root CA", root_key, ca=True, organization="Test Provider AB")
    server_key = ec.generate_private_key(ec.SECP256R1())
    server = _issue(
        "localhost", server_key, root, root_key, organization="Test Provider AB", server=True
    )

    root_ca_path = directory / "provider_root_ca.pem"
    root_ca_path.write_bytes(root.public_bytes(Encoding.PEM))
    cert_chain_path = directory / "server_chain.pem"
    cert_chain_path.write_bytes(server.public_bytes(Encoding.PEM))
    key_path = directory / "server_key.pem"
    key_path.write_bytes(server_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()))

    return ProviderPKIFiles(root_ca_path=root_ca_path, cert_chain_path=cert_chain_path, key_path=key_path)


@pytest.fixture
def make_settings(pki):
    """Settings pointing at the test PKI and the mock provider; overrides as kwargs."""

    def _make(**overrides) -> Settings:
        values = {
            "cert_bundle_path": str(pki.bundle_path),
            "cert_passphrase": pki.passphrase,
            "root_ca_path": str(pki.root_ca_path),
            "provider_base_url": "https://provider.test/swish-cpcapi/api/v1",
            "callback_url": "https://example.test/cb",
            "payee_alias": MERCHANT_ALIAS,
            "poll_interval": 0,
            "poll_max_attempts": 10,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def gateway_settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def provider() -> MockSwishProvider:
    """Provider that reports CREATED twice, then PAID."""
    return MockSwishProvider(pending_polls=2)


@pytest.fixture
def channels(provider) -> ChannelCache:
    return ChannelCache(transport=provider.transport)


@pytest.fixture
def identity(pki):
    return load_identity(pki.bundle_path, pki.passphrase)


@pytest_asyncio.fixture
async def make_channel(identity, pki):
    """Build real secure channels over a given transport; all closed on teardown."""
    built = []

    def _make(transport):
        channel = build_channel(identity, pki.root_ca_path, transport=transport)
        built.append(channel)
        return channel

    yield _make

    for channel in built:
        await channel.aclose()


@pytest_asyncio.fixture
async def channel(make_channel, provider):
    return make_channel(provider.transport)
