"""
Merchant credential store.

Loads the client identity used for mutual TLS from a passphrase-protected
PKCS#12 bundle: the private key, the merchant certificate and whatever CA
certificates the bundle embeds. The result lives in memory only.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

from swish_gateway.engine.errors import CredentialError

logger = logging.getLogger("swish_gateway.credentials")


@dataclass(frozen=True)
class ClientIdentity:
    """Key pair, certificate and issuing chain presented during the TLS handshake."""

    private_key: PrivateKeyTypes
    certificate: x509.Certificate
    ca_certificates: tuple[x509.Certificate, ...] = ()

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()


def load_identity(bundle_path: str | Path, passphrase: str) -> ClientIdentity:
    """
    Read and decrypt a PKCS#12 bundle.

    Args:
        bundle_path: Path to the .p12 file.
        passphrase: Bundle decryption passphrase.

    Returns:
        The decoded ClientIdentity.

    Raises:
        CredentialError: File missing or unreadable, wrong passphrase, or the
            bundle lacks a private key or certificate.
    """
    path = Path(bundle_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CredentialError(f"Cannot read certificate bundle {path}: {e}") from e

    try:
        key, certificate, ca_certificates = pkcs12.load_key_and_certificates(
            data, passphrase.encode("utf-8") if passphrase else None
        )
    except ValueError as e:
        # Raised both for a wrong passphrase and for corrupt bundles
        raise CredentialError(f"Cannot decrypt certificate bundle {path}: {e}") from e

    if key is None or certificate is None:
        raise CredentialError(f"Certificate bundle {path} has no private key or certificate")

    identity = ClientIdentity(
        private_key=key,
        certificate=certificate,
        ca_certificates=tuple(ca_certificates or ()),
    )
    logger.info(
        "Loaded client identity %s (%d embedded CA certificates)",
        identity.subject,
        len(identity.ca_certificates),
    )
    return identity
