"""
Signing certificate validation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import FrozenSet, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

from shared.errors import InvalidCertificateError
from shared.logging import get_logger


CERT_ALT_NAME = "echo-api.amazon.com"


@dataclass(frozen=True)
class ParsedCertificate:
    """The fields of a signing certificate the verifier relies on."""

    alt_names: FrozenSet[str]
    not_before: datetime
    not_after: datetime
    public_key: PublicKeyTypes


class CertificateValidator:
    """
    Checks the leaf certificate of a PEM bundle.

    Only the leaf is inspected: the subject alternative names must include
    the platform signing host and the current time must fall strictly inside
    the validity window. The chain is not walked to a root CA.
    """

    def __init__(self, trusted_alt_name: str = CERT_ALT_NAME):
        self.trusted_alt_name = trusted_alt_name
        self.logger = get_logger("verifier.certificate_validator")

    def parse(self, pem: bytes) -> ParsedCertificate:
        """Parse the leaf certificate out of a PEM bundle."""
        try:
            certificates = x509.load_pem_x509_certificates(pem)
        except ValueError as exc:
            raise InvalidCertificateError(
                "Certificate could not be parsed.",
                details={"check": "parse"},
            ) from exc

        leaf = certificates[0]
        # Extensions and the key are decoded lazily by cryptography.
        try:
            alt_names = self._alt_names(leaf)
            public_key = leaf.public_key()
        except (ValueError, x509.DuplicateExtension, UnsupportedAlgorithm) as exc:
            raise InvalidCertificateError(
                "Certificate could not be parsed.",
                details={"check": "parse"},
            ) from exc

        return ParsedCertificate(
            alt_names=alt_names,
            not_before=leaf.not_valid_before_utc,
            not_after=leaf.not_valid_after_utc,
            public_key=public_key,
        )

    @staticmethod
    def _alt_names(leaf: x509.Certificate) -> FrozenSet[str]:
        try:
            san = leaf.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            return frozenset()
        return frozenset(san.value.get_values_for_type(x509.DNSName))

    def validate(self, pem: bytes, now: Optional[datetime] = None) -> ParsedCertificate:
        """Parse `pem` and run the trust checks, returning the parsed view."""
        self.logger.debug("validating certificate")

        cert = self.parse(pem)
        now = now or datetime.now(timezone.utc)

        if self.trusted_alt_name not in cert.alt_names:
            raise InvalidCertificateError(
                "Invalid alt names.",
                details={"check": "alt_names", "alt_names": sorted(cert.alt_names)},
            )

        if not now > cert.not_before:
            raise InvalidCertificateError(
                "Certificate is not yet valid.",
                details={"check": "not_before", "not_before": cert.not_before.isoformat()},
            )

        if not now < cert.not_after:
            raise InvalidCertificateError(
                "Certificate expired.",
                details={"check": "not_after", "not_after": cert.not_after.isoformat()},
            )

        self.logger.debug("valid certificate", not_after=cert.not_after.isoformat())
        return cert
