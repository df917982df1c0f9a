"""
Request validation package.

Provides the individual checks the Verifier Service runs against an inbound
skill request:

- url_validator: allowlist for the signing certificate URL.
- certificate_validator: leaf certificate alt-name and validity checks.
- signature_verifier: RSA signature over the raw request body.

Each check raises a `shared.errors.VerificationError` subclass on failure and
is otherwise silent (or returns the value the next stage needs).
"""

from .url_validator import validate_cert_url
from .certificate_validator import CertificateValidator, ParsedCertificate
from .signature_verifier import SignatureVerifier

__all__ = [
    "CertificateValidator",
    "ParsedCertificate",
    "SignatureVerifier",
    "validate_cert_url",
]
