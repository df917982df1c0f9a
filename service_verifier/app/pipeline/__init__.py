"""
Verification pipeline package.

Wires the validation checks and the certificate store into the ordered
sequence every inbound skill request goes through.
"""

from .request_verifier import (
    HeaderSource,
    RequestVerifier,
    VerificationOutcome,
    VerificationRequest,
)

__all__ = [
    "HeaderSource",
    "RequestVerifier",
    "VerificationOutcome",
    "VerificationRequest",
]
