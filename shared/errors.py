"""
Shared error handling for the Skill Request Verifier.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class VerifierException(Exception):
    """Base exception for verifier services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(VerifierException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotConfiguredError(VerifierException):
    """A route was called for a collaborator the service was not given."""

    status_code = 501

    def __init__(self, message: str = "Not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_CONFIGURED", message, details)


class VerificationError(VerifierException):
    """
    Request verification failure.

    Every subclass is terminal: the pipeline stops at the first one raised
    and the request is rejected.
    """

    code = "VERIFICATION_ERROR"

    def __init__(self, message: str = "Request verification failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(self.code, message, details)


class MissingHeaderError(VerificationError):
    """A required signature header was not supplied."""

    code = "MISSING_HEADER"


class MissingBodyError(VerificationError):
    """The request carried no body to verify."""

    code = "MISSING_BODY"

    def __init__(self, message: str = "No body provided.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class StaleRequestError(VerificationError):
    """The embedded timestamp lies outside the allowed tolerance."""

    code = "STALE_REQUEST"


class InvalidCertUrlError(VerificationError):
    """The certificate chain URL failed the allowlist."""

    code = "INVALID_CERT_URL"


class CertFetchError(VerificationError):
    """The signing certificate could not be downloaded."""

    code = "CERT_FETCH_FAILED"

    def __init__(self, message: str = "Failed to fetch signing certificate.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidCertificateError(VerificationError):
    """The signing certificate failed a trust check."""

    code = "INVALID_CERTIFICATE"


class SignatureMismatchError(VerificationError):
    """The signature does not match the request body."""

    code = "SIGNATURE_MISMATCH"

    def __init__(self, message: str = "Could not verify request body.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
