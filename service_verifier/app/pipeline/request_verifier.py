"""
Skill request verification pipeline.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol, Union

from pydantic import BaseModel

from shared.errors import (
    MissingBodyError,
    MissingHeaderError,
    StaleRequestError,
    VerificationError,
)
from shared.logging import get_logger, set_skill_context, skill_context
from shared.metrics import MetricsCollector
from ..certs.store import CertificateStore
from ..validation.certificate_validator import CertificateValidator
from ..validation.signature_verifier import SignatureVerifier
from ..validation.url_validator import validate_cert_url


CERT_HEADER = "SignatureCertChainUrl"
SIG_HEADER = "Signature"
MAX_TOLERANCE = 150.0  # 2.5 minutes
DEFAULT_TIMESTAMP = datetime(1970, 1, 1, tzinfo=timezone.utc)


class HeaderSource(Protocol):
    """Anything that can look up a request header by name."""

    def get(self, key: str, default: Any = None) -> Any:
        ...


@dataclass(frozen=True)
class VerificationRequest:
    """The parts of one inbound request the pipeline checks."""

    cert_chain_url: str
    signature: str
    body: bytes
    timestamp: Any = None


class VerificationOutcome(BaseModel):
    """Accept/reject decision for one request."""

    accepted: bool
    code: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = {}


def read_payload(body: bytes) -> Optional[Dict[str, Any]]:
    """Decode a JSON object body, or None if it is not one."""
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError, RecursionError):
        return None
    return payload if isinstance(payload, dict) else None


def _lookup(payload: Optional[Dict[str, Any]], *path: str) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def parse_timestamp(value: Any) -> datetime:
    """
    Interpret a request timestamp.

    Strings are ISO-8601 (a trailing ``Z`` means UTC, a missing offset is
    taken as UTC); numbers are epoch milliseconds. A missing value maps to
    the Unix epoch, which is always outside the tolerance.
    """
    if value is None:
        return DEFAULT_TIMESTAMP

    if isinstance(value, bool):
        raise ValueError("boolean is not a timestamp")

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value}") from exc

    if isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    raise ValueError(f"unsupported timestamp type: {type(value).__name__}")


class RequestVerifier:
    """
    Verifies that a request was signed by the platform and is fresh.

    Steps run in a fixed order and the first failure is raised unchanged:
    header extraction, timestamp tolerance, certificate URL allowlist,
    certificate fetch, certificate trust checks, body signature.
    """

    def __init__(
        self,
        cert_store: CertificateStore,
        *,
        tolerance: Union[float, timedelta] = MAX_TOLERANCE,
        cert_validator: Optional[CertificateValidator] = None,
        signature_verifier: Optional[SignatureVerifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if not isinstance(tolerance, timedelta):
            tolerance = timedelta(seconds=tolerance)
        self.cert_store = cert_store
        self.tolerance = tolerance
        self.cert_validator = cert_validator or CertificateValidator()
        self.signature_verifier = signature_verifier or SignatureVerifier()
        self.metrics = metrics
        self.logger = get_logger("verifier.pipeline")
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def extract(self, headers: HeaderSource, body: Optional[bytes]) -> VerificationRequest:
        """Pull the signature headers, body and embedded timestamp."""
        chain_url = headers.get(CERT_HEADER)
        signature = headers.get(SIG_HEADER)

        if not chain_url:
            raise MissingHeaderError(f"No {CERT_HEADER} header provided.", details={"header": CERT_HEADER})
        if not signature:
            raise MissingHeaderError(f"No {SIG_HEADER} header provided.", details={"header": SIG_HEADER})
        if not body:
            raise MissingBodyError()

        payload = read_payload(body)
        set_skill_context(
            _lookup(payload, "session", "application", "applicationId")
            or _lookup(payload, "context", "System", "application", "applicationId")
        )

        timestamp = _lookup(payload, "request", "timestamp")
        self.logger.debug("extracted request", cert_url=chain_url, timestamp=timestamp)

        return VerificationRequest(
            cert_chain_url=chain_url,
            signature=signature,
            body=body,
            timestamp=timestamp,
        )

    def check_timestamp(self, request: VerificationRequest, now: Optional[datetime] = None) -> None:
        """Reject requests whose timestamp is further than the tolerance from now."""
        now = now or self._clock()
        try:
            timestamp = parse_timestamp(request.timestamp)
        except ValueError as exc:
            raise StaleRequestError(
                "Request timestamp could not be parsed.",
                details={"timestamp": str(request.timestamp)},
            ) from exc

        skew = abs(now - timestamp)
        if skew > self.tolerance:
            raise StaleRequestError(
                "Request timestamp is outside of allowed tolerance.",
                details={
                    "timestamp": request.timestamp,
                    "skew_seconds": round(skew.total_seconds(), 3),
                    "tolerance_seconds": self.tolerance.total_seconds(),
                },
            )

    async def verify(self, headers: HeaderSource, body: Optional[bytes]) -> None:
        """Run every check, raising the first VerificationError encountered."""
        with skill_context():
            try:
                request = self.extract(headers, body)
                self.check_timestamp(request)

                url = validate_cert_url(request.cert_chain_url)
                pem = await self.cert_store.fetch(url)
                cert = self.cert_validator.validate(pem, now=self._clock())
                self.signature_verifier.verify(cert.public_key, request.signature, request.body)
            except VerificationError as exc:
                self.logger.warning("error verifying request", code=exc.code, error=exc.message)
                self._record("rejected", exc.code)
                raise

            self.logger.info("verified request")
            self._record("accepted")

    async def check(self, headers: HeaderSource, body: Optional[bytes]) -> VerificationOutcome:
        """Like `verify`, but return the decision instead of raising."""
        try:
            await self.verify(headers, body)
        except VerificationError as exc:
            return VerificationOutcome(
                accepted=False,
                code=exc.code,
                error=exc.message,
                details=exc.details,
            )
        return VerificationOutcome(accepted=True)

    def _record(self, outcome: str, reason: str = "none") -> None:
        if self.metrics is not None:
            self.metrics.record_verification(outcome, reason)
