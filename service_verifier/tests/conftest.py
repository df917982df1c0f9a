"""
Shared fixtures for Verifier service tests.
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from shared.test_helpers import APPLICATION_ID, FakeCertHost, create_certificate, format_timestamp


@pytest.fixture(scope="session")
def signing_key():
    """RSA key standing in for the platform's signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_certificate(signing_key):
    """Factory for certificates over the signing key."""
    def _make(**kwargs) -> bytes:
        return create_certificate(kwargs.pop("key", signing_key), **kwargs)
    return _make


@pytest.fixture
def certificate_pem(make_certificate):
    """A certificate that passes every trust check."""
    return make_certificate()


@pytest.fixture
def sign(signing_key):
    """Sign raw bytes the way the platform does (RSA PKCS#1 v1.5, SHA-1)."""
    def _sign(body: bytes, algorithm=None, key=None) -> str:
        raw = (key or signing_key).sign(body, padding.PKCS1v15(), algorithm or hashes.SHA1())
        return base64.b64encode(raw).decode("ascii")
    return _sign


@pytest.fixture
def fixed_now():
    """The pipeline's notion of 'now' in tests."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def make_body(fixed_now):
    """
    Build a skill request body.

    Pretty-printed on purpose: a verifier that re-serialized the parsed JSON
    would produce different bytes and fail the signature check.
    """
    def _make(timestamp: Any = "now", **request_fields) -> bytes:
        request: Dict[str, Any] = {
            "type": "LaunchRequest",
            "requestId": "amzn1.echo-api.request.0000",
            "locale": "en-US",
        }
        if timestamp == "now":
            request["timestamp"] = format_timestamp(fixed_now)
        elif timestamp is not None:
            request["timestamp"] = timestamp
        request.update(request_fields)
        payload = {
            "version": "1.0",
            "session": {
                "new": True,
                "sessionId": "amzn1.echo-api.session.0000",
                "application": {"applicationId": APPLICATION_ID},
            },
            "request": request,
        }
        return json.dumps(payload, indent=2).encode("utf-8")
    return _make


@pytest.fixture
def request_body(make_body):
    """A fresh, well-formed request body."""
    return make_body()


@pytest.fixture
def signature(sign, request_body):
    """Valid signature over `request_body`."""
    return sign(request_body)


@pytest.fixture
def cert_host(certificate_pem):
    """Fake certificate host serving the valid certificate."""
    return FakeCertHost(certificate_pem)
