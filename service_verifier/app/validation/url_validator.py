"""
Certificate chain URL validation.

The platform publishes its signing certificate under a single S3 prefix, so
a request may only point us at that location. The rules are:

  1. The scheme is ``https`` (case insensitive).
  2. The host is ``s3.amazonaws.com`` (case insensitive).
  3. The normalized path starts with ``/echo.api/`` (case sensitive).
  4. If a port is given, it is 443.

Anything else lets a caller make us download (and trust) a certificate from
a host of their choosing.
"""

import posixpath
from urllib.parse import urlsplit

from shared.errors import InvalidCertUrlError
from shared.logging import get_logger


CERT_SCHEME = "https"
CERT_HOST = "s3.amazonaws.com"
CERT_PATH_PREFIX = "/echo.api/"
CERT_PORT = 443

logger = get_logger("verifier.url_validator")


def normalize_path(path: str) -> str:
    """Resolve ``.`` and ``..`` segments, keeping a trailing slash."""
    if not path:
        return "/"
    normalized = posixpath.normpath(path)
    if path.endswith("/") and not normalized.endswith("/"):
        normalized += "/"
    return normalized


def validate_cert_url(url: str) -> str:
    """Check `url` against the certificate host allowlist and return it unchanged."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise InvalidCertUrlError(
            "Certificate URL could not be parsed.",
            details={"url": url, "check": "parse"},
        ) from exc

    if parts.scheme.lower() != CERT_SCHEME:
        raise InvalidCertUrlError(
            f"Certificate URL scheme must be {CERT_SCHEME}.",
            details={"url": url, "check": "scheme"},
        )

    if (parts.hostname or "").lower() != CERT_HOST:
        raise InvalidCertUrlError(
            f"Certificate URL host must be {CERT_HOST}.",
            details={"url": url, "check": "host"},
        )

    path = normalize_path(parts.path)
    if not path.startswith(CERT_PATH_PREFIX):
        raise InvalidCertUrlError(
            f"{path} does not start with {CERT_PATH_PREFIX}",
            details={"url": url, "check": "path"},
        )

    if port is not None and port != CERT_PORT:
        raise InvalidCertUrlError(
            f"Certificate URL port must be {CERT_PORT}.",
            details={"url": url, "check": "port"},
        )

    logger.debug("valid certificate url", url=url)
    return url
