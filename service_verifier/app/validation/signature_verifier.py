"""
Request body signature verification.
"""

import base64
import binascii
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

from shared.errors import SignatureMismatchError
from shared.logging import get_logger


class SignatureVerifier:
    """
    Verifies an RSA PKCS#1 v1.5 signature over the raw request body.

    The ``Signature`` header is computed with SHA-1; pass ``hashes.SHA256()``
    to check the ``Signature-256`` variant instead. The signature must be
    checked against the exact bytes received: re-serializing a parsed body
    can reorder keys or change whitespace.
    """

    def __init__(self, algorithm: Optional[hashes.HashAlgorithm] = None):
        self.algorithm = algorithm or hashes.SHA1()
        self.logger = get_logger("verifier.signature_verifier")

    def verify(self, public_key: PublicKeyTypes, signature: str, body: bytes) -> None:
        """Raise SignatureMismatchError unless `signature` signs `body`."""
        self.logger.debug("checking body against signature", algorithm=self.algorithm.name)

        if not isinstance(public_key, rsa.RSAPublicKey):
            raise SignatureMismatchError(
                "Certificate key type cannot verify request signatures.",
                details={"key_type": type(public_key).__name__},
            )

        try:
            raw_signature = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SignatureMismatchError(
                "Signature is not valid base64.",
            ) from exc

        try:
            public_key.verify(raw_signature, body, padding.PKCS1v15(), self.algorithm)
        except InvalidSignature as exc:
            raise SignatureMismatchError() from exc

        self.logger.debug("signature matches body")
