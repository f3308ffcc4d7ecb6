# medid/verifier.py
"""
OpenMediaID Verifier - checks RSA signatures on .medid documents.

verify() is a pure predicate. An unsigned document, a signature that does not
decode, a key that does not parse, and a digest mismatch all yield False.
Only input that is not key material or signature text at all raises
InvalidEncodingError.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from medid.canonical import canonicalize
from medid.errors import InvalidEncodingError, InvalidKeyError, MedidError
from medid.keys import PublicKeyInput, load_public_key
from medid.models import MedidDocument
from medid.package import load

logger = logging.getLogger(__name__)


class Verifier:
    """
    Verifies .medid document signatures against one RSA public key.

    Example:
        >>> verifier = Verifier(public_key=keys.public_key)
        >>> verifier.verify(signed_document)
        True
    """

    def __init__(self, public_key: PublicKeyInput):
        """
        Args:
            public_key: SubjectPublicKeyInfo DER/PEM bytes or a loaded RSA public key.

        Raises:
            InvalidEncodingError: If public_key is None, empty, or not bytes/str/RSA key.
        """
        if isinstance(public_key, rsa.RSAPublicKey):
            self._key: Optional[rsa.RSAPublicKey] = public_key
            return
        if not isinstance(public_key, (bytes, bytearray, str)) or not public_key:
            raise InvalidEncodingError("Public key must be non-empty DER or PEM data")

        try:
            self._key = load_public_key(public_key)
        except InvalidKeyError as e:
            # an unusable key verifies nothing
            logger.debug(f"Public key rejected: {e}")
            self._key = None

    def verify(self, document: MedidDocument) -> bool:
        """
        Return True only if `document` carries a valid signature for this key.

        Raises:
            InvalidEncodingError: If the signature value is not a string,
                or the document holds text with no UTF-8 encoding.
        """
        signature = document.signature if document is not None else None
        if signature is None or not signature.value:
            return False
        if not isinstance(signature.value, str):
            raise InvalidEncodingError("Signature value must be a Base64 string")
        if self._key is None:
            return False

        try:
            raw_signature = base64.b64decode(signature.value, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.debug(f"Signature value is not valid Base64: {e}")
            return False

        data = canonicalize(document)
        try:
            self._key.verify(raw_signature, data, padding.PKCS1v15(), hashes.SHA256())
            return True
        except InvalidSignature:
            logger.debug("Signature does not match canonical document bytes")
            return False


def verify(document: MedidDocument, public_key: PublicKeyInput) -> bool:
    """Functional form of Verifier(public_key).verify(document)."""
    return Verifier(public_key).verify(document)


def verify_package(
    path: Union[str, Path],
    public_key: Optional[PublicKeyInput] = None,
) -> bool:
    """
    Load a .medid package and verify its signature.

    Uses `public_key` when given, otherwise the package's own public.key
    member. Never raises: any failure yields False.

    Note that a package's embedded public.key only proves internal
    consistency; it says nothing about who signed it.
    """
    try:
        document, embedded_key = load(path)
        key = public_key if public_key is not None else embedded_key
        if key is None:
            logger.debug(f"No public key available to verify {path}")
            return False
        return Verifier(key).verify(document)
    except MedidError as e:
        logger.debug(f"Package verification failed for {path}: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error verifying {path}: {e}")
        return False
