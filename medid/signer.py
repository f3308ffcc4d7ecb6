# medid/signer.py
"""
OpenMediaID Signer - RSA signatures over canonical .medid documents.

Algorithm:
    canonicalize(document without signature)
    -> RSA PKCS#1 v1.5 with SHA-256
    -> Base64
    -> MedidSignature{value, signer, publicKeyHint} attached to a new document
"""

import base64
import logging
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from medid.canonical import canonicalize
from medid.errors import InvalidArgumentError, InvalidKeyError
from medid.keys import PrivateKeyInput, load_private_key
from medid.models import MedidDocument, MedidSignature

logger = logging.getLogger(__name__)


class Signer:
    """
    Signs .medid documents with an RSA private key.

    Example:
        >>> keys = generate_keypair()
        >>> signer = Signer(private_key=keys.private_key, signer_name="Jane Doe")
        >>> signed = signer.sign(document)
        >>> signed.signature.signer
        'Jane Doe'
    """

    def __init__(
        self,
        private_key: PrivateKeyInput,
        signer_name: str,
        public_key_hint: Optional[str] = None,
    ):
        """
        Initialize the Signer with credentials.

        Args:
            private_key: PKCS#8 DER/PEM bytes or a loaded RSA private key.
            signer_name: Display name stored in the signature record.
            public_key_hint: Optional opaque identifier for the matching public key.

        Raises:
            InvalidArgumentError: If signer_name is empty.
            InvalidKeyError: If private_key is not a usable RSA private key.
        """
        if not signer_name or not signer_name.strip():
            raise InvalidArgumentError("Signer requires a non-empty 'signer_name'")

        self.signer_name = signer_name
        self.public_key_hint = public_key_hint
        self._key = load_private_key(private_key)

    def sign(self, document: MedidDocument) -> MedidDocument:
        """
        Sign a document and return a new, signed document.

        Any existing signature on `document` is ignored; the input value is
        left untouched.

        Raises:
            InvalidArgumentError: If document is None or has no collection.
            InvalidKeyError: If the RSA operation rejects the key.
            InvalidEncodingError: If the document holds text with no UTF-8 encoding.
        """
        if document is None or document.collection is None:
            raise InvalidArgumentError("Cannot sign a document without a collection")

        data = canonicalize(document)
        try:
            raw_signature = self._key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        except (ValueError, TypeError) as e:
            raise InvalidKeyError(f"RSA signing failed: {e}") from e

        signature = MedidSignature(
            value=base64.b64encode(raw_signature).decode("ascii"),
            signer=self.signer_name,
            public_key_hint=self.public_key_hint,
        )
        logger.debug(f"Signed document ({len(data)} canonical bytes) as {self.signer_name!r}")
        return document.with_signature(signature)


def sign(
    document: MedidDocument,
    private_key: PrivateKeyInput,
    signer_name: str,
    public_key_hint: Optional[str] = None,
) -> MedidDocument:
    """Functional form of Signer(private_key, signer_name, public_key_hint).sign(document)."""
    return Signer(private_key, signer_name, public_key_hint).sign(document)
