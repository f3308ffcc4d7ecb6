# medid/keys.py
"""
RSA key material for signing .medid documents.

Keys travel as bytes: private keys as PKCS#8 DER, public keys as
SubjectPublicKeyInfo DER (the content of a package's public.key member).
PEM input is accepted wherever bytes are loaded.
"""

import logging
from dataclasses import dataclass
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwcrypto import jwk

from medid.config import DEFAULT_KEY_SIZE
from medid.errors import InvalidKeyError, UnsupportedKeySizeError

logger = logging.getLogger(__name__)

PUBLIC_EXPONENT = 65537

PrivateKeyInput = Union[bytes, bytearray, str, rsa.RSAPrivateKey]
PublicKeyInput = Union[bytes, bytearray, str, rsa.RSAPublicKey]


@dataclass(frozen=True)
class KeyPair:
    """
    A freshly generated RSA key pair.

    Attributes:
        private_key: PKCS#8 DER bytes. Keep secret; see medid.encryption for
            password protection at rest.
        public_key: SubjectPublicKeyInfo DER bytes.
    """

    private_key: bytes
    public_key: bytes

    @property
    def public_key_hint(self) -> str:
        """JWK thumbprint of the public key."""
        return public_key_hint(self.public_key)


def generate_keypair(key_size: int = DEFAULT_KEY_SIZE) -> KeyPair:
    """
    Generate an independent RSA key pair.

    Args:
        key_size: Modulus size in bits (default: 2048).

    Raises:
        UnsupportedKeySizeError: If the cryptography backend rejects `key_size`.
    """
    try:
        private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
    except (ValueError, TypeError) as e:
        raise UnsupportedKeySizeError(f"Unsupported RSA key size {key_size!r}: {e}") from e

    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    logger.debug(f"Generated {key_size}-bit RSA key pair")
    return KeyPair(private_key=private_bytes, public_key=public_bytes)


def _as_bytes(data: Union[bytes, bytearray, str]) -> bytes:
    return data.encode("ascii") if isinstance(data, str) else bytes(data)


def _is_pem(data: bytes) -> bool:
    return data.lstrip().startswith(b"-----BEGIN")


def load_private_key(data: PrivateKeyInput) -> rsa.RSAPrivateKey:
    """
    Load an RSA private key from PKCS#8/PKCS#1 DER or PEM.

    Raises:
        InvalidKeyError: If the data is empty, unparseable, or not RSA.
    """
    if isinstance(data, rsa.RSAPrivateKey):
        return data
    if not isinstance(data, (bytes, bytearray, str)) or not data:
        raise InvalidKeyError("Private key must be non-empty DER or PEM data")

    try:
        raw = _as_bytes(data)
        if _is_pem(raw):
            key = serialization.load_pem_private_key(raw, password=None)
        else:
            key = serialization.load_der_private_key(raw, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyError(f"Invalid private key: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidKeyError(f"Private key must be RSA, got {type(key).__name__}")
    return key


def load_public_key(data: PublicKeyInput) -> rsa.RSAPublicKey:
    """
    Load an RSA public key from SubjectPublicKeyInfo DER or PEM.

    Raises:
        InvalidKeyError: If the data is empty, unparseable, or not RSA.
    """
    if isinstance(data, rsa.RSAPublicKey):
        return data
    if not isinstance(data, (bytes, bytearray, str)) or not data:
        raise InvalidKeyError("Public key must be non-empty DER or PEM data")

    try:
        raw = _as_bytes(data)
        if _is_pem(raw):
            key = serialization.load_pem_public_key(raw)
        else:
            key = serialization.load_der_public_key(raw)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyError(f"Invalid public key: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidKeyError(f"Public key must be RSA, got {type(key).__name__}")
    return key


def export_public_key(key: Union[rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> bytes:
    """SubjectPublicKeyInfo DER bytes for a loaded key (private keys export their public half)."""
    if isinstance(key, rsa.RSAPrivateKey):
        key = key.public_key()
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_hint(public_key: PublicKeyInput) -> str:
    """
    Default publicKeyHint for a key: its RFC 7638 JWK thumbprint (SHA-256, base64url).

    The hint only helps a reader pick the right key; it is never verified.
    """
    key = load_public_key(public_key)
    return jwk.JWK.from_pyca(key).thumbprint()
