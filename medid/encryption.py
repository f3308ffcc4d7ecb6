# medid/encryption.py
"""
Password protection for private keys at rest.

Blob layout (fixed, no magic number, no version tag):

    salt (16 bytes) || iv (16 bytes) || AES-256-CBC ciphertext (PKCS#7 padded)

The AES key is PBKDF2-HMAC-SHA256(password, salt, 100000 iterations, 32 bytes).
These constants are part of the format and must not change, or existing blobs
become unrecoverable.
"""

import logging
import os
from typing import Union

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from medid.errors import (
    InvalidArgumentError,
    InvalidEncodingError,
    InvalidKeyError,
    WrongPasswordOrCorruptDataError,
)
from medid.keys import load_private_key

logger = logging.getLogger(__name__)

SALT_SIZE = 16
IV_SIZE = 16
KEY_SIZE = 32  # AES-256
PBKDF2_ITERATIONS = 100_000
BLOCK_SIZE_BITS = algorithms.AES.block_size  # 128
HEADER_SIZE = SALT_SIZE + IV_SIZE


def derive_key(password: str, salt: bytes) -> bytes:
    """PBKDF2-HMAC-SHA256 over the UTF-8 password."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def _check_inputs(data: bytes, password: str, what: str) -> None:
    if not data:
        raise InvalidArgumentError(f"{what} must not be empty")
    if not password:
        raise InvalidArgumentError("Password must not be empty")


def encrypt_private_key(private_key: Union[bytes, bytearray], password: str) -> bytes:
    """
    Encrypt raw private-key bytes with a password.

    Returns:
        salt || iv || ciphertext

    Raises:
        InvalidArgumentError: If the key bytes or password are empty.
    """
    _check_inputs(private_key, password, "Private key")

    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    key = derive_key(password, salt)

    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(bytes(private_key)) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return salt + iv + ciphertext


def decrypt_private_key(blob: Union[bytes, bytearray], password: str) -> bytes:
    """
    Recover private-key bytes from a blob written by encrypt_private_key().

    Raises:
        InvalidArgumentError: If the blob or password is empty.
        InvalidEncodingError: If the blob is too short or the ciphertext is not
            a whole number of AES blocks.
        WrongPasswordOrCorruptDataError: If the padding is invalid after
            decryption (wrong password or tampered blob).
    """
    _check_inputs(blob, password, "Encrypted key blob")

    blob = bytes(blob)
    block_bytes = BLOCK_SIZE_BITS // 8
    ciphertext = blob[HEADER_SIZE:]
    if not ciphertext or len(ciphertext) % block_bytes:
        raise InvalidEncodingError(
            f"Encrypted key blob has invalid length {len(blob)} "
            f"(expected {HEADER_SIZE} + a multiple of {block_bytes})"
        )

    salt = blob[:SALT_SIZE]
    iv = blob[SALT_SIZE:HEADER_SIZE]
    key = derive_key(password, salt)

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        logger.debug(f"Padding check failed after decryption: {e}")
        raise WrongPasswordOrCorruptDataError("Wrong password or corrupt key data") from e


def load_encrypted_private_key(blob: Union[bytes, bytearray], password: str) -> rsa.RSAPrivateKey:
    """
    Decrypt a blob and parse the result as an RSA private key.

    A wrong password occasionally yields valid padding by chance; the key parse
    catches those cases and reports them the same way.

    Raises:
        WrongPasswordOrCorruptDataError: If decryption or key parsing fails.
    """
    key_bytes = decrypt_private_key(blob, password)
    try:
        return load_private_key(key_bytes)
    except InvalidKeyError as e:
        raise WrongPasswordOrCorruptDataError("Wrong password or corrupt key data") from e
