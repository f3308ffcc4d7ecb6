# medid/hashing.py
"""
Content hashing for media entries.

Hashes cover the raw file bytes only, never metadata. BLAKE3 is mandatory;
SHA-256 is an optional legacy companion. The combined string is stored in
MediaEntry.hash and is therefore covered by the document signature.

Formats:
    "blake3:<hex>"
    "sha256:<hex>|blake3:<hex>"
"""

import hashlib
import hmac
import logging
from pathlib import Path
from typing import Dict, Union

import blake3

from medid.config import HASH_CHUNK_SIZE
from medid.errors import InvalidEncodingError

logger = logging.getLogger(__name__)

BLAKE3 = "blake3"
SHA256 = "sha256"

_HEX_LENGTHS = {BLAKE3: 64, SHA256: 64}
_HEX_DIGITS = frozenset("0123456789abcdef")


def _digest_file(path: Union[str, Path], hasher) -> str:
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_blake3(path: Union[str, Path]) -> str:
    """BLAKE3 of the file bytes, 64 lowercase hex characters."""
    return _digest_file(path, blake3.blake3())


def compute_sha256(path: Union[str, Path]) -> str:
    """SHA-256 of the file bytes, 64 lowercase hex characters."""
    return _digest_file(path, hashlib.sha256())


def compute_content_hash(path: Union[str, Path], include_sha256: bool = False) -> str:
    """
    Build the MediaEntry.hash string for a file.

    Args:
        path: File to hash.
        include_sha256: Prefix the legacy SHA-256 digest.

    Returns:
        "blake3:<hex>" or "sha256:<hex>|blake3:<hex>".
    """
    value = f"{BLAKE3}:{compute_blake3(path)}"
    if include_sha256:
        value = f"{SHA256}:{compute_sha256(path)}|{value}"
    return value


def parse_content_hash(value: str) -> Dict[str, str]:
    """
    Split a content hash string into {algorithm: hex}.

    Raises:
        InvalidEncodingError: For unknown algorithms, bad hex, duplicates, or
            a string without a blake3 component.
    """
    if not isinstance(value, str) or not value:
        raise InvalidEncodingError("Content hash must be a non-empty string")

    digests: Dict[str, str] = {}
    for part in value.split("|"):
        algorithm, sep, hex_digest = part.partition(":")
        if not sep:
            raise InvalidEncodingError(f"Malformed content hash component: {part!r}")
        if algorithm not in _HEX_LENGTHS:
            raise InvalidEncodingError(f"Unsupported hash algorithm: {algorithm!r}")
        if algorithm in digests:
            raise InvalidEncodingError(f"Duplicate hash algorithm: {algorithm!r}")
        if len(hex_digest) != _HEX_LENGTHS[algorithm] or not set(hex_digest) <= _HEX_DIGITS:
            raise InvalidEncodingError(f"Malformed {algorithm} digest: {hex_digest!r}")
        digests[algorithm] = hex_digest

    if BLAKE3 not in digests:
        raise InvalidEncodingError("Content hash has no blake3 component")
    return digests


def verify_content_hash(path: Union[str, Path], value: str) -> bool:
    """Recompute every digest listed in `value` for `path` and compare."""
    expected = parse_content_hash(value)
    compute = {BLAKE3: compute_blake3, SHA256: compute_sha256}
    for algorithm, hex_digest in expected.items():
        actual = compute[algorithm](path)
        if not hmac.compare_digest(actual, hex_digest):
            logger.debug(f"{algorithm} mismatch for {path}: expected={hex_digest}, actual={actual}")
            return False
    return True
