"""
OpenMediaID - portable, digitally-signed containers for media collections.

This package defines the .medid format: a canonical JSON document describing
media files, RSA signatures over that document, BLAKE3 content hashes binding
entries to file bytes, and password-protected storage for signing keys.
"""

__version__ = "1.0.0"

# Document model
from .models import (
    MediaMetadata,
    MediaEntry,
    MediaCollection,
    MedidSignature,
    MedidDocument,
)
from .canonical import canonicalize, parse_document, to_storage_json

# Signing/verification
from .signer import Signer, sign
from .verifier import Verifier, verify, verify_package

# Key management
from .keys import KeyPair, generate_keypair, load_private_key, load_public_key, public_key_hint
from .encryption import encrypt_private_key, decrypt_private_key, load_encrypted_private_key

# Hashing and packaging
from .hashing import compute_content_hash, parse_content_hash, verify_content_hash
from .package import SaveOptions, validate, save, load, try_save, ensure_valid

from .errors import (
    MedidError,
    InvalidArgumentError,
    InvalidKeyError,
    InvalidEncodingError,
    WrongPasswordOrCorruptDataError,
    UnsupportedKeySizeError,
    MalformedPackageError,
    ValidationFailedError,
    DerivedArtifactError,
)

__all__ = [
    "__version__",
    # Model
    "MediaMetadata",
    "MediaEntry",
    "MediaCollection",
    "MedidSignature",
    "MedidDocument",
    "canonicalize",
    "parse_document",
    "to_storage_json",
    # Core
    "Signer",
    "sign",
    "Verifier",
    "verify",
    "verify_package",
    # Key management
    "KeyPair",
    "generate_keypair",
    "load_private_key",
    "load_public_key",
    "public_key_hint",
    "encrypt_private_key",
    "decrypt_private_key",
    "load_encrypted_private_key",
    # Hashing / packaging
    "compute_content_hash",
    "parse_content_hash",
    "verify_content_hash",
    "SaveOptions",
    "validate",
    "save",
    "load",
    "try_save",
    "ensure_valid",
    # Errors
    "MedidError",
    "InvalidArgumentError",
    "InvalidKeyError",
    "InvalidEncodingError",
    "WrongPasswordOrCorruptDataError",
    "UnsupportedKeySizeError",
    "MalformedPackageError",
    "ValidationFailedError",
    "DerivedArtifactError",
]
