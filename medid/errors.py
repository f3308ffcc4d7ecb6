"""
Exception hierarchy for OpenMediaID.

Every error raised by the package derives from MedidError, so integrators can
catch one type. Argument errors also derive from ValueError.
"""

from typing import List, Optional


class MedidError(Exception):
    """Base class for all OpenMediaID errors."""


class InvalidArgumentError(MedidError, ValueError):
    """A required string was empty or a required object was missing."""


class InvalidKeyError(MedidError):
    """Asymmetric key material could not be parsed or is not an RSA key."""


class InvalidEncodingError(MedidError):
    """Malformed Base64, JSON, timestamp or binary blob."""


class WrongPasswordOrCorruptDataError(MedidError):
    """An encrypted private key did not decrypt to valid data."""


class UnsupportedKeySizeError(MedidError, ValueError):
    """The cryptographic provider rejected the requested RSA key size."""


class MalformedPackageError(MedidError):
    """A .medid archive is unreadable, lacks medid.json, or the document fails to parse."""


class ValidationFailedError(MedidError):
    """
    Structural validation of a document failed.

    Attributes:
        errors: One message per violated rule.
    """

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or "; ".join(self.errors) or "Validation failed")


class DerivedArtifactError(MedidError):
    """A thumbnail or preview clip could not be produced."""
