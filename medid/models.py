# medid/models.py
"""
OpenMediaID document model.

A .medid document describes a collection of media files. All types are frozen
dataclasses: signing, hashing and packaging never mutate a document, they
return a new value built with dataclasses.replace().

JSON field names are fixed (camelCase, see to_dict()). A field holding None is
omitted from the JSON entirely, while an empty string is emitted as "". The
two states stay distinct so the canonical form is stable across re-parsing.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from medid.errors import InvalidEncodingError

FORMAT_VERSION = "1.0"
DEFAULT_HASH_ALGORITHM = "blake3"


# =============================================================================
# Helpers
# =============================================================================


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO 8601, using a 'Z' suffix for UTC."""
    text = value.isoformat()
    if value.tzinfo is not None and value.utcoffset() is not None and not value.utcoffset():
        text = text[: -len("+00:00")] + "Z"
    return text


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp produced by format_timestamp() or another writer."""
    if not isinstance(value, str) or not value:
        raise InvalidEncodingError(f"Expected ISO 8601 timestamp, got {value!r}")
    text = value
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidEncodingError(f"Invalid ISO 8601 timestamp {value!r}: {e}") from e


def _compact(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    # dicts keep insertion order, so declaration order is preserved
    return {key: value for key, value in pairs if value is not None}


def _expect_mapping(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidEncodingError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _opt_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidEncodingError(f"'{key}' must be a string")
    return value


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        raise InvalidEncodingError(f"'{key}' must be an integer")
    return value


def _opt_timestamp(data: Dict[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    return None if value is None else parse_timestamp(value)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class MediaMetadata:
    """
    Descriptive values for one media file.

    Every field is independently optional; None means "not applicable to this
    media type", not "unknown" or zero.
    """

    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[str] = None  # opaque, passed through verbatim
    date_taken: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("width", self.width),
                ("height", self.height),
                ("duration", self.duration),
                ("dateTaken", format_timestamp(self.date_taken) if self.date_taken else None),
            ]
        )

    @classmethod
    def from_dict(cls, data: Any) -> "MediaMetadata":
        data = _expect_mapping(data, "metadata")
        return cls(
            width=_opt_int(data, "width"),
            height=_opt_int(data, "height"),
            duration=_opt_str(data, "duration"),
            date_taken=_opt_timestamp(data, "dateTaken"),
        )

    def merged_with(self, fallback: "MediaMetadata") -> "MediaMetadata":
        """Fill fields that are None here from `fallback`."""
        return MediaMetadata(
            width=self.width if self.width is not None else fallback.width,
            height=self.height if self.height is not None else fallback.height,
            duration=self.duration if self.duration is not None else fallback.duration,
            date_taken=self.date_taken if self.date_taken is not None else fallback.date_taken,
        )


@dataclass(frozen=True)
class MediaEntry:
    """
    One media file inside a collection.

    Attributes:
        filename: Display file name (required).
        hash: Content hash string, e.g. "blake3:<hex>" (required once finalized).
        length: File size in bytes.
        metadata: MediaMetadata (required once finalized).
        mime_type: MIME type (required once finalized).
        thumbnail_path: Relative path of the thumbnail member, e.g. "thumbnails/a_thumb.jpg".
        preview_media_path: Relative path of the preview clip, e.g. "media/a_preview.mp4".
        source_path: Local file used while assembling a package. Never serialized
            and ignored by equality.
    """

    filename: Optional[str]
    hash: Optional[str] = None
    length: Optional[int] = 0
    metadata: Optional[MediaMetadata] = None
    mime_type: Optional[str] = None
    thumbnail_path: Optional[str] = None
    preview_media_path: Optional[str] = None
    source_path: Optional[str] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("filename", self.filename),
                ("hash", self.hash),
                ("length", self.length),
                ("metadata", self.metadata.to_dict() if self.metadata is not None else None),
                ("mimeType", self.mime_type),
                ("thumbnailPath", self.thumbnail_path),
                ("previewMediaPath", self.preview_media_path),
            ]
        )

    @classmethod
    def from_dict(cls, data: Any) -> "MediaEntry":
        data = _expect_mapping(data, "entry")
        metadata = data.get("metadata")
        return cls(
            filename=_opt_str(data, "filename"),
            hash=_opt_str(data, "hash"),
            length=_opt_int(data, "length"),
            metadata=MediaMetadata.from_dict(metadata) if metadata is not None else None,
            mime_type=_opt_str(data, "mimeType"),
            thumbnail_path=_opt_str(data, "thumbnailPath"),
            preview_media_path=_opt_str(data, "previewMediaPath"),
        )


@dataclass(frozen=True)
class MediaCollection:
    """A named, ordered set of media entries."""

    name: Optional[str]
    publisher: Optional[str] = None
    created: Optional[datetime] = field(default_factory=lambda: datetime.now(timezone.utc))
    hash_algorithm: Optional[str] = DEFAULT_HASH_ALGORITHM
    entries: Tuple[MediaEntry, ...] = ()

    def __post_init__(self):
        # accept any iterable (e.g. a list) but store an immutable tuple
        if not isinstance(self.entries, tuple):
            object.__setattr__(self, "entries", tuple(self.entries))

    def with_entries(self, entries: Iterable[MediaEntry]) -> "MediaCollection":
        """Return a copy holding `entries`."""
        return replace(self, entries=tuple(entries))

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("name", self.name),
                ("publisher", self.publisher),
                ("created", format_timestamp(self.created) if self.created else None),
                ("hashAlgorithm", self.hash_algorithm),
                ("entries", [entry.to_dict() for entry in self.entries]),
            ]
        )

    @classmethod
    def from_dict(cls, data: Any) -> "MediaCollection":
        data = _expect_mapping(data, "collection")
        entries = data.get("entries")
        if entries is None:
            entries = []
        elif not isinstance(entries, list):
            raise InvalidEncodingError("'entries' must be a JSON array")
        return cls(
            name=_opt_str(data, "name"),
            publisher=_opt_str(data, "publisher"),
            created=_opt_timestamp(data, "created"),
            hash_algorithm=_opt_str(data, "hashAlgorithm"),
            entries=tuple(MediaEntry.from_dict(entry) for entry in entries),
        )


@dataclass(frozen=True)
class MedidSignature:
    """
    Signature record attached to a signed document.

    Attributes:
        value: Base64 of the raw RSA signature bytes.
        signer: Display name of the signer.
        public_key_hint: Opaque key identifier. Not verified.
    """

    value: str
    signer: Optional[str] = None
    public_key_hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("value", self.value),
                ("signer", self.signer),
                ("publicKeyHint", self.public_key_hint),
            ]
        )

    @classmethod
    def from_dict(cls, data: Any) -> "MedidSignature":
        data = _expect_mapping(data, "signature")
        if "value" not in data:
            raise InvalidEncodingError("Signature is missing 'value'")
        return cls(
            value=data["value"],
            signer=_opt_str(data, "signer"),
            public_key_hint=_opt_str(data, "publicKeyHint"),
        )


@dataclass(frozen=True)
class MedidDocument:
    """
    Top-level .medid document.

    The document is signed as a whole except for the `signature` field itself.
    """

    collection: Optional[MediaCollection]
    format_version: Optional[str] = FORMAT_VERSION
    signature: Optional[MedidSignature] = None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None and bool(self.signature.value)

    def with_signature(self, signature: Optional[MedidSignature]) -> "MedidDocument":
        """Return a copy carrying `signature`."""
        return replace(self, signature=signature)

    def without_signature(self) -> "MedidDocument":
        """Return a copy with the signature removed."""
        return replace(self, signature=None)

    def with_collection(self, collection: MediaCollection) -> "MedidDocument":
        return replace(self, collection=collection)

    @property
    def entries(self) -> List[MediaEntry]:
        return list(self.collection.entries) if self.collection is not None else []

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("medid", self.format_version),
                ("collection", self.collection.to_dict() if self.collection is not None else None),
                ("signature", self.signature.to_dict() if self.signature is not None else None),
            ]
        )

    @classmethod
    def from_dict(cls, data: Any) -> "MedidDocument":
        data = _expect_mapping(data, "document")
        if data.get("collection") is None:
            raise InvalidEncodingError("Document is missing 'collection'")
        signature = data.get("signature")
        return cls(
            format_version=_opt_str(data, "medid"),
            collection=MediaCollection.from_dict(data["collection"]),
            signature=MedidSignature.from_dict(signature) if signature is not None else None,
        )
