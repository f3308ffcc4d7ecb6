# medid/package.py
"""
.medid package assembly and extraction.

Layout of a package (a zip archive):

    medid.json          the (possibly signed) document, UTF-8 JSON
    public.key          optional SubjectPublicKeyInfo DER bytes
    thumbnails/*.jpg    optional thumbnails for image entries
    media/*             optional preview clips for video entries

Every save/load works inside its own uniquely-named staging directory that is
removed on every exit path.
"""

import logging
import os
import tempfile
import uuid
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

from medid.canonical import encode_utf8, parse_document, to_storage_json
from medid.config import STAGING_ROOT
from medid.errors import (
    InvalidArgumentError,
    InvalidEncodingError,
    MalformedPackageError,
    ValidationFailedError,
)
from medid.hashing import compute_content_hash
from medid.keys import PrivateKeyInput, export_public_key, load_private_key, public_key_hint
from medid.media import (
    create_preview,
    create_thumbnail,
    extract_metadata,
    guess_mime_type,
    is_image,
    is_video,
)
from medid.models import MediaEntry, MedidDocument
from medid.signer import Signer

logger = logging.getLogger(__name__)

PACKAGE_EXTENSION = ".medid"
DOCUMENT_MEMBER = "medid.json"
PUBLIC_KEY_MEMBER = "public.key"
THUMBNAILS_DIR = "thumbnails"
PREVIEWS_DIR = "media"
STAGING_PREFIX = "medid-"


@dataclass
class SaveOptions:
    """
    Options for save().

    Attributes:
        public_key: Bytes written verbatim as the public.key member.
        private_key: RSA private key used to sign; signing also needs signer_name.
        signer_name: Display name stored in the signature record.
        public_key_hint: Opaque key hint; defaults to the JWK thumbprint of the
            signing key.
        include_sha256: Add the legacy SHA-256 digest to each entry hash.
        include_thumbnails: Generate thumbnails for image entries.
        include_preview_media: Generate preview clips for video entries.
    """

    public_key: Optional[bytes] = None
    private_key: Optional[PrivateKeyInput] = None
    signer_name: Optional[str] = None
    public_key_hint: Optional[str] = None
    include_sha256: bool = False
    include_thumbnails: bool = True
    include_preview_media: bool = True

    @property
    def wants_signature(self) -> bool:
        return self.private_key is not None and bool(self.signer_name and self.signer_name.strip())


# =============================================================================
# Staging
# =============================================================================


@contextmanager
def staging_directory(root: Optional[Union[str, Path]] = None) -> Iterator[Path]:
    """
    Create a fresh, uniquely-named scratch directory and remove it on exit.

    The directory is removed whether the body returns or raises.
    """
    parent = Path(root or STAGING_ROOT)
    parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix=STAGING_PREFIX, dir=parent) as path:
        yield Path(path)


# =============================================================================
# Validation
# =============================================================================


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _has_source(entry: MediaEntry) -> bool:
    return bool(entry.source_path) and Path(entry.source_path).is_file()


def validate(document: Optional[MedidDocument], allow_pending: bool = False) -> List[str]:
    """
    Structural checks on a document. Pure: no I/O unless allow_pending is set.

    Args:
        document: Document to check.
        allow_pending: Treat entries whose source_path points at an existing
            file as complete, since save() fills in their hash, MIME type
            and metadata.

    Returns:
        One message per violated rule; an empty list means valid.
    """
    if document is None:
        return ["Document is missing."]
    collection = document.collection
    if collection is None:
        return ["Missing collection."]

    errors: List[str] = []
    if _blank(collection.name):
        errors.append("Collection name is required.")
    if not collection.entries:
        errors.append("At least one media entry is required.")

    for index, entry in enumerate(collection.entries):
        if _blank(entry.filename):
            errors.append(f"Entry #{index} is missing Filename.")
        label = entry.filename or f"#{index}"
        if allow_pending and _has_source(entry):
            continue
        if _blank(entry.mime_type):
            errors.append(f"Entry '{label}' is missing MimeType.")
        if _blank(entry.hash):
            errors.append(f"Entry '{label}' is missing Hash.")
        if entry.metadata is None:
            errors.append(f"Entry '{label}' is missing Metadata.")

    return errors


def ensure_valid(document: Optional[MedidDocument]) -> None:
    """
    Raises:
        ValidationFailedError: Carrying every message from validate().
    """
    errors = validate(document)
    if errors:
        raise ValidationFailedError(errors)


# =============================================================================
# Save
# =============================================================================


def _unique_member(directory: Path, stem: str, suffix: str) -> Path:
    candidate = directory / f"{stem}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}-{counter}{suffix}"
        counter += 1
    return candidate


def _best_effort(
    producer: Callable[[Path, Path], Path],
    source: Path,
    target: Path,
    staging: Path,
) -> Optional[str]:
    """Run a thumbnail/preview producer; any failure leaves the path unset."""
    target.parent.mkdir(exist_ok=True)
    try:
        producer(source, target)
    except Exception as e:
        logger.warning(f"Skipping {target.parent.name} artifact for {source.name}: {e}")
        target.unlink(missing_ok=True)
        return None
    return target.relative_to(staging).as_posix()


def _finalize_entry(entry: MediaEntry, staging: Path, opts: SaveOptions) -> MediaEntry:
    if not _has_source(entry):
        return entry

    source = Path(entry.source_path)
    mime_type = guess_mime_type(source)
    extracted = extract_metadata(source, mime_type)
    metadata = entry.metadata.merged_with(extracted) if entry.metadata is not None else extracted
    stem = Path(entry.filename or source.name).stem or "entry"

    thumbnail_path = None
    if opts.include_thumbnails and is_image(mime_type):
        target = _unique_member(staging / THUMBNAILS_DIR, f"{stem}_thumb", ".jpg")
        thumbnail_path = _best_effort(create_thumbnail, source, target, staging)

    preview_media_path = None
    if opts.include_preview_media and is_video(mime_type):
        target = _unique_member(staging / PREVIEWS_DIR, f"{stem}_preview", ".mp4")
        preview_media_path = _best_effort(create_preview, source, target, staging)

    return replace(
        entry,
        filename=entry.filename or source.name,
        hash=compute_content_hash(source, include_sha256=opts.include_sha256),
        length=source.stat().st_size,
        metadata=metadata,
        mime_type=mime_type,
        thumbnail_path=thumbnail_path,
        preview_media_path=preview_media_path,
    )


def _write_archive(staging: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(f".{destination.name}.{uuid.uuid4().hex}.partial")
    try:
        with zipfile.ZipFile(partial, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in sorted(staging.rglob("*")):
                if path.is_file():
                    archive.write(path, path.relative_to(staging).as_posix())
        os.replace(partial, destination)
    finally:
        partial.unlink(missing_ok=True)


def save(
    document: MedidDocument,
    destination: Union[str, Path],
    options: Optional[SaveOptions] = None,
) -> MedidDocument:
    """
    Assemble and write a .medid package.

    For each entry whose source_path exists, the MIME type, content hash,
    length and metadata are (re)computed and thumbnails/previews are produced
    best-effort. The document is signed when options carry a private key and
    a signer name; otherwise it is written without any signature field.
    An existing file at `destination` is replaced.

    Returns:
        The document exactly as stored in medid.json.

    Raises:
        InvalidArgumentError: If document or its collection is missing.
        InvalidKeyError: If the private key cannot be used for signing.
        InvalidEncodingError: If the document holds text with no UTF-8 encoding.
        OSError: On filesystem failures.
    """
    if document is None or document.collection is None:
        raise InvalidArgumentError("save() requires a document with a collection")
    opts = options or SaveOptions()
    destination = Path(destination)

    if opts.private_key is not None and not opts.wants_signature:
        logger.warning("A private key was supplied without signer_name; writing an unsigned package")

    with staging_directory() as staging:
        if opts.public_key is not None:
            (staging / PUBLIC_KEY_MEMBER).write_bytes(bytes(opts.public_key))

        entries = [_finalize_entry(entry, staging, opts) for entry in document.collection.entries]
        final = document.with_collection(document.collection.with_entries(entries)).without_signature()

        if opts.wants_signature:
            key = load_private_key(opts.private_key)
            hint = opts.public_key_hint or public_key_hint(export_public_key(key))
            logger.info(f"Signing {destination.name} as {opts.signer_name!r}")
            final = Signer(key, opts.signer_name, hint).sign(final)

        (staging / DOCUMENT_MEMBER).write_bytes(encode_utf8(to_storage_json(final)))
        _write_archive(staging, destination)

    logger.info(f"Saved package {destination} ({len(entries)} entries, signed={final.is_signed})")
    return final


def try_save(
    document: MedidDocument,
    destination: Union[str, Path],
    options: Optional[SaveOptions] = None,
) -> Tuple[bool, List[str]]:
    """
    Non-throwing save(): validate first, then save.

    Validation runs with allow_pending=True, unlike ensure_valid(): an entry
    whose source_path exists passes without hash, MIME type or metadata,
    since save() computes them. Entries without a source file are checked
    strictly.

    Returns:
        (success, errors). Errors hold validation messages or the reason the
        save failed.
    """
    errors = validate(document, allow_pending=True)
    if errors:
        return False, errors

    try:
        save(document, destination, options)
        return True, []
    except Exception as e:
        logger.debug(f"try_save failed for {destination}: {e}")
        return False, [f"Error while saving package: {e}"]


# =============================================================================
# Load
# =============================================================================


def load(path: Union[str, Path]) -> Tuple[MedidDocument, Optional[bytes]]:
    """
    Read a .medid package.

    Returns:
        (document, public_key) where public_key is the raw public.key member
        or None when the package has none.

    Raises:
        FileNotFoundError: If `path` does not exist.
        MalformedPackageError: If the file is not a zip archive, lacks
            medid.json, or the document does not parse.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Package not found: {path}")

    with staging_directory() as staging:
        try:
            with zipfile.ZipFile(path) as archive:
                archive.extractall(staging)
        # RuntimeError: encrypted member; NotImplementedError: unsupported compression
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, RuntimeError, NotImplementedError) as e:
            raise MalformedPackageError(f"{path} is not a valid .medid archive: {e}") from e

        document_path = staging / DOCUMENT_MEMBER
        if not document_path.is_file():
            raise MalformedPackageError(f"{path} has no {DOCUMENT_MEMBER} member")

        key_path = staging / PUBLIC_KEY_MEMBER
        public_key = key_path.read_bytes() if key_path.is_file() else None

        try:
            document = parse_document(document_path.read_bytes())
        except InvalidEncodingError as e:
            raise MalformedPackageError(f"{path}: {DOCUMENT_MEMBER} could not be parsed: {e}") from e

    logger.info(f"Loaded package {path} ({len(document.entries)} entries, signed={document.is_signed})")
    return document, public_key
