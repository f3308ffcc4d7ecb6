"""
Tests for .medid package assembly, extraction and validation.
"""

import json
import zipfile
from dataclasses import replace

import pytest
from PIL import Image

from medid import (
    InvalidKeyError,
    MalformedPackageError,
    MediaCollection,
    MediaEntry,
    MediaMetadata,
    MedidDocument,
    MedidSignature,
    SaveOptions,
    ValidationFailedError,
    ensure_valid,
    load,
    public_key_hint,
    save,
    try_save,
    validate,
    verify,
    verify_package,
)
from medid.hashing import compute_blake3
from medid.package import staging_directory


def _document_for(*paths, name="My Images"):
    entries = [MediaEntry(filename=p.name, source_path=str(p)) for p in paths]
    return MedidDocument(collection=MediaCollection(name=name, publisher="Example Corp", entries=entries))


def _stored_json(package_path):
    with zipfile.ZipFile(package_path) as archive:
        return json.loads(archive.read("medid.json").decode("utf-8"))


def _members(package_path):
    with zipfile.ZipFile(package_path) as archive:
        return set(archive.namelist())


# =============================================================================
# Validation
# =============================================================================


class TestValidate:
    """Tests for validate()."""

    def test_minimal_document_passes(self, sample_document):
        """One fully-populated entry is valid."""
        assert validate(sample_document) == []
        ensure_valid(sample_document)

    def test_missing_document(self):
        """None is reported."""
        assert validate(None) == ["Document is missing."]

    def test_missing_collection(self, sample_document):
        """A missing collection is reported alone."""
        assert validate(replace(sample_document, collection=None)) == ["Missing collection."]

    def test_empty_name(self, sample_document):
        """An empty or blank collection name is one error."""
        doc = sample_document.with_collection(replace(sample_document.collection, name="  "))
        assert validate(doc) == ["Collection name is required."]

    def test_no_entries(self, sample_document):
        """A collection without entries is one error."""
        doc = sample_document.with_collection(sample_document.collection.with_entries([]))
        assert validate(doc) == ["At least one media entry is required."]

    def test_entry_missing_fields(self, sample_document):
        """Each missing entry field is its own error."""
        entry = MediaEntry(filename="photo.jpg")
        doc = sample_document.with_collection(sample_document.collection.with_entries([entry]))
        errors = validate(doc)
        assert errors == [
            "Entry 'photo.jpg' is missing MimeType.",
            "Entry 'photo.jpg' is missing Hash.",
            "Entry 'photo.jpg' is missing Metadata.",
        ]

    def test_entry_missing_filename(self, sample_entry, sample_document):
        """An empty filename is reported by position."""
        entry = replace(sample_entry, filename="")
        doc = sample_document.with_collection(sample_document.collection.with_entries([entry]))
        assert validate(doc) == ["Entry #0 is missing Filename."]

    def test_empty_metadata_object_is_present(self, sample_entry, sample_document):
        """MediaMetadata() with no values still counts as present."""
        entry = replace(sample_entry, metadata=MediaMetadata())
        doc = sample_document.with_collection(sample_document.collection.with_entries([entry]))
        assert validate(doc) == []

    def test_pending_entries(self, test_image):
        """Entries with an existing source file may be completed by save()."""
        doc = _document_for(test_image)
        assert len(validate(doc)) == 3
        assert validate(doc, allow_pending=True) == []

    def test_ensure_valid_raises(self, sample_document):
        """ensure_valid() raises ValidationFailedError with every message."""
        doc = sample_document.with_collection(replace(sample_document.collection, name="", entries=()))
        with pytest.raises(ValidationFailedError) as exc_info:
            ensure_valid(doc)
        assert len(exc_info.value.errors) == 2


# =============================================================================
# Save / Load
# =============================================================================


class TestSave:
    """Tests for save()."""

    def test_entry_fields_computed(self, test_image, tmp_path, staging_root):
        """MIME type, hash, length and metadata are filled from the source file."""
        final = save(_document_for(test_image), tmp_path / "out.medid")
        entry = final.collection.entries[0]
        assert entry.mime_type == "image/jpeg"
        assert entry.hash == f"blake3:{compute_blake3(test_image)}"
        assert entry.length == test_image.stat().st_size
        assert entry.metadata.width == 800
        assert entry.metadata.height == 600

    def test_caller_metadata_takes_precedence(self, test_image, tmp_path, staging_root):
        """Caller-supplied metadata values are kept verbatim."""
        entry = MediaEntry(
            filename="photo.jpg",
            metadata=MediaMetadata(width=1, duration="00:00:05"),
            source_path=str(test_image),
        )
        doc = MedidDocument(collection=MediaCollection(name="x", entries=[entry]))
        meta = save(doc, tmp_path / "out.medid").collection.entries[0].metadata
        assert meta.width == 1
        assert meta.height == 600
        assert meta.duration == "00:00:05"

    def test_include_sha256(self, test_image, tmp_path, staging_root):
        """include_sha256 adds the legacy digest."""
        final = save(_document_for(test_image), tmp_path / "out.medid", SaveOptions(include_sha256=True))
        value = final.collection.entries[0].hash
        assert value.startswith("sha256:")
        assert "|blake3:" in value

    def test_unsigned_package_has_no_signature_field(self, test_image, tmp_path, staging_root):
        """Without a private key the stored JSON has no signature key at all."""
        out = tmp_path / "out.medid"
        final = save(_document_for(test_image), out)
        assert final.signature is None
        assert "signature" not in _stored_json(out)

    def test_stale_signature_dropped(self, test_image, tmp_path, staging_root):
        """An old signature on the input is not carried into an unsigned package."""
        doc = _document_for(test_image).with_signature(MedidSignature(value="c3RhbGU="))
        out = tmp_path / "out.medid"
        save(doc, out)
        assert "signature" not in _stored_json(out)

    def test_private_key_without_signer_is_unsigned(self, keypair, test_image, tmp_path, staging_root):
        """A private key alone does not sign."""
        out = tmp_path / "out.medid"
        final = save(_document_for(test_image), out, SaveOptions(private_key=keypair.private_key))
        assert final.signature is None

    def test_members(self, keypair, test_image, tmp_path, staging_root):
        """Package holds medid.json, public.key and the thumbnail."""
        out = tmp_path / "out.medid"
        save(_document_for(test_image), out, SaveOptions(public_key=keypair.public_key))
        assert _members(out) == {"medid.json", "public.key", "thumbnails/photo_thumb.jpg"}
        with zipfile.ZipFile(out) as archive:
            assert archive.read("public.key") == keypair.public_key

    def test_thumbnail(self, test_image, tmp_path, staging_root):
        """Image entries get a JPEG thumbnail no larger than 256 pixels."""
        out = tmp_path / "out.medid"
        final = save(_document_for(test_image), out)
        assert final.collection.entries[0].thumbnail_path == "thumbnails/photo_thumb.jpg"

        extracted = tmp_path / "extracted"
        with zipfile.ZipFile(out) as archive:
            archive.extractall(extracted)
        with Image.open(extracted / "thumbnails" / "photo_thumb.jpg") as thumb:
            assert thumb.format == "JPEG"
            assert max(thumb.size) <= 256

    def test_thumbnails_disabled(self, test_image, tmp_path, staging_root):
        """include_thumbnails=False skips thumbnails."""
        out = tmp_path / "out.medid"
        final = save(_document_for(test_image), out, SaveOptions(include_thumbnails=False))
        assert final.collection.entries[0].thumbnail_path is None
        assert _members(out) == {"medid.json"}

    def test_thumbnail_failure_is_swallowed(self, test_image, tmp_path, staging_root, monkeypatch):
        """A failing thumbnail producer leaves the path unset without aborting."""

        def broken(source, target):
            raise RuntimeError("resizer exploded")

        monkeypatch.setattr("medid.package.create_thumbnail", broken)
        out = tmp_path / "out.medid"
        final = save(_document_for(test_image), out)
        assert final.collection.entries[0].thumbnail_path is None
        assert "thumbnailPath" not in _stored_json(out)["collection"]["entries"][0]

    def test_duplicate_stems_get_unique_thumbnails(self, tmp_path, staging_root):
        """Two images with the same stem do not overwrite each other's thumbnail."""
        jpg = tmp_path / "shot.jpg"
        png = tmp_path / "shot.png"
        Image.new("RGB", (64, 64), "blue").save(jpg, "JPEG")
        Image.new("RGBA", (64, 64), "green").save(png, "PNG")
        final = save(_document_for(jpg, png), tmp_path / "out.medid")
        paths = [e.thumbnail_path for e in final.collection.entries]
        assert paths == ["thumbnails/shot_thumb.jpg", "thumbnails/shot_thumb-1.jpg"]

    def test_video_preview(self, tmp_path, staging_root, monkeypatch):
        """Video entries get a preview clip under media/."""
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)

        def fake_preview(source, target):
            target.write_bytes(b"preview")
            return target

        monkeypatch.setattr("medid.package.create_preview", fake_preview)
        out = tmp_path / "out.medid"
        final = save(_document_for(video), out)
        entry = final.collection.entries[0]
        assert entry.mime_type == "video/mp4"
        assert entry.preview_media_path == "media/clip_preview.mp4"
        assert entry.thumbnail_path is None
        assert entry.metadata == MediaMetadata()
        assert "media/clip_preview.mp4" in _members(out)

    def test_video_preview_failure_is_swallowed(self, tmp_path, staging_root, monkeypatch):
        """A missing ffmpeg leaves previewMediaPath unset."""
        monkeypatch.setattr("medid.media.FFMPEG_PATH", str(tmp_path / "no-such-ffmpeg"))
        video = tmp_path / "clip.mov"
        video.write_bytes(b"not really a movie")
        final = save(_document_for(video), tmp_path / "out.medid")
        assert final.collection.entries[0].preview_media_path is None
        assert final.collection.entries[0].mime_type == "video/quicktime"

    def test_entries_without_source_kept(self, sample_document, tmp_path, staging_root):
        """Entries without a source file are stored as given."""
        final = save(sample_document, tmp_path / "out.medid")
        assert final.collection.entries == sample_document.collection.entries

    def test_existing_destination_replaced(self, sample_document, tmp_path, staging_root):
        """An existing file at the destination is overwritten."""
        out = tmp_path / "out.medid"
        out.write_bytes(b"old junk")
        save(sample_document, out)
        assert _stored_json(out)["collection"]["name"] == "My Images"
        assert [p.name for p in tmp_path.iterdir() if p.name.endswith(".partial")] == []

    def test_staging_removed(self, test_image, tmp_path, staging_root):
        """No staging directory survives save() or load()."""
        out = tmp_path / "out.medid"
        save(_document_for(test_image), out)
        load(out)
        assert list(staging_root.iterdir()) == []

    def test_staging_removed_on_failure(self, test_image, tmp_path, staging_root):
        """The staging directory is removed when save() fails."""
        options = SaveOptions(private_key=b"garbage", signer_name="Jane")
        with pytest.raises(InvalidKeyError):
            save(_document_for(test_image), tmp_path / "out.medid", options)
        assert list(staging_root.iterdir()) == []
        assert not (tmp_path / "out.medid").exists()


class TestSignedPackages:
    """End-to-end signing through save() and load()."""

    def test_end_to_end(self, keypair, test_image, tmp_path, staging_root):
        """save signed -> load -> verify is True; flipping one hash char makes it False."""
        out = tmp_path / "package.medid"
        options = SaveOptions(
            public_key=keypair.public_key,
            private_key=keypair.private_key,
            signer_name="Your Name",
        )
        save(_document_for(test_image), out, options)

        loaded, public_key = load(out)
        assert public_key == keypair.public_key
        assert verify(loaded, public_key)

        entry = loaded.collection.entries[0]
        flipped = entry.hash[:-1] + ("0" if entry.hash[-1] != "0" else "1")
        tampered = loaded.with_collection(
            loaded.collection.with_entries([replace(entry, hash=flipped)])
        )
        assert not verify(tampered, public_key)

    def test_scenario_document(self, keypair, sample_document, tmp_path, staging_root):
        """The photo.jpg/800x600 document survives save/load with a valid signature."""
        out = tmp_path / "package.medid"
        options = SaveOptions(private_key=keypair.private_key, signer_name="Jane")
        final = save(sample_document, out, options)

        loaded, public_key = load(out)
        assert public_key is None
        assert loaded == final
        assert loaded.collection.entries[0].metadata == MediaMetadata(width=800, height=600)
        assert verify(loaded, keypair.public_key)
        assert not verify(loaded, b"garbage key")

    def test_default_hint_is_thumbprint(self, keypair, sample_document, tmp_path, staging_root):
        """Without an explicit hint the signing key's thumbprint is used."""
        options = SaveOptions(private_key=keypair.private_key, signer_name="Jane")
        final = save(sample_document, tmp_path / "out.medid", options)
        assert final.signature.public_key_hint == public_key_hint(keypair.public_key)

    def test_explicit_hint(self, keypair, sample_document, tmp_path, staging_root):
        """An explicit hint is stored verbatim."""
        options = SaveOptions(private_key=keypair.private_key, signer_name="Jane", public_key_hint="k1")
        final = save(sample_document, tmp_path / "out.medid", options)
        assert final.signature.public_key_hint == "k1"

    def test_stored_json_has_signature(self, keypair, sample_document, tmp_path, staging_root):
        """The signature record lands in medid.json."""
        out = tmp_path / "out.medid"
        save(sample_document, out, SaveOptions(private_key=keypair.private_key, signer_name="Jane"))
        stored = _stored_json(out)
        assert stored["signature"]["signer"] == "Jane"
        assert stored["signature"]["value"]

    def test_verify_package(self, keypair, other_keypair, sample_document, tmp_path, staging_root):
        """verify_package() uses the supplied key or the embedded public.key."""
        out = tmp_path / "out.medid"
        options = SaveOptions(
            public_key=keypair.public_key,
            private_key=keypair.private_key,
            signer_name="Jane",
        )
        save(sample_document, out, options)
        assert verify_package(out)
        assert verify_package(out, keypair.public_key)
        assert not verify_package(out, other_keypair.public_key)

    def test_verify_package_without_key(self, keypair, sample_document, tmp_path, staging_root):
        """No key anywhere means False."""
        out = tmp_path / "out.medid"
        save(sample_document, out, SaveOptions(private_key=keypair.private_key, signer_name="Jane"))
        assert not verify_package(out)

    def test_verify_package_never_raises(self, tmp_path, staging_root):
        """Missing or malformed packages verify as False."""
        assert not verify_package(tmp_path / "missing.medid")
        junk = tmp_path / "junk.medid"
        junk.write_bytes(b"not a zip")
        assert not verify_package(junk)


class TestLoad:
    """Tests for load() error handling."""

    def test_missing_file(self, tmp_path, staging_root):
        """A missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load(tmp_path / "missing.medid")

    def test_not_a_zip(self, tmp_path, staging_root):
        """Arbitrary bytes raise MalformedPackageError."""
        junk = tmp_path / "junk.medid"
        junk.write_bytes(b"this is not a zip archive")
        with pytest.raises(MalformedPackageError):
            load(junk)
        assert list(staging_root.iterdir()) == []

    def test_missing_document_member(self, tmp_path, staging_root):
        """A zip without medid.json raises MalformedPackageError."""
        path = tmp_path / "empty.medid"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("public.key", b"key")
        with pytest.raises(MalformedPackageError, match="medid.json"):
            load(path)

    def test_unparseable_document(self, tmp_path, staging_root):
        """Invalid JSON in medid.json raises MalformedPackageError."""
        path = tmp_path / "bad.medid"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("medid.json", "{broken")
        with pytest.raises(MalformedPackageError):
            load(path)
        assert list(staging_root.iterdir()) == []

    def test_wrong_shape_document(self, tmp_path, staging_root):
        """JSON without a collection raises MalformedPackageError."""
        path = tmp_path / "bad.medid"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("medid.json", '{"medid": "1.0"}')
        with pytest.raises(MalformedPackageError):
            load(path)

    @pytest.mark.parametrize("patch", ["encrypted", "compression"])
    def test_unreadable_member(self, tmp_path, staging_root, patch):
        """Encrypted or unsupported-compression members raise MalformedPackageError."""
        path = tmp_path / "locked.medid"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("medid.json", '{"collection": {"name": "x"}}')

        data = bytearray(path.read_bytes())
        local = data.index(b"PK\x03\x04")
        central = data.index(b"PK\x01\x02")
        if patch == "encrypted":
            # general purpose flag bit 0
            data[local + 6] |= 0x01
            data[central + 8] |= 0x01
        else:
            # compression method 99 (AES) is not supported by zipfile
            data[local + 8] = 99
            data[central + 10] = 99
        path.write_bytes(bytes(data))

        with pytest.raises(MalformedPackageError):
            load(path)
        assert list(staging_root.iterdir()) == []
        assert not verify_package(path)


class TestTrySave:
    """Tests for try_save()."""

    def test_invalid_document(self, tmp_path, staging_root):
        """Validation errors are returned, nothing is written."""
        doc = MedidDocument(collection=MediaCollection(name=""))
        out = tmp_path / "out.medid"
        ok, errors = try_save(doc, out)
        assert not ok
        assert errors == ["Collection name is required.", "At least one media entry is required."]
        assert not out.exists()

    def test_pending_entries_saved(self, test_image, tmp_path, staging_root):
        """Entries with source files pass validation and are saved."""
        out = tmp_path / "out.medid"
        ok, errors = try_save(_document_for(test_image), out)
        assert ok
        assert errors == []
        assert out.exists()

    def test_save_failure_collected(self, test_image, tmp_path, staging_root):
        """Failures inside save() are returned, not raised."""
        options = SaveOptions(private_key=b"garbage", signer_name="Jane")
        ok, errors = try_save(_document_for(test_image), tmp_path / "out.medid", options)
        assert not ok
        assert len(errors) == 1
        assert errors[0].startswith("Error while saving package:")

    def test_entries_without_source_checked_strictly(self, sample_entry, tmp_path, staging_root):
        """An incomplete entry with no source file is still reported."""
        entry = replace(sample_entry, hash=None, source_path=str(tmp_path / "missing.jpg"))
        doc = MedidDocument(collection=MediaCollection(name="x", entries=[entry]))
        ok, errors = try_save(doc, tmp_path / "out.medid")
        assert not ok
        assert errors == ["Entry 'photo.jpg' is missing Hash."]


class TestStagingDirectory:
    """Tests for the scoped staging directory."""

    def test_unique_and_removed(self, tmp_path):
        """Each staging directory is fresh and removed on exit."""
        with staging_directory(tmp_path) as first, staging_directory(tmp_path) as second:
            assert first != second
            assert first.is_dir() and second.is_dir()
        assert not first.exists()
        assert not second.exists()

    def test_removed_on_exception(self, tmp_path):
        """The directory is removed when the body raises."""
        with pytest.raises(RuntimeError):
            with staging_directory(tmp_path) as path:
                (path / "file").write_text("x")
                raise RuntimeError("boom")
        assert not path.exists()

    def test_named_under_root(self, tmp_path):
        """Directories are created below the root with the medid- prefix."""
        root = tmp_path / "not" / "yet" / "there"
        with staging_directory(root) as path:
            assert path.parent == root
            assert path.name.startswith("medid-")

    def test_defaults_to_configured_root(self, staging_root):
        """Without an explicit root the configured staging root is used."""
        with staging_directory() as path:
            assert path.parent == staging_root
        assert list(staging_root.iterdir()) == []
