"""
Shared pytest fixtures for OpenMediaID tests.
"""

from datetime import datetime, timezone

import pytest
from PIL import Image

from medid import (
    KeyPair,
    MediaCollection,
    MediaEntry,
    MediaMetadata,
    MedidDocument,
    generate_keypair,
)

SAMPLE_HASH = "blake3:" + "ab" * 32
SAMPLE_CREATED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def keypair() -> KeyPair:
    """RSA key pair shared by the whole session (generation is slow)."""
    return generate_keypair()


@pytest.fixture(scope="session")
def other_keypair() -> KeyPair:
    """A second, unrelated key pair."""
    return generate_keypair()


@pytest.fixture
def sample_entry() -> MediaEntry:
    """Fully-populated entry for photo.jpg."""
    return MediaEntry(
        filename="photo.jpg",
        hash=SAMPLE_HASH,
        length=1234,
        metadata=MediaMetadata(width=800, height=600),
        mime_type="image/jpeg",
    )


@pytest.fixture
def sample_document(sample_entry) -> MedidDocument:
    """Minimal valid, unsigned document with one entry."""
    return MedidDocument(
        collection=MediaCollection(
            name="My Images",
            publisher="Example Corp",
            created=SAMPLE_CREATED,
            entries=[sample_entry],
        )
    )


@pytest.fixture
def test_image(tmp_path):
    """Create an 800x600 JPEG."""
    img = Image.new("RGB", (800, 600), color="red")
    img_path = tmp_path / "photo.jpg"
    img.save(img_path, "JPEG")
    return img_path


@pytest.fixture
def staging_root(tmp_path, monkeypatch):
    """Redirect staging directories into the test's tmp_path."""
    root = tmp_path / "staging"
    root.mkdir()
    monkeypatch.setattr("medid.package.STAGING_ROOT", str(root))
    return root
