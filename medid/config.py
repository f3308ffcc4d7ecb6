# medid/config.py
"""
Centralized configuration for OpenMediaID packaging.

All configurable values are read from environment variables with sensible defaults.
Nothing here affects the byte-level formats (canonical JSON, content hashes,
encrypted key blobs); those are fixed by the format and live next to the code
that produces them.

Usage:
    from medid.config import STAGING_ROOT, THUMBNAIL_MAX_SIZE

Environment Variables:
    MEDID_STAGING_ROOT: Directory that holds per-operation staging dirs (default: system temp)
    MEDID_THUMBNAIL_SIZE: Longest edge of generated thumbnails in pixels (default: 256)
    MEDID_FFMPEG_PATH: ffmpeg executable used for preview clips (default: ffmpeg)
    MEDID_PREVIEW_TIMEOUT: Seconds to wait for ffmpeg before giving up (default: 120)
    MEDID_DEFAULT_KEY_SIZE: RSA modulus size for new key pairs (default: 2048)
    MEDID_HASH_CHUNK_SIZE: Read size used while hashing media files (default: 1 MiB)
"""

import os
import tempfile
from typing import Final

# =============================================================================
# Packaging
# =============================================================================

# Every save/load gets its own uniquely-named directory below this root
STAGING_ROOT: Final[str] = os.getenv("MEDID_STAGING_ROOT", tempfile.gettempdir())

# =============================================================================
# Derived artifacts
# =============================================================================

THUMBNAIL_MAX_SIZE: Final[int] = int(os.getenv("MEDID_THUMBNAIL_SIZE", "256"))

FFMPEG_PATH: Final[str] = os.getenv("MEDID_FFMPEG_PATH", "ffmpeg")

PREVIEW_TIMEOUT: Final[int] = int(os.getenv("MEDID_PREVIEW_TIMEOUT", "120"))

# =============================================================================
# Crypto / hashing
# =============================================================================

DEFAULT_KEY_SIZE: Final[int] = int(os.getenv("MEDID_DEFAULT_KEY_SIZE", "2048"))

HASH_CHUNK_SIZE: Final[int] = int(os.getenv("MEDID_HASH_CHUNK_SIZE", str(1024 * 1024)))


def print_config() -> None:
    """Print current configuration (useful for debugging)."""
    print("OpenMediaID Configuration:")
    print(f"  STAGING_ROOT:       {STAGING_ROOT}")
    print(f"  THUMBNAIL_MAX_SIZE: {THUMBNAIL_MAX_SIZE}")
    print(f"  FFMPEG_PATH:        {FFMPEG_PATH}")
    print(f"  PREVIEW_TIMEOUT:    {PREVIEW_TIMEOUT}")
    print(f"  DEFAULT_KEY_SIZE:   {DEFAULT_KEY_SIZE}")
    print(f"  HASH_CHUNK_SIZE:    {HASH_CHUNK_SIZE}")


if __name__ == "__main__":
    print_config()
