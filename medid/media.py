# medid/media.py
"""
Media collaborators used while assembling a package.

None of this is part of the signed format. The packager only consumes the
results: a MIME type, width/height/capture-time values for MediaMetadata, and
thumbnail/preview files written into the staging directory.
"""

import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from medid.config import FFMPEG_PATH, PREVIEW_TIMEOUT, THUMBNAIL_MAX_SIZE
from medid.errors import DerivedArtifactError
from medid.models import MediaMetadata

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
}

# EXIF tag ids
EXIF_IFD_POINTER = 0x8769
EXIF_DATETIME = 0x0132
EXIF_DATETIME_ORIGINAL = 0x9003
EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

PREVIEW_START = "00:00:01"
PREVIEW_SECONDS = 5
PREVIEW_WIDTH = 320


def guess_mime_type(path: Union[str, Path]) -> str:
    """MIME type from the file extension; unknown extensions map to application/octet-stream."""
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


def is_image(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.startswith("image/")


def is_video(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.startswith("video/")


def _exif_date_taken(img: Image.Image) -> Optional[datetime]:
    exif = img.getexif()
    if not exif:
        return None
    value = exif.get_ifd(EXIF_IFD_POINTER).get(EXIF_DATETIME_ORIGINAL) or exif.get(EXIF_DATETIME)
    if not value:
        return None
    try:
        # EXIF datetime format: "2024:01:07 12:30:45", no zone information
        return datetime.strptime(str(value).strip("\x00 "), EXIF_DATETIME_FORMAT)
    except (ValueError, TypeError):
        return None


def extract_metadata(path: Union[str, Path], mime_type: str) -> MediaMetadata:
    """
    Read descriptive metadata for a media file.

    Images get width, height and (when EXIF carries it) the capture time.
    Other media types get an empty MediaMetadata: their fields are not
    applicable rather than unknown.
    """
    if not is_image(mime_type):
        return MediaMetadata()

    try:
        with Image.open(path) as img:
            width, height = img.size
            return MediaMetadata(width=width, height=height, date_taken=_exif_date_taken(img))
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Could not read image metadata from {path}: {e}")
        return MediaMetadata()


def create_thumbnail(
    source: Union[str, Path],
    destination: Union[str, Path],
    max_size: int = THUMBNAIL_MAX_SIZE,
) -> Path:
    """
    Write a JPEG thumbnail whose longest edge is at most `max_size` pixels.

    Raises:
        DerivedArtifactError: If the source cannot be read as an image.
    """
    destination = Path(destination)
    try:
        with Image.open(source) as img:
            img.thumbnail((max_size, max_size))
            if img.mode != "RGB":
                img = img.convert("RGB")
            img.save(destination, "JPEG")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DerivedArtifactError(f"Thumbnail generation failed for {source}: {e}") from e
    return destination


def create_preview(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Cut a short, downscaled, silent H.264 preview clip with ffmpeg.

    Raises:
        DerivedArtifactError: If ffmpeg is missing, fails, times out, or
            produces no output.
    """
    destination = Path(destination)
    cmd = [
        FFMPEG_PATH,
        "-y",
        "-i", str(source),
        "-ss", PREVIEW_START,
        "-t", str(PREVIEW_SECONDS),
        "-vf", f"scale={PREVIEW_WIDTH}:-1",
        "-c:v", "libx264",
        "-an",
        str(destination),
    ]
    try:
        subprocess.run(cmd, capture_output=True, timeout=PREVIEW_TIMEOUT, check=True)
    except (OSError, subprocess.SubprocessError) as e:
        raise DerivedArtifactError(f"Preview generation failed for {source}: {e}") from e

    if not destination.exists():
        raise DerivedArtifactError(f"ffmpeg produced no preview for {source}")
    return destination
