"""
Collect the pictures for a music edit.

Pictures are taken from a single directory (not recursive), filtered by
extension and sorted by file name, case-insensitively, so the same folder
always yields the same order.  HEIC/HEIF photos (straight off a phone) are
converted to JPEG first because most ffmpeg builds cannot decode them.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from PIL import Image
import pillow_heif

from edit_errors import InvalidInput

# Register HEIF/HEIC opener with Pillow
pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".heic", ".heif",
}
HEIC_EXTENSIONS = {".heic", ".heif"}


def discover_images(directory: Path) -> List[Path]:
    """Return the sorted list of image files in a directory."""
    if not directory.is_dir():
        raise InvalidInput(f"Image directory does not exist: {directory}")

    images = [
        f for f in directory.iterdir()
        if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
    ]
    images.sort(key=lambda p: (p.name.lower(), p.name))
    logger.info("Found %d images in %s", len(images), directory)
    return images


def prepare_images(images: Sequence[Path], work_dir: Path) -> List[Path]:
    """
    Return paths ffmpeg can read, in the same order as ``images``.
    HEIC/HEIF files are converted to JPEG inside ``work_dir``; everything
    else is passed through untouched.
    """
    prepared = []
    converted = 0
    for i, image in enumerate(images):
        if image.suffix.lower() not in HEIC_EXTENSIONS:
            prepared.append(image)
            continue

        # Index prefix keeps IMG_1.heic and IMG_1.HEIF from colliding
        dest = work_dir / f"{i:05d}_{image.stem}.jpg"
        with Image.open(image) as img:
            img.convert("RGB").save(dest, "JPEG", quality=95)
        logger.debug("  HEIC→JPG: %s → %s", image.name, dest.name)
        prepared.append(dest)
        converted += 1

    if converted:
        logger.info("Converted %d HEIC files to JPG", converted)
    return prepared
