"""Image preprocessing utilities.

Receipt photos from phones are large and often carry an EXIF rotation
flag instead of rotated pixels. The helpers here apply the orientation
and shrink the image so its longest edge fits a maximum dimension,
which keeps transcription requests small without hurting legibility.
Pillow is used as the imaging backend.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple, Union

from PIL import Image, ImageOps


def _fit(img: Image.Image, max_dimension: int) -> Image.Image:
    # Correct orientation before resizing
    img = ImageOps.exif_transpose(img)
    img = img.convert("RGB")
    # thumbnail() keeps the aspect ratio and never enlarges
    img.thumbnail((max_dimension, max_dimension))
    return img


def resize_to_fit(
    source: Union[str, Path],
    destination: Union[str, Path],
    max_dimension: int = 1280,
    quality: int = 90,
) -> Tuple[int, int]:
    """Write ``source`` to ``destination`` as a JPEG fitting ``max_dimension``.

    Returns the final ``(width, height)``. Pillow errors (``OSError`` and
    ``PIL.UnidentifiedImageError``) propagate to the caller.
    """
    with Image.open(source) as img:
        fitted = _fit(img, max_dimension)
        fitted.save(destination, format="JPEG", quality=quality)
        return fitted.size

