"""Image normalisation for downloaded receipt photos.

Photos arrive in ``DOWNLOAD_DIRECTORY`` under whatever name the chat
transport chose. :class:`ImageNormalizer` resizes each one to fit
``MAX_IMAGE_DIMENSION``, stores it next to the download as
``YYYY-MM-DD_HH-MM-SS.jpg`` and (optionally) removes the original. The
resulting path is what the receipt record keeps as ``source_path``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from receipt_bot.core.exceptions import CollaboratorError
from receipt_bot.utils.helpers import timestamped_filename
from receipt_bot.utils.image_processing import resize_to_fit

logger = logging.getLogger(__name__)


class ImageNormalizer:
    """Resize and rename receipt photos on the local filesystem."""

    def __init__(
        self,
        max_dimension: int = 1280,
        remove_original: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.max_dimension = max_dimension
        self.remove_original = remove_original
        self._clock = clock or datetime.now

    def _target_path(self, source: Path) -> Path:
        base = timestamped_filename(self._clock())
        target = source.with_name(base)
        counter = 1
        while target.exists() or target == source:
            target = source.with_name(f"{Path(base).stem}_{counter}.jpg")
            counter += 1
        return target

    async def normalize(self, raw_image_path: str) -> str:
        """Return the path of the processed image.

        Raises CollaboratorError when the file is missing, is not an image
        or is too large to decode safely.
        """
        source = Path(raw_image_path)
        target = self._target_path(source)
        try:
            size = await asyncio.to_thread(resize_to_fit, source, target, self.max_dimension)
        except (OSError, Image.DecompressionBombError) as e:  # OSError covers UnidentifiedImageError
            raise CollaboratorError("image", f"could not process {source.name}: {e}", e) from e
        logger.info("Image saved and processed: %s (%dx%d)", target, size[0], size[1])

        if self.remove_original:
            try:
                source.unlink()
            except OSError as e:
                logger.warning("Could not remove original image %s: %s", source, e)
        return str(target)
