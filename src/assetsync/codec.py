"""Image codec used to turn images into stored bytes and back."""

import io
from abc import ABC, abstractmethod
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError

from .utils.logging import get_logger


class ImageCodec(ABC):
    """Encodes images to bytes and decodes them back."""

    extension: str = "bin"

    @abstractmethod
    def encode(self, image: Any) -> bytes:
        pass

    @abstractmethod
    def decode(self, data: bytes) -> Optional[Any]:
        """Return the decoded image, or None if ``data`` is not an image."""
        pass


class JpegCodec(ImageCodec):
    """JPEG codec at a fixed quality, backed by Pillow."""

    extension = "jpg"

    def __init__(self, quality: int = 100):
        self.quality = quality
        self.logger = get_logger(self.__class__.__name__)

    def encode(self, image: Image.Image) -> bytes:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=self.quality)
        return buffer.getvalue()

    def decode(self, data: bytes) -> Optional[Image.Image]:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                return img.copy()
        except (UnidentifiedImageError, OSError) as e:
            self.logger.warning("Failed to decode image", size=len(data), error=str(e))
            return None
