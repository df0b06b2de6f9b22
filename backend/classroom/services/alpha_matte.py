"""
Background removal for generated illustrations.

Turns the near-white background of an image into transparency by flood
filling from the border. White areas enclosed by artwork (eyes, highlights)
are not reachable from the border and stay opaque.
"""
import io
import logging
from typing import List, Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from classroom.config import config

logger = logging.getLogger(__name__)


class AlphaMatteProcessor:
    """Flood-fill matte over an RGBA pixel buffer"""

    def __init__(self, threshold: Optional[int] = None):
        self.threshold = config.matte_threshold if threshold is None else threshold

    def apply(self, pixels: np.ndarray) -> np.ndarray:
        """
        Clear the alpha of every border-connected background pixel, in place.

        Args:
            pixels: uint8 array of shape (height, width, 4)

        Returns:
            The same array
        """
        height, width = pixels.shape[:2]
        if height == 0 or width == 0:
            return pixels

        candidate = np.all(pixels[:, :, :3] > self.threshold, axis=2).ravel().tolist()
        visited = bytearray(width * height)
        stack: List[int] = []

        def seed(index: int) -> None:
            if candidate[index] and not visited[index]:
                visited[index] = 1
                stack.append(index)

        for x in range(width):
            seed(x)
            seed((height - 1) * width + x)
        for y in range(height):
            seed(y * width)
            seed(y * width + width - 1)

        cleared: List[int] = []
        while stack:
            index = stack.pop()
            cleared.append(index)
            y, x = divmod(index, width)
            if x + 1 < width:
                seed(index + 1)
            if x > 0:
                seed(index - 1)
            if y + 1 < height:
                seed(index + width)
            if y > 0:
                seed(index - width)

        if cleared:
            rows, cols = np.divmod(np.asarray(cleared, dtype=np.intp), width)
            pixels[rows, cols, 3] = 0
        logger.debug(f"Matte cleared {len(cleared)} of {width * height} pixels")
        return pixels

    def process_image(self, image: Image.Image) -> Image.Image:
        """Return an RGBA copy of ``image`` with its background removed."""
        pixels = np.array(image.convert('RGBA'), dtype=np.uint8)
        self.apply(pixels)
        return Image.fromarray(pixels)

    def process_bytes(self, image_bytes: bytes) -> bytes:
        """
        Decode, matte and re-encode as PNG.

        Best effort: undecodable or oversized input is returned unchanged.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                if image.width * image.height > config.matte_max_pixels:
                    logger.warning(
                        f"Image too large for matte ({image.width}x{image.height}), using original"
                    )
                    return image_bytes
                image.load()
                result = self.process_image(image)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning(f"Could not decode image for matte, using original: {e}")
            return image_bytes

        out = io.BytesIO()
        result.save(out, format='PNG')
        return out.getvalue()


# Global singleton
_alpha_matte_processor: Optional[AlphaMatteProcessor] = None


def get_alpha_matte_processor() -> AlphaMatteProcessor:
    """Get or create the global matte processor"""
    global _alpha_matte_processor
    if _alpha_matte_processor is None:
        _alpha_matte_processor = AlphaMatteProcessor()
    return _alpha_matte_processor


# Convenience function
def remove_background(image_bytes: bytes) -> bytes:
    """Make the border-connected white background transparent"""
    return get_alpha_matte_processor().process_bytes(image_bytes)
