"""
Downsampled pixel buffers used for cheap image comparison
"""

import cv2
import numpy as np
import logging

logger = logging.getLogger(__name__)


class PixelBuffer:
    """Read-only RGBA pixels of a downsampled image"""

    def __init__(self, data: np.ndarray, scale: float):
        data.setflags(write=False)
        self.data = data
        self.scale = scale

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1]) if self.data.ndim > 1 else 0

    @property
    def is_empty(self) -> bool:
        return self.data.size == 0

    @classmethod
    def empty(cls, scale: float) -> "PixelBuffer":
        return cls(np.zeros((0, 0, 4), dtype=np.uint8), scale)

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height}, scale={self.scale})"


def scaled_size(length: int, scale: float) -> int:
    """floor(length * scale), tolerant of float noise such as 35 * 0.2"""
    return int(np.floor(length * scale + 1e-6))


def to_rgba(image: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or grayscale array to RGBA"""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGBA)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)


def downsample(image: np.ndarray, scale: float) -> PixelBuffer:
    """
    Downsample an image with area interpolation.

    Args:
        image: Input image (BGR, BGRA or grayscale, uint8)
        scale: Reduction factor, e.g. 0.2

    Returns:
        PixelBuffer of size floor(w * scale) x floor(h * scale); empty when
        the input has no area or the scale floors a side to zero
    """
    if image is None or image.size == 0:
        return PixelBuffer.empty(scale)

    h, w = image.shape[:2]
    new_w = scaled_size(w, scale)
    new_h = scaled_size(h, scale)
    if new_w <= 0 or new_h <= 0:
        logger.debug(f"Degenerate downsample: {w}x{h} at scale {scale}")
        return PixelBuffer.empty(scale)

    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    small = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
    return PixelBuffer(np.ascontiguousarray(to_rgba(small)), scale)
