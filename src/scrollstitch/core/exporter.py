"""
Saving stitched images
"""

import cv2
import numpy as np
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union
import logging

from PIL import Image

logger = logging.getLogger(__name__)


class ImageFormat(Enum):
    PNG = "PNG"
    JPEG = "JPEG"


class Resolution(Enum):
    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"

    @property
    def scale(self) -> float:
        return {"large": 1.0, "medium": 0.75, "small": 0.5}[self.value]


@dataclass(frozen=True)
class ExportSettings:
    """Output format, size and encoder options"""

    format: ImageFormat = ImageFormat.PNG
    resolution: Resolution = Resolution.LARGE
    jpeg_quality: int = 95
    png_compression: int = 6
    dpi: int = 72

    @property
    def extension(self) -> str:
        return ".png" if self.format is ImageFormat.PNG else ".jpg"

    @classmethod
    def from_names(cls, format_name: str = "PNG", resolution_name: str = "large", **kwargs) -> "ExportSettings":
        """Build settings from user-facing names such as 'jpeg' and 'medium'"""
        name = format_name.upper()
        if name == "JPG":
            name = "JPEG"
        try:
            image_format = ImageFormat(name)
        except ValueError:
            raise ValueError(f"Unsupported export format: {format_name}") from None
        try:
            resolution = Resolution(resolution_name.lower())
        except ValueError:
            raise ValueError(f"Unknown resolution: {resolution_name}") from None
        return cls(format=image_format, resolution=resolution, **kwargs)


def resize_for_export(image: np.ndarray, resolution: Resolution) -> np.ndarray:
    scale = resolution.scale
    if scale == 1.0:
        return image
    h, w = image.shape[:2]
    size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def _to_pil(image: np.ndarray) -> Image.Image:
    if image.ndim == 2:
        return Image.fromarray(image)
    if image.shape[2] == 4:
        return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def save_image(
    image: np.ndarray,
    path: Union[str, Path],
    settings: ExportSettings = ExportSettings()
) -> Path:
    """
    Save a stitched image.

    Args:
        image: BGR, BGRA or grayscale image
        path: Destination file; parent directories are created
        settings: Format, resolution and encoder options

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    pil_image = _to_pil(resize_for_export(image, settings.resolution))
    if settings.format is ImageFormat.JPEG:
        if pil_image.mode == "RGBA":
            pil_image = pil_image.convert("RGB")
        pil_image.save(
            str(path), format="JPEG",
            quality=settings.jpeg_quality, dpi=(settings.dpi, settings.dpi)
        )
        logger.info(f"JPEG saved to {path} (quality={settings.jpeg_quality}, {pil_image.size[0]}x{pil_image.size[1]})")
    else:
        pil_image.save(
            str(path), format="PNG",
            compress_level=settings.png_compression, dpi=(settings.dpi, settings.dpi)
        )
        logger.info(f"PNG saved to {path} (compression={settings.png_compression}, {pil_image.size[0]}x{pil_image.size[1]})")
    return path
