"""
Output canvas rendering for stitch plans
"""

import cv2
import math
import numpy as np
from typing import Optional
import logging

from scrollstitch.core.errors import RenderFailureError
from scrollstitch.core.overlap import OverlapResult
from scrollstitch.core.plan import PlanSnapshot, StitchPlan
from scrollstitch.utils.memory_manager import MemoryManager

logger = logging.getLogger(__name__)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Grayscale and BGRA images as 3-channel BGR"""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def _first_row(position: float) -> int:
    """First output row whose centre lies at or below a canvas position"""
    return int(math.ceil(position - 0.5 - 1e-9))


class Compositor:
    """Draws plan segments onto a white canvas, centred horizontally"""

    def __init__(
        self,
        max_canvas_pixels: int = 100_000_000,
        memory_manager: Optional[MemoryManager] = None
    ):
        """
        Initialize compositor

        Args:
            max_canvas_pixels: Largest canvas (width * height) that will be rendered
            memory_manager: Memory monitor consulted before allocating the canvas
        """
        self.max_canvas_pixels = max_canvas_pixels
        self.memory_manager = memory_manager or MemoryManager()

    def _allocate(self, height: int, width: int) -> np.ndarray:
        if height <= 0 or width <= 0:
            raise RenderFailureError(f"Invalid canvas size {width}x{height}")
        if height * width > self.max_canvas_pixels:
            raise RenderFailureError(
                f"Canvas {width}x{height} exceeds limit of {self.max_canvas_pixels} pixels"
            )
        estimated_mb = height * width * 3 / (1024 * 1024)
        if not self.memory_manager.estimate_can_process(estimated_mb):
            raise RenderFailureError(f"Not enough memory for a {width}x{height} canvas")
        return np.full((height, width, 3), 255, dtype=np.uint8)

    def compose(self, plan: StitchPlan, scale: float = 1.0) -> np.ndarray:
        """
        Render a plan.

        Args:
            plan: Stitch plan; read through a locked snapshot
            scale: Output density, 1.0 for native resolution

        Returns:
            BGR image
        """
        if scale <= 0:
            raise RenderFailureError(f"Invalid render scale {scale}")
        snap = plan.snapshot()
        return self._render(snap, scale)

    def render_full_resolution(self, plan: StitchPlan) -> np.ndarray:
        return self.compose(plan, 1.0)

    def render_preview(self, plan: StitchPlan) -> np.ndarray:
        """Render at the plan's display scale"""
        return self.compose(plan, plan.display_scale)

    def _render(self, snap: PlanSnapshot, scale: float) -> np.ndarray:
        start, end = snap.start, snap.end
        out_h = _first_row((end - start) * scale)
        out_w = int(round(snap.width * scale))
        canvas = self._allocate(out_h, out_w)

        n = len(snap.images)
        for i, image in enumerate(snap.images):
            offset = snap.offsets[i]
            self_start = snap.self_start_offsets[i]
            img_h, img_w = image.shape[:2]

            seg_start = start if i == 0 else offset
            seg_end = snap.offsets[i + 1] if i < n - 1 else end
            # Rows past the image's own bottom stay background
            seg_end = min(seg_end, offset + img_h - self_start, end)
            seg_start = max(seg_start, start)
            if seg_end <= seg_start:
                continue

            y0 = _first_row((seg_start - start) * scale)
            y1 = min(out_h, _first_row((seg_end - start) * scale))
            if y1 <= y0:
                continue

            if scale == 1.0:
                # Source row under the centre of output row y0
                src0 = max(0, int(math.floor(self_start + start + y0 + 0.5 - offset)))
                src1 = min(img_h, src0 + (y1 - y0))
                piece = to_bgr(image[src0:src1])
                target_w = img_w
            else:
                src0 = max(0, int(math.floor(self_start + seg_start - offset + 1e-9)))
                src1 = min(img_h, int(math.ceil(self_start + seg_end - offset - 1e-9)))
                if src1 <= src0:
                    continue
                target_w = max(1, int(round(img_w * scale)))
                piece = cv2.resize(
                    to_bgr(image[src0:src1]), (target_w, y1 - y0), interpolation=cv2.INTER_AREA
                )

            x0 = max(0, (out_w - target_w) // 2)
            rows = piece.shape[0]
            cols = min(piece.shape[1], out_w - x0)
            canvas[y0:y0 + rows, x0:x0 + cols] = piece[:, :cols]

        logger.debug(f"Rendered {n} images into {out_w}x{out_h} (scale {scale})")
        return canvas

    def merge_images(
        self,
        upper: np.ndarray,
        lower: np.ndarray,
        overlap: Optional[OverlapResult],
        max_height: Optional[int] = None
    ) -> np.ndarray:
        """
        Merge two images into one taller image.

        The upper image is drawn in full. The lower image is placed so that
        its bottom_y row meets the upper image's top_y row, and only its rows
        below that seam are drawn. Without an overlap the lower image is
        stacked directly underneath.

        Args:
            upper: Image drawn first
            lower: Image continuing it
            overlap: Seam between the two, or None
            max_height: Keep only this many bottom rows of the result

        Returns:
            Merged BGR image
        """
        upper = to_bgr(upper)
        lower = to_bgr(lower)
        up_h, up_w = upper.shape[:2]
        low_h, low_w = lower.shape[:2]

        if overlap is None:
            seam_upper = up_h
            seam_lower = 0
        else:
            seam_upper = int(round(overlap.top_y))
            seam_lower = int(round(overlap.bottom_y))

        lower_rows = max(0, low_h - seam_lower)
        height = max(up_h, seam_upper + lower_rows)
        width = max(up_w, low_w)
        canvas = self._allocate(height, width)

        x_up = (width - up_w) // 2
        canvas[:up_h, x_up:x_up + up_w] = upper
        if lower_rows > 0:
            x_low = (width - low_w) // 2
            canvas[seam_upper:seam_upper + lower_rows, x_low:x_low + low_w] = lower[seam_lower:]

        if max_height is not None and height > max_height:
            canvas = canvas[height - max_height:].copy()
        return canvas
