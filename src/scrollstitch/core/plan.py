"""
Stitch plan: where each image lands on the output canvas

All user adjustments are applied to the plan, never to the images.
"""

import threading
import numpy as np
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)

# Smallest number of rows a crop adjustment may leave visible
MIN_VISIBLE_ROWS = 10


@dataclass(frozen=True)
class PlanSnapshot:
    """Consistent copy of a plan's geometry, taken under the plan lock"""

    images: Tuple[np.ndarray, ...]
    offsets: Tuple[float, ...]
    self_start_offsets: Tuple[float, ...]
    fallback_indices: FrozenSet[int]
    top_crop: float = 0.0
    bottom_crop: float = 0.0
    display_scale: float = 1.0

    @property
    def start(self) -> float:
        """First canvas row of the output"""
        return self.offsets[0] + self.top_crop

    @property
    def end(self) -> float:
        """Canvas row after the last output row"""
        last = len(self.images) - 1
        visible = self.images[last].shape[0] - self.self_start_offsets[last]
        return self.offsets[last] + visible - self.bottom_crop

    @property
    def height(self) -> float:
        return self.end - self.start

    @property
    def width(self) -> int:
        return max(img.shape[1] for img in self.images)


class StitchPlan:
    """
    Per-image canvas offsets plus interactive crop state.

    offsets[i] is the canvas row where image i starts contributing, and
    self_start_offsets[i] is the row inside image i that lands there.
    """

    def __init__(
        self,
        images: Sequence[np.ndarray],
        offsets: Sequence[float],
        self_start_offsets: Sequence[float],
        fallback_indices: Optional[Iterable[int]] = None,
        top_crop: float = 0.0,
        bottom_crop: float = 0.0,
        display_scale: float = 1.0
    ):
        if not images:
            raise ValueError("StitchPlan needs at least one image")
        if len(offsets) != len(images) or len(self_start_offsets) != len(images):
            raise ValueError(
                f"Plan size mismatch: {len(images)} images, {len(offsets)} offsets, "
                f"{len(self_start_offsets)} self-start offsets"
            )
        if any(b < a for a, b in zip(offsets, offsets[1:])):
            raise ValueError(f"Offsets must be non-decreasing: {list(offsets)}")

        self._lock = threading.RLock()
        self._images = list(images)
        self._offsets = [float(o) for o in offsets]
        self._self_starts = [float(s) for s in self_start_offsets]
        self._fallback = set(fallback_indices or ())
        self._top_crop = float(top_crop)
        self._bottom_crop = float(bottom_crop)
        self.display_scale = display_scale

    def __len__(self) -> int:
        return len(self._images)

    @property
    def images(self) -> List[np.ndarray]:
        return list(self._images)

    @property
    def offsets(self) -> List[float]:
        with self._lock:
            return list(self._offsets)

    @property
    def self_start_offsets(self) -> List[float]:
        with self._lock:
            return list(self._self_starts)

    @property
    def fallback_indices(self) -> List[int]:
        with self._lock:
            return sorted(self._fallback)

    @property
    def top_crop(self) -> float:
        with self._lock:
            return self._top_crop

    @property
    def bottom_crop(self) -> float:
        with self._lock:
            return self._bottom_crop

    def snapshot(self) -> PlanSnapshot:
        with self._lock:
            return PlanSnapshot(
                images=tuple(self._images),
                offsets=tuple(self._offsets),
                self_start_offsets=tuple(self._self_starts),
                fallback_indices=frozenset(self._fallback),
                top_crop=self._top_crop,
                bottom_crop=self._bottom_crop,
                display_scale=self.display_scale
            )

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def _first_visible(self, top_crop: float) -> float:
        """Rows of the first image left on the canvas with the given top crop"""
        if len(self._images) > 1:
            seg_end = self._offsets[1]
        else:
            seg_end = self._offsets[0] + self._images[0].shape[0] - self._self_starts[0] - self._bottom_crop
        return seg_end - (self._offsets[0] + top_crop)

    def _last_visible(self, bottom_crop: float) -> float:
        """Rows of the last image left on the canvas with the given bottom crop"""
        last = len(self._images) - 1
        seg_start = self._offsets[last] + (self._top_crop if last == 0 else 0.0)
        seg_end = self._offsets[last] + self._images[last].shape[0] - self._self_starts[last] - bottom_crop
        return seg_end - seg_start

    def adjust_top_crop(self, delta: float) -> "StitchPlan":
        """
        Change how many rows are cropped from the top of the output.

        Args:
            delta: Change in crop amount; positive crops more

        Returns:
            self, for chaining
        """
        with self._lock:
            new_crop = max(0.0, self._top_crop + delta)
            if self._first_visible(new_crop) < MIN_VISIBLE_ROWS:
                logger.debug(f"Top crop {new_crop:.1f} rejected: first image would vanish")
                return self
            self._top_crop = new_crop
        return self

    def adjust_bottom_crop(self, delta: float) -> "StitchPlan":
        """
        Change how many rows are cropped from the bottom of the output.

        Args:
            delta: Change in crop amount; positive crops more

        Returns:
            self, for chaining
        """
        with self._lock:
            new_crop = max(0.0, self._bottom_crop + delta)
            if self._last_visible(new_crop) < MIN_VISIBLE_ROWS:
                logger.debug(f"Bottom crop {new_crop:.1f} rejected: last image would vanish")
                return self
            self._bottom_crop = new_crop
        return self

    def adjust_interior_offset(self, index: int, delta: float) -> "StitchPlan":
        """
        Move the seam above image index, dragging every later image along.

        Rejected when the offset would move above the previous image's
        offset. An accepted adjustment clears the image's fallback flag.

        Args:
            index: Image index, 1..len-1
            delta: Rows to move; positive moves the image down

        Returns:
            self, for chaining
        """
        with self._lock:
            if not 1 <= index < len(self._offsets):
                raise IndexError(f"Interior index {index} out of range 1..{len(self._offsets) - 1}")
            new_offset = self._offsets[index] + delta
            if new_offset < self._offsets[index - 1]:
                logger.debug(f"Offset adjustment at {index} rejected: {new_offset:.1f} above previous image")
                return self
            for i in range(index, len(self._offsets)):
                self._offsets[i] += delta
            self._fallback.discard(index)
        return self

    def __repr__(self) -> str:
        return (f"StitchPlan({len(self._images)} images, offsets={self.offsets}, "
                f"fallback={self.fallback_indices})")
