"""
Vertical overlap detection between consecutive screen images

The matcher slides bands of the lower image through the upper image on
downsampled RGBA buffers and scores each position by the mean per-channel
absolute difference. The accepted position is converted back to native
pixels and the cut is placed at the midpoint of the overlap band.
"""

import math
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from typing import Dict, List, NamedTuple, Optional, Union
import logging

from scrollstitch.core.config import MatcherConfig
from scrollstitch.core.sampler import PixelBuffer, downsample

logger = logging.getLogger(__name__)

ModeLike = Union[str, MatcherConfig, None]


class OverlapResult:
    """Cut coordinates for one image pair, in native pixels.

    top_y is where the upper image is cut and bottom_y is where the lower
    image resumes; both sit at the midpoint of the overlap band, so
    top_y - bottom_y is the lower image's offset relative to the upper one.
    """

    def __init__(
        self,
        top_y: float,
        bottom_y: float,
        overlap_height: float,
        diff: float,
        reversed: bool = False
    ):
        self.top_y = top_y
        self.bottom_y = bottom_y
        self.overlap_height = overlap_height
        self.diff = diff
        self.reversed = reversed

    @property
    def shift(self) -> float:
        """Row of the upper image aligned with row 0 of the lower image"""
        return self.top_y - self.bottom_y

    def to_dict(self) -> Dict:
        return {
            'top_y': self.top_y,
            'bottom_y': self.bottom_y,
            'overlap_height': self.overlap_height,
            'diff': self.diff,
            'reversed': self.reversed
        }

    def __repr__(self) -> str:
        return (f"OverlapResult(top_y={self.top_y:.1f}, bottom_y={self.bottom_y:.1f}, "
                f"overlap={self.overlap_height:.1f}, diff={self.diff:.2f})")


class MatchScore:
    """Quality of the best match: lower diff is better, ratio is a gate"""

    def __init__(self, diff: float, ratio: float):
        self.diff = diff
        self.ratio = ratio

    def __repr__(self) -> str:
        return f"MatchScore(diff={self.diff:.2f}, ratio={self.ratio:.3f})"


class _Candidate(NamedTuple):
    diff: float
    y: int  # band row in the upper buffer
    s: int  # band row in the lower buffer
    h: int  # band height
    reversed: bool = False

    @property
    def shift(self) -> int:
        return self.y - self.s


def _content_window(height: int, config: MatcherConfig):
    start = int(height * config.header_ratio)
    end = height - int(height * config.footer_ratio)
    return start, max(start, end)


def _band_height(height: int, config: MatcherConfig) -> int:
    return min(
        config.sample_height,
        max(config.min_sample_height, int(height * config.sample_height_ratio))
    )


def _color_rows(image: np.ndarray, r0: int, r1: int, width: int, stride: int) -> np.ndarray:
    """Rows [r0, r1) of a native image as int16 with three channels"""
    rows = image[r0:r1, :width:stride]
    if rows.ndim == 2:
        rows = np.repeat(rows[:, :, None], 3, axis=2)
    else:
        rows = rows[:, :, :3]
    return rows.astype(np.int16)


class OverlapMatcher:
    """Finds where a lower image continues an upper image"""

    def __init__(self, mode: ModeLike = "generic"):
        """
        Initialize overlap matcher

        Args:
            mode: Default mode ('generic', 'video', 'list_content', 'keyframe')
                or an explicit MatcherConfig
        """
        self.config = self._resolve(mode) if mode is not None else MatcherConfig.generic()
        logger.debug(f"OverlapMatcher initialized (mode: {self.config.name})")

    def _resolve(self, mode: ModeLike) -> MatcherConfig:
        if mode is None:
            return self.config
        if isinstance(mode, MatcherConfig):
            return mode
        return MatcherConfig.for_mode(mode)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def find_overlap(
        self,
        upper: np.ndarray,
        lower: np.ndarray,
        mode: ModeLike = None
    ) -> Optional[OverlapResult]:
        """
        Find the midpoint cut between two vertically overlapping images.

        Args:
            upper: Image that comes first in scroll order
            lower: Image that continues it
            mode: Overrides the matcher's default mode

        Returns:
            OverlapResult, or None when no position clears the threshold
        """
        config = self._resolve(mode)
        top = downsample(upper, config.scale)
        bottom = downsample(lower, config.scale)
        if top.is_empty or bottom.is_empty:
            return None

        best = self._search(top, bottom, config)

        # A band matched in the upper half is implausible for a downward scroll
        if best is not None and config.reverse_search and best.y < top.height / 2:
            reverse = self._search_reverse(top, bottom, config)
            if (reverse is not None and reverse.diff < best.diff
                    and reverse.diff < config.diff_threshold):
                logger.info(f"Reverse match preferred (diff {reverse.diff:.2f} < {best.diff:.2f})")
                best = reverse

        if best is None or best.diff >= config.diff_threshold:
            if best is not None:
                logger.debug(f"No overlap: best diff {best.diff:.2f} >= {config.diff_threshold}")
            return None

        shift = float(round(best.shift / config.scale))
        if config.refine:
            shift = self._refine_shift(upper, lower, best, config)

        result = self._midpoint_cut(shift, upper.shape[0], lower.shape[0], best, config)
        logger.debug(f"Overlap found ({config.name}): {result}")
        return result

    def prepare_top(self, upper: np.ndarray, mode: ModeLike = None) -> PixelBuffer:
        """Downsample an upper image once for repeated evaluate_with_top calls"""
        return downsample(upper, self._resolve(mode).scale)

    def evaluate_overlap_ratio(
        self,
        upper: np.ndarray,
        lower: np.ndarray,
        mode: ModeLike = None
    ) -> Optional[MatchScore]:
        """Score the best placement of lower under upper without cutting"""
        return self.evaluate_with_top(self.prepare_top(upper, mode), lower, mode)

    def evaluate_with_top(
        self,
        top: PixelBuffer,
        lower: np.ndarray,
        mode: ModeLike = None
    ) -> Optional[MatchScore]:
        """
        Score lower against an already downsampled upper image.

        Args:
            top: Buffer from prepare_top, at the mode's scale
            lower: Candidate lower image
            mode: Matcher mode

        Returns:
            MatchScore, or None when no position clears the threshold
        """
        config = self._resolve(mode)
        if abs(top.scale - config.scale) > 1e-9:
            raise ValueError(f"Top buffer scale {top.scale} does not match mode scale {config.scale}")

        bottom = downsample(lower, config.scale)
        if top.is_empty or bottom.is_empty:
            return None

        duplicate_diff = self._zero_shift_diff(top, bottom, config)
        if duplicate_diff is not None and duplicate_diff < config.duplicate_threshold:
            return MatchScore(diff=duplicate_diff, ratio=1.0)

        best = self._search(top, bottom, config)
        if best is None or best.diff >= config.diff_threshold:
            return None

        shift = best.shift
        overlap = min(top.height, shift + bottom.height) - max(0, shift)
        ratio = max(0.0, overlap) / bottom.height
        return MatchScore(diff=best.diff, ratio=ratio)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @staticmethod
    def _columns(buffer: PixelBuffer, width: int, config: MatcherConfig) -> np.ndarray:
        return buffer.data[:, :width:config.column_stride, :3].astype(np.int16)

    @staticmethod
    def _scan(top_cols: np.ndarray, band: np.ndarray, y_start: int, y_end: int) -> np.ndarray:
        """Mean absolute difference of band at every top row in [y_start, y_end]"""
        h = band.shape[0]
        region = top_cols[y_start:y_end + h]
        windows = sliding_window_view(region, h, axis=0)
        return np.abs(windows - band.transpose(1, 2, 0)).mean(axis=(1, 2, 3))

    def _search(
        self,
        top: PixelBuffer,
        bottom: PixelBuffer,
        config: MatcherConfig
    ) -> Optional[_Candidate]:
        width = min(top.width, bottom.width)
        if width <= 0:
            return None
        top_cols = self._columns(top, width, config)
        bottom_cols = self._columns(bottom, width, config)

        t_start, t_end = _content_window(top.height, config)
        b_start, b_end = _content_window(bottom.height, config)
        y_min = max(t_start, int(top.height * config.search_start_ratio))
        band_height = _band_height(bottom.height, config)

        candidates: List[_Candidate] = []
        for depth in config.sample_depths:
            s = b_start + int((b_end - b_start) * depth)
            # The band never outgrows the rows left below the search start
            h = min(band_height, b_end - s, t_end - y_min)
            if h < config.min_sample_height:
                continue
            y_max = t_end - h
            if y_max < y_min:
                continue
            diffs = self._scan(top_cols, bottom_cols[s:s + h], y_min, y_max)
            candidates.extend(
                _Candidate(float(d), y_min + i, s, h) for i, d in enumerate(diffs)
            )

        return self._pick(candidates, config.tie_epsilon, prefer_larger_shift=True)

    def _search_reverse(
        self,
        top: PixelBuffer,
        bottom: PixelBuffer,
        config: MatcherConfig
    ) -> Optional[_Candidate]:
        """Bands from the lower image's tail slid through the upper image's early rows"""
        width = min(top.width, bottom.width)
        top_cols = self._columns(top, width, config)
        bottom_cols = self._columns(bottom, width, config)

        t_start, t_end = _content_window(top.height, config)
        b_start, b_end = _content_window(bottom.height, config)
        band_height = _band_height(bottom.height, config)

        candidates: List[_Candidate] = []
        for depth in config.sample_depths:
            h = min(band_height, b_end - b_start)
            s = b_end - h - int((b_end - b_start) * depth)
            if h < config.min_sample_height or s < b_start:
                continue
            y_max = min(top.height // 2, t_end - h)
            if y_max < t_start:
                continue
            diffs = self._scan(top_cols, bottom_cols[s:s + h], t_start, y_max)
            candidates.extend(
                _Candidate(float(d), t_start + i, s, h, True) for i, d in enumerate(diffs)
            )

        return self._pick(candidates, config.tie_epsilon, prefer_larger_shift=False)

    @staticmethod
    def _pick(
        candidates: List[_Candidate],
        epsilon: float,
        prefer_larger_shift: bool
    ) -> Optional[_Candidate]:
        """Lowest diff; near-ties go to the candidate with the smaller overlap"""
        if not candidates:
            return None
        lowest = min(c.diff for c in candidates)
        best = None
        for c in candidates:
            if c.diff > lowest + epsilon:
                continue
            if best is None:
                best = c
                continue
            if c.shift != best.shift:
                if (c.shift > best.shift) == prefer_larger_shift:
                    best = c
            elif c.diff < best.diff:
                best = c
        return best

    def _zero_shift_diff(
        self,
        top: PixelBuffer,
        bottom: PixelBuffer,
        config: MatcherConfig
    ) -> Optional[float]:
        """Difference of the two content windows laid directly on each other"""
        width = min(top.width, bottom.width)
        t_start, t_end = _content_window(top.height, config)
        b_start, b_end = _content_window(bottom.height, config)
        start = max(t_start, b_start)
        end = min(t_end, b_end)
        if width <= 0 or end <= start:
            return None
        a = self._columns(top, width, config)[start:end]
        b = self._columns(bottom, width, config)[start:end]
        return float(np.abs(a - b).mean())

    # ------------------------------------------------------------------
    # Native-resolution refinement and cut placement
    # ------------------------------------------------------------------

    def _refine_shift(
        self,
        upper: np.ndarray,
        lower: np.ndarray,
        best: _Candidate,
        config: MatcherConfig
    ) -> float:
        """Snap the downsampled match onto the best native row within one sample"""
        scale = config.scale
        coarse = int(round(best.shift / scale))
        radius = int(np.ceil(1.0 / scale))
        s = int(round(best.s / scale))
        h = max(1, int(round(best.h / scale)))
        width = min(upper.shape[1], lower.shape[1])
        stride = max(1, int(round(config.column_stride / scale)))

        if s < 0 or s + h > lower.shape[0]:
            return float(coarse)
        band = _color_rows(lower, s, s + h, width, stride)

        best_shift = coarse
        best_diff = None
        for shift in range(coarse - radius, coarse + radius + 1):
            y = s + shift
            if y < 0 or y + h > upper.shape[0]:
                continue
            diff = float(np.abs(_color_rows(upper, y, y + h, width, stride) - band).mean())
            if (best_diff is None or diff < best_diff - 1e-9
                    or (abs(diff - best_diff) <= 1e-9 and shift > best_shift)):
                best_diff = diff
                best_shift = shift

        if best_diff is not None and best_diff < config.refine_threshold:
            if best_shift != coarse:
                logger.debug(f"Refined shift {coarse} -> {best_shift} (local diff {best_diff:.2f})")
            return float(best_shift)
        return float(coarse)

    @staticmethod
    def _midpoint_cut(
        shift: float,
        upper_height: int,
        lower_height: int,
        best: _Candidate,
        config: MatcherConfig
    ) -> OverlapResult:
        band_start = max(0.0, shift)
        overlap = min(float(upper_height), shift + lower_height) - band_start
        overlap = max(0.0, min(overlap, upper_height * config.max_overlap_ratio))

        # Cuts land on whole rows so both images agree on the seam
        top_y = band_start + math.floor(overlap / 2.0)
        bottom_y = top_y - shift
        top_y = max(0.0, min(float(upper_height), top_y))
        bottom_y = max(0.0, min(float(lower_height), bottom_y))
        return OverlapResult(
            top_y=top_y,
            bottom_y=bottom_y,
            overlap_height=overlap,
            diff=best.diff,
            reversed=best.reversed
        )
