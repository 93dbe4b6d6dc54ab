"""
Keyframe selection for scrolling-screen recordings

Frames arrive forward-only. A bounded look-ahead buffer is binary searched
for the farthest frame that still overlaps the last kept frame by an
acceptable amount, which keeps the number of kept frames small while
preserving a reliable seam between every consecutive pair.
"""

import time
import numpy as np
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Iterable, List, Optional, Tuple
import logging

from scrollstitch.core.compositor import Compositor
from scrollstitch.core.config import FrameSelectorConfig, MatcherConfig
from scrollstitch.core.errors import InsufficientInputError
from scrollstitch.core.overlap import OverlapMatcher
from scrollstitch.utils.memory_manager import MemoryManager

logger = logging.getLogger(__name__)


@dataclass
class KeyframeSelection:
    """Kept frames in stream order, split into confidently connected runs"""

    frames: List[np.ndarray] = field(default_factory=list)
    indices: List[int] = field(default_factory=list)
    segments: List[List[int]] = field(default_factory=list)
    timed_out: bool = False

    def segment_frames(self) -> List[List[np.ndarray]]:
        """Frames of each segment"""
        by_index = dict(zip(self.indices, self.frames))
        return [[by_index[i] for i in segment] for segment in self.segments]

    def __len__(self) -> int:
        return len(self.frames)


class FrameSelector:
    """Picks well-separated keyframes from a frame stream"""

    def __init__(
        self,
        config: Optional[FrameSelectorConfig] = None,
        matcher: Optional[OverlapMatcher] = None,
        compositor: Optional[Compositor] = None,
        memory_manager: Optional[MemoryManager] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize frame selector

        Args:
            config: Buffer size, overlap window, time budget
            matcher: Overlap matcher used to score frames
            compositor: Used to merge the reference when merge_reference is set
            memory_manager: Memory monitor for the scan
            clock: Time source for the wall-clock budget
        """
        self.config = config or FrameSelectorConfig()
        self.matcher = matcher or OverlapMatcher()
        self.memory_manager = memory_manager or MemoryManager()
        self.compositor = compositor or Compositor(memory_manager=self.memory_manager)
        self.clock = clock
        self.score_config = MatcherConfig.keyframe()
        self.merge_config = MatcherConfig.video()

        logger.info(
            f"FrameSelector initialized (buffer: {self.config.buffer_capacity}, "
            f"overlap: {self.config.min_overlap:.2f}-{self.config.max_overlap:.2f}, "
            f"budget: {self.config.time_budget_s}s)"
        )

    def select(
        self,
        frames: Iterable[np.ndarray],
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> KeyframeSelection:
        """
        Select keyframes from a stream.

        Args:
            frames: Frames in capture order; consumed once
            progress_callback: Optional callback(frames_read, frames_kept)

        Returns:
            KeyframeSelection with at least two frames

        Raises:
            InsufficientInputError: Fewer than two frames were kept
        """
        stream = enumerate(frames)
        first = next(stream, None)
        if first is None:
            raise InsufficientInputError("Video yielded no frames")

        first_index, reference = first
        selection = KeyframeSelection(frames=[reference], indices=[first_index], segments=[[first_index]])
        segment_open = True
        top = self.matcher.prepare_top(reference, self.score_config)

        buffer: Deque[Tuple[int, np.ndarray]] = deque()
        exhausted = False
        frames_read = 1
        started = self.clock()

        with self.memory_manager.track_operation("keyframe_scan"):
            while True:
                while not exhausted and len(buffer) < self.config.buffer_capacity:
                    item = next(stream, None)
                    if item is None:
                        exhausted = True
                    else:
                        buffer.append(item)
                        frames_read += 1
                if not buffer:
                    break

                elapsed = self.clock() - started
                if elapsed > self.config.time_budget_s:
                    logger.warning(
                        f"Keyframe scan stopped after {elapsed:.1f}s; "
                        f"discarding {len(buffer)} buffered frames"
                    )
                    buffer.clear()
                    selection.timed_out = True
                    break

                k = self._search_buffer(top, buffer)
                if k is None:
                    logger.debug(
                        f"No acceptable frame among {buffer[0][0]}..{buffer[-1][0]}, "
                        f"discarding buffer"
                    )
                    buffer.clear()
                    segment_open = False
                    continue

                index, frame = buffer[k]
                for _ in range(k + 1):
                    buffer.popleft()

                selection.frames.append(frame)
                selection.indices.append(index)
                if segment_open:
                    selection.segments[-1].append(index)
                else:
                    selection.segments.append([index])
                    segment_open = True

                reference = self._next_reference(reference, frame)
                top = self.matcher.prepare_top(reference, self.score_config)

                if progress_callback:
                    progress_callback(frames_read, len(selection.frames))

        selection = self._drop_short_segments(selection)
        logger.info(
            f"Kept {len(selection.frames)} of {frames_read} frames "
            f"in {len(selection.segments)} segment(s): {selection.indices}"
        )
        if len(selection.frames) < 2:
            raise InsufficientInputError(
                f"Only {len(selection.frames)} keyframe(s) found in {frames_read} frames"
            )
        return selection

    def _drop_short_segments(self, selection: KeyframeSelection) -> KeyframeSelection:
        """Remove brief interior runs, which are usually transient overlays or glitches"""
        segments = selection.segments
        if len(segments) <= 2:
            return selection

        last = len(segments) - 1
        kept = [
            segment for i, segment in enumerate(segments)
            if i == 0 or i == last or len(segment) >= self.config.min_segment_length
        ]
        if len(kept) == len(segments):
            return selection

        dropped = [segment for segment in segments if segment not in kept]
        logger.info(f"Dropping {len(dropped)} short segment(s): {dropped}")
        by_index = dict(zip(selection.indices, selection.frames))
        indices = [i for segment in kept for i in segment]
        return KeyframeSelection(
            frames=[by_index[i] for i in indices],
            indices=indices,
            segments=kept,
            timed_out=selection.timed_out
        )

    def _search_buffer(self, top, buffer: Deque[Tuple[int, np.ndarray]]) -> Optional[int]:
        """Farthest buffered frame whose overlap ratio lies in the accepted window"""
        lo, hi = 0, len(buffer) - 1
        best = None
        while lo <= hi:
            mid = (lo + hi) // 2
            score = self.matcher.evaluate_with_top(top, buffer[mid][1], self.score_config)
            if score is None or score.ratio < self.config.min_overlap:
                hi = mid - 1
            elif score.ratio > self.config.max_overlap:
                lo = mid + 1
            else:
                best = mid
                lo = mid + 1
        return best

    def _next_reference(self, reference: np.ndarray, frame: np.ndarray) -> np.ndarray:
        if not self.config.merge_reference:
            return frame
        overlap = self.matcher.find_overlap(reference, frame, self.merge_config)
        return self.compositor.merge_images(
            reference, frame, overlap, self.config.merged_reference_max_height
        )
