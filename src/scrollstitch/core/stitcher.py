"""
Scroll stitching pipeline
Turns screenshots or a screen recording into one long image
"""

import re
import cv2
import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union
import logging

from scrollstitch.core.compositor import Compositor
from scrollstitch.core.config import FrameSelectorConfig
from scrollstitch.core.errors import InsufficientInputError, StitchError
from scrollstitch.core.frame_selector import FrameSelector
from scrollstitch.core.overlap import OverlapMatcher
from scrollstitch.core.plan import StitchPlan
from scrollstitch.core.sequence import SequenceOrderer
from scrollstitch.core.video import VideoFrameSource
from scrollstitch.utils.memory_manager import MemoryManager

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff', '.webp'}

# Seam modes for video keyframes, strictest first; keyframe mode reaches the shallowest overlaps
VIDEO_SEAM_MODES = ("video", "generic", "keyframe")


@dataclass
class _RenderedOutcome:
    image: np.ndarray
    plan: StitchPlan

    @property
    def offsets(self) -> List[float]:
        return self.plan.offsets

    @property
    def self_start_offsets(self) -> List[float]:
        return self.plan.self_start_offsets

    @property
    def fallback_indices(self) -> List[int]:
        return self.plan.fallback_indices


@dataclass
class StitchSuccess(_RenderedOutcome):
    pass


@dataclass
class StitchWarning(_RenderedOutcome):
    """Image produced, but some seams were guessed or frames were lost"""

    message: str = ""


@dataclass
class StitchFailure:
    kind: str
    message: str


StitchOutcome = Union[StitchSuccess, StitchWarning, StitchFailure]


def _natural_key(path: Path):
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r'(\d+)', path.name)]


def collect_image_paths(inputs: Sequence[Union[str, Path]]) -> List[Path]:
    """
    Expand directories into their image files.

    Directory contents are sorted naturally ("shot2" before "shot10");
    explicitly listed files keep their given order.
    """
    paths: List[Path] = []
    for item in inputs:
        item = Path(item)
        if item.is_dir():
            found = [p for p in item.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS]
            paths.extend(sorted(found, key=_natural_key))
        else:
            paths.append(item)
    return paths


def load_images(paths: Sequence[Union[str, Path]]) -> List[np.ndarray]:
    """Read images with OpenCV, keeping an alpha channel when present"""
    images = []
    for path in paths:
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if image is None:
            logger.warning(f"Could not read image, skipping: {path}")
            continue
        images.append(image)
    logger.info(f"Loaded {len(images)} of {len(paths)} images")
    return images


class ScrollStitcher:
    """Main stitching engine"""

    def __init__(
        self,
        mode: str = "generic",
        reorder: bool = True,
        frame_selector_config: Optional[FrameSelectorConfig] = None,
        matcher: Optional[OverlapMatcher] = None,
        compositor: Optional[Compositor] = None,
        memory_manager: Optional[MemoryManager] = None,
        max_canvas_pixels: int = 100_000_000,
        display_scale: float = 1.0,
        progress_callback: Optional[Callable[[int, str], None]] = None
    ):
        """
        Initialize scroll stitcher

        Args:
            mode: Matcher mode for screenshots ('generic' or 'list_content')
            reorder: Reorder screenshots through the match graph before stitching
            frame_selector_config: Keyframe settings for videos
            matcher: Overlap matcher shared by every stage
            compositor: Canvas renderer
            memory_manager: Memory monitor
            max_canvas_pixels: Largest output canvas
            display_scale: Preview density stored on produced plans
            progress_callback: Optional callback(percentage, message)
        """
        self.mode = mode
        self.reorder = reorder
        self.frame_selector_config = frame_selector_config or FrameSelectorConfig()
        self.matcher = matcher or OverlapMatcher(mode)
        self.memory_manager = memory_manager or MemoryManager()
        self.compositor = compositor or Compositor(max_canvas_pixels, self.memory_manager)
        self.display_scale = display_scale
        self.progress_callback = progress_callback

        logger.info(f"ScrollStitcher initialized (mode: {mode}, reorder: {reorder})")

    def _update_progress(self, percentage: int, message: str = ""):
        """Update progress callback"""
        if self.progress_callback:
            self.progress_callback(percentage, message)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def stitch(self, images: Sequence[np.ndarray]) -> StitchOutcome:
        """
        Stitch screenshots into one long image.

        Args:
            images: Screenshots, in scroll order unless reorder is enabled

        Returns:
            StitchSuccess, StitchWarning when a seam fell back to plain
            stacking, or StitchFailure
        """
        try:
            images = list(images)
            if len(images) < 2:
                raise InsufficientInputError(f"Need at least 2 images, got {len(images)}")

            logger.info(f"Starting stitching process for {len(images)} images")
            self._update_progress(0, "Starting stitching process...")

            if self.reorder:
                self._update_progress(5, "Ordering images...")
                order = SequenceOrderer(self.matcher, self.mode).order(
                    images, lambda done, total: self._update_progress(
                        5 + int(40 * done / max(1, total)), f"Comparing pairs {done}/{total}"
                    )
                )
                if order != list(range(len(images))):
                    logger.info(f"Stitching order: {order}")
                images = [images[i] for i in order]

            self._update_progress(45, "Finding overlaps...")
            plan = self.build_plan(images, [self.mode], progress_start=45, progress_end=80)

            self._update_progress(80, "Rendering...")
            image = self.compositor.render_full_resolution(plan)
            return self._finish(image, plan, [])
        except StitchError as e:
            logger.error(f"Stitching failed ({e.kind}): {e}")
            return StitchFailure(kind=e.kind, message=str(e))

    def stitch_video(self, source: Union[str, Path, Iterable[np.ndarray]]) -> StitchOutcome:
        """
        Stitch a scrolling-screen recording.

        Args:
            source: Video file path, or frames already sampled in capture order

        Returns:
            StitchSuccess, StitchWarning when the keyframe scan was cut
            short, split or fell back, or StitchFailure
        """
        try:
            if isinstance(source, (str, Path)):
                frames = VideoFrameSource(source, self.frame_selector_config.target_fps)
            else:
                frames = source

            self._update_progress(0, "Selecting keyframes...")
            selector = FrameSelector(
                self.frame_selector_config,
                matcher=self.matcher,
                compositor=self.compositor,
                memory_manager=self.memory_manager
            )
            selection = selector.select(
                frames, lambda read, kept: self._update_progress(
                    min(50, read), f"Read {read} frames, kept {kept}"
                )
            )

            notes = []
            if selection.timed_out:
                notes.append("keyframe scan hit its time limit")
            if len(selection.segments) > 1:
                notes.append(f"recording split into {len(selection.segments)} unconnected segments")

            self._update_progress(50, "Finding overlaps...")
            plan = self.build_plan(
                selection.frames, VIDEO_SEAM_MODES, progress_start=50, progress_end=80
            )

            self._update_progress(80, "Rendering...")
            image = self.compositor.render_full_resolution(plan)
            return self._finish(image, plan, notes)
        except StitchError as e:
            logger.error(f"Video stitching failed ({e.kind}): {e}")
            return StitchFailure(kind=e.kind, message=str(e))

    def _finish(self, image: np.ndarray, plan: StitchPlan, notes: List[str]) -> StitchOutcome:
        if plan.fallback_indices:
            notes = notes + [f"no overlap found for image(s) {plan.fallback_indices}"]
        self._update_progress(100, "Stitching completed")
        h, w = image.shape[:2]
        if notes:
            message = "; ".join(notes)
            logger.warning(f"Stitched {w}x{h} with warnings: {message}")
            return StitchWarning(image=image, plan=plan, message=message)
        logger.info(f"Stitching completed successfully ({w}x{h})")
        return StitchSuccess(image=image, plan=plan)

    # ------------------------------------------------------------------
    # Plan building
    # ------------------------------------------------------------------

    def build_plan(
        self,
        images: Sequence[np.ndarray],
        modes: Sequence[str],
        progress_start: int = 0,
        progress_end: int = 100
    ) -> StitchPlan:
        """
        Place each image on the canvas from pairwise overlaps.

        Each pair is tried with the given modes in turn. A pair without a
        match is stacked directly below the previous image's visible part
        and recorded as a fallback.

        Args:
            images: Images in stitching order
            modes: Matcher modes to try per pair

        Returns:
            StitchPlan
        """
        if len(images) < 2:
            raise InsufficientInputError(f"Need at least 2 images, got {len(images)}")

        offsets = [0.0]
        self_starts = [0.0]
        fallback = []
        pairs = len(images) - 1

        for i in range(pairs):
            upper, lower = images[i], images[i + 1]
            result = None
            for mode in modes:
                result = self.matcher.find_overlap(upper, lower, mode)
                if result is not None:
                    break

            if result is not None:
                next_offset = max(offsets[i], offsets[i] + result.top_y - self_starts[i])
                self_start = result.bottom_y
                logger.debug(f"Pair {i}->{i + 1}: {result}")
            else:
                next_offset = offsets[i] + upper.shape[0] - self_starts[i]
                self_start = 0.0
                fallback.append(i + 1)
                logger.warning(f"No overlap between images {i} and {i + 1}, stacking")

            offsets.append(next_offset)
            self_starts.append(self_start)
            self._update_progress(
                progress_start + int((progress_end - progress_start) * (i + 1) / pairs),
                f"Matched pair {i + 1}/{pairs}"
            )

        return StitchPlan(
            images, offsets, self_starts, fallback, display_scale=self.display_scale
        )
