"""
Forward-only frame sampling from screen recordings
"""

import cv2
import numpy as np
from pathlib import Path
from typing import Callable, Iterator, Optional, Union
import logging

from scrollstitch.core.errors import DecoderFailureError

logger = logging.getLogger(__name__)


class VideoFrameSource:
    """Frame source backed by OpenCV VideoCapture.

    Iterating yields every sample_interval-th decoded frame in capture
    order, followed by the final frame when it falls between samples.
    Skipped frames are grabbed but only decoded when the container does
    not report a frame count.
    """

    def __init__(
        self,
        video_path: Union[str, Path],
        target_fps: float = 3.0,
        capture_factory: Callable[[str], "cv2.VideoCapture"] = cv2.VideoCapture
    ):
        """
        Open a video

        Args:
            video_path: Video file
            target_fps: Sampling rate
            capture_factory: Builds the capture object from a path string

        Raises:
            DecoderFailureError: The file cannot be opened or has no frame rate
        """
        self.video_path = Path(video_path)
        self.target_fps = target_fps
        self._cap = capture_factory(str(self.video_path))
        if not self._cap.isOpened():
            raise DecoderFailureError(f"Failed to open video: {self.video_path}")

        fps = self._cap.get(cv2.CAP_PROP_FPS)
        if not fps or fps <= 0:
            self._cap.release()
            raise DecoderFailureError(f"Video has no frame rate metadata: {self.video_path}")
        self._fps = float(fps)

        frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        self._frame_count = frame_count if frame_count > 0 else None
        self._consumed = False

        logger.info(
            f"Opened {self.video_path.name}: {self._fps:.2f} fps, "
            f"{self._frame_count or 'unknown'} frames, sampling every {self.sample_interval}"
        )

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def frame_count(self) -> Optional[int]:
        return self._frame_count

    @property
    def duration(self) -> Optional[float]:
        """Length in seconds, when the container reports a frame count"""
        if self._frame_count is None:
            return None
        return self._frame_count / self._fps

    @property
    def sample_interval(self) -> int:
        return max(1, int(round(self._fps / self.target_fps)))

    def __iter__(self) -> Iterator[np.ndarray]:
        if self._consumed:
            raise DecoderFailureError("VideoFrameSource can only be iterated once")
        self._consumed = True

        interval = self.sample_interval
        # Without a frame count every frame is decoded so the last one can be kept
        last_position = self._frame_count - 1 if self._frame_count else None
        position = 0
        sampled = 0
        tail = None
        try:
            while self._cap.grab():
                on_interval = position % interval == 0
                if on_interval or last_position is None or position == last_position:
                    ok, frame = self._cap.retrieve()
                    if not ok or frame is None:
                        logger.warning(f"Could not decode frame {position}, stopping")
                        break
                    if on_interval:
                        sampled += 1
                        tail = None
                        yield frame
                    else:
                        tail = frame
                position += 1

            # The end of the scroll is kept even when it falls between samples
            if tail is not None:
                sampled += 1
                yield tail
        finally:
            self.release()

        if sampled == 0:
            raise DecoderFailureError(f"No frames could be decoded from {self.video_path}")
        logger.debug(f"Sampled {sampled} of {position} frames")

    def release(self):
        self._cap.release()

    def __enter__(self) -> "VideoFrameSource":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
