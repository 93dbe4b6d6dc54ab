"""
Background worker for stitch jobs
"""

import numpy as np
from pathlib import Path
from typing import List, Optional, Union
import logging

from PyQt6.QtCore import QThread, pyqtSignal

from scrollstitch.core.stitcher import ScrollStitcher, StitchFailure

logger = logging.getLogger(__name__)


class StitchJobThread(QThread):
    """Thread for running one stitch job.

    Emits finished exactly once with the job's outcome. Unexpected
    exceptions are reported through error and finish as a StitchFailure
    of kind "internal_error".
    """

    progress = pyqtSignal(int)
    status = pyqtSignal(str)
    finished = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(
        self,
        stitcher: ScrollStitcher,
        images: Optional[List[np.ndarray]] = None,
        video: Optional[Union[str, Path]] = None
    ):
        super().__init__()
        if (images is None) == (video is None):
            raise ValueError("Pass either images or video")
        self.stitcher = stitcher
        self.images = images
        self.video = video

    def _report(self, percentage: int, message: str = ""):
        self.progress.emit(percentage)
        if message:
            self.status.emit(message)

    def run(self):
        self.stitcher.progress_callback = self._report
        try:
            if self.video is not None:
                self.status.emit("Stitching recording...")
                outcome = self.stitcher.stitch_video(self.video)
            else:
                self.status.emit("Stitching screenshots...")
                outcome = self.stitcher.stitch(self.images)
        except Exception as e:
            logger.error(f"Stitching error: {e}", exc_info=True)
            self.error.emit(str(e))
            outcome = StitchFailure(kind="internal_error", message=str(e))
        self.finished.emit(outcome)
