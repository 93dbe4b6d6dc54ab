"""Overlap detection, keyframe selection and canvas rendering"""

from scrollstitch.core.compositor import Compositor
from scrollstitch.core.config import FrameSelectorConfig, MatcherConfig
from scrollstitch.core.errors import (
    DecoderFailureError,
    InsufficientInputError,
    RenderFailureError,
    StitchError,
)
from scrollstitch.core.exporter import ExportSettings, ImageFormat, Resolution, save_image
from scrollstitch.core.frame_selector import FrameSelector, KeyframeSelection
from scrollstitch.core.overlap import MatchScore, OverlapMatcher, OverlapResult
from scrollstitch.core.plan import StitchPlan
from scrollstitch.core.sampler import PixelBuffer, downsample
from scrollstitch.core.sequence import SequenceOrderer
from scrollstitch.core.stitcher import (
    ScrollStitcher,
    StitchFailure,
    StitchOutcome,
    StitchSuccess,
    StitchWarning,
)
from scrollstitch.core.video import VideoFrameSource
