"""
Tunable thresholds for overlap matching and keyframe selection

Every magic number used by the matcher lives in one MatcherConfig per mode,
so modes can be tuned and tested in isolation.
"""

from dataclasses import dataclass, replace
from typing import Tuple


@dataclass(frozen=True)
class MatcherConfig:
    """Search parameters for one matcher mode.

    Row counts (sample_height, min_sample_height) are in downsampled pixels.
    """

    name: str = "generic"
    scale: float = 0.2
    header_ratio: float = 0.15
    footer_ratio: float = 0.05
    sample_depths: Tuple[float, ...] = (0.05, 0.15, 0.25, 0.35)
    sample_height: int = 60
    sample_height_ratio: float = 0.25
    min_sample_height: int = 8
    column_stride: int = 4
    diff_threshold: float = 35.0
    tie_epsilon: float = 0.5
    # Search starts at this fraction of the upper image's height (0 = whole content window)
    search_start_ratio: float = 0.0
    refine: bool = True
    refine_threshold: float = 10.0
    max_overlap_ratio: float = 0.5
    reverse_search: bool = True
    duplicate_threshold: float = 3.0

    @classmethod
    def generic(cls) -> "MatcherConfig":
        """Static screenshots"""
        return cls()

    @classmethod
    def video(cls) -> "MatcherConfig":
        """Frames sampled from a screen recording"""
        return cls(
            name="video",
            sample_depths=(0.0,),
            sample_height=150,
            sample_height_ratio=0.3,
            diff_threshold=50.0,
            search_start_ratio=0.5,
        )

    @classmethod
    def list_content(cls) -> "MatcherConfig":
        """Long lists with repetitive rows and thin chrome"""
        return cls(
            name="list_content",
            header_ratio=0.10,
            footer_ratio=0.10,
            diff_threshold=65.0,
        )

    @classmethod
    def keyframe(cls) -> "MatcherConfig":
        """Video scoring used while selecting keyframes.

        A thin band taken just under the status bar and slid through the
        whole upper frame. Small steps still produce a ratio instead of no
        match, and steps leaving only FrameSelectorConfig.min_overlap of
        shared rows remain reachable.
        """
        return replace(
            cls.video(),
            name="keyframe",
            header_ratio=0.05,
            footer_ratio=0.0,
            sample_height=40,
            sample_height_ratio=0.1,
            min_sample_height=4,
            column_stride=2,
            search_start_ratio=0.0,
        )

    @classmethod
    def for_mode(cls, mode: str) -> "MatcherConfig":
        factories = {
            "generic": cls.generic,
            "video": cls.video,
            "list_content": cls.list_content,
            "keyframe": cls.keyframe,
        }
        try:
            return factories[mode.lower()]()
        except KeyError:
            raise ValueError(f"Unknown matcher mode: {mode}") from None


@dataclass(frozen=True)
class FrameSelectorConfig:
    """Keyframe extraction settings for the video path"""

    target_fps: float = 3.0
    buffer_capacity: int = 10
    min_overlap: float = 0.15
    max_overlap: float = 0.90
    # Interior segments shorter than this are dropped; the first and last are always kept
    min_segment_length: int = 3
    time_budget_s: float = 9.5
    merge_reference: bool = False
    merged_reference_max_height: int = 4000
