from dataclasses import replace

import numpy as np
import pytest

from conftest import block_noise, window
from scrollstitch.core.config import MatcherConfig
from scrollstitch.core.overlap import OverlapMatcher
from scrollstitch.core.sampler import downsample


@pytest.fixture
def matcher():
    return OverlapMatcher()


def test_half_overlap_cuts_at_midpoint(matcher, canvas):
    result = matcher.find_overlap(window(canvas, 0), window(canvas, 100))
    assert result is not None
    assert result.overlap_height == pytest.approx(100)
    assert result.top_y == pytest.approx(150)
    assert result.bottom_y == pytest.approx(50)
    assert result.diff == pytest.approx(0.0)
    assert not result.reversed


@pytest.mark.parametrize("mode", ["generic", "video", "list_content"])
def test_modes_agree_on_clean_overlap(matcher, canvas, mode):
    result = matcher.find_overlap(window(canvas, 0), window(canvas, 100), mode)
    assert result is not None
    assert result.shift == pytest.approx(100)


def test_unrelated_images_do_not_match(matcher):
    upper = block_noise(200, 120, seed=1)
    lower = block_noise(200, 120, seed=2)
    assert matcher.find_overlap(upper, lower) is None


def test_large_overlap_is_clamped_to_half_the_upper_image(matcher, canvas):
    result = matcher.find_overlap(window(canvas, 0), window(canvas, 40))
    assert result is not None
    assert result.overlap_height == pytest.approx(100)
    assert result.top_y == pytest.approx(90)
    assert result.bottom_y == pytest.approx(50)
    assert result.shift == pytest.approx(40)


def test_cut_coordinates_stay_inside_images(matcher, canvas):
    for step in (20, 60, 100):
        upper, lower = window(canvas, 0), window(canvas, step)
        result = matcher.find_overlap(upper, lower)
        assert result is not None
        assert 0 <= result.top_y <= upper.shape[0]
        assert 0 <= result.bottom_y <= lower.shape[0]
        assert result.overlap_height <= 0.5 * upper.shape[0]


def test_find_overlap_is_deterministic(matcher, canvas):
    first = matcher.find_overlap(window(canvas, 0), window(canvas, 70))
    second = matcher.find_overlap(window(canvas, 0), window(canvas, 70))
    assert first.to_dict() == second.to_dict()


def test_refinement_recovers_native_offset(matcher, canvas):
    # 103 is not a multiple of 1 / scale, so the coarse match is off by a few rows
    result = matcher.find_overlap(window(canvas, 0), window(canvas, 103))
    assert result is not None
    assert result.shift == pytest.approx(103, abs=1)


def test_empty_images_never_match(matcher, canvas):
    empty = np.zeros((0, 120, 3), dtype=np.uint8)
    assert matcher.find_overlap(empty, window(canvas, 0)) is None
    assert matcher.evaluate_overlap_ratio(window(canvas, 0), empty) is None


def test_evaluate_reports_ratio_of_lower_height(matcher, canvas):
    score = matcher.evaluate_overlap_ratio(window(canvas, 0), window(canvas, 100))
    assert score is not None
    assert score.diff == pytest.approx(0.0)
    assert score.ratio == pytest.approx(0.5)


def test_evaluate_does_not_clamp_ratio(matcher, canvas):
    score = matcher.evaluate_overlap_ratio(window(canvas, 0), window(canvas, 40))
    assert score.ratio == pytest.approx(0.8)


def test_evaluate_flags_duplicates(matcher, canvas):
    frame = window(canvas, 0)
    score = matcher.evaluate_overlap_ratio(frame, frame.copy())
    assert score.ratio == 1.0
    assert score.diff == pytest.approx(0.0)


def test_evaluate_unrelated_is_none(matcher):
    assert matcher.evaluate_overlap_ratio(
        block_noise(200, 120, seed=3), block_noise(200, 120, seed=4)
    ) is None


def test_evaluate_with_precomputed_top(matcher, canvas):
    top = matcher.prepare_top(window(canvas, 0), "keyframe")
    score = matcher.evaluate_with_top(top, window(canvas, 100), "keyframe")
    assert score.ratio == pytest.approx(0.5)


def test_evaluate_with_top_rejects_scale_mismatch(matcher, canvas):
    top = downsample(window(canvas, 0), 0.1)
    with pytest.raises(ValueError):
        matcher.evaluate_with_top(top, window(canvas, 100))


def test_reverse_search_finds_lower_image_above(matcher, canvas):
    config = MatcherConfig.generic()
    top = downsample(window(canvas, 100), config.scale)
    bottom = downsample(window(canvas, 0), config.scale)
    candidate = matcher._search_reverse(top, bottom, config)
    assert candidate.diff == pytest.approx(0.0)
    assert candidate.shift == -20
    assert candidate.reversed


def test_find_overlap_prefers_reverse_match(canvas):
    # The footer keeps every forward band in the upper half of the top image,
    # where none of them can line up 50 rows above it
    config = MatcherConfig(footer_ratio=0.275)
    upper, lower = window(canvas, 50), window(canvas, 0)
    result = OverlapMatcher(config).find_overlap(upper, lower)
    assert result is not None
    assert result.reversed
    assert result.diff == pytest.approx(0.0)
    assert result.shift == pytest.approx(-50)
    assert result.top_y == pytest.approx(50)
    assert result.bottom_y == pytest.approx(100)

    forward_only = OverlapMatcher(replace(config, reverse_search=False))
    assert forward_only.find_overlap(upper, lower) is None


@pytest.mark.parametrize("step, ratio", [(120, 0.4), (140, 0.3), (160, 0.2)])
def test_keyframe_scoring_reaches_shallow_overlaps(matcher, canvas, step, ratio):
    score = matcher.evaluate_overlap_ratio(window(canvas, 0), window(canvas, step), "keyframe")
    assert score is not None
    assert score.diff == pytest.approx(0.0)
    assert score.ratio == pytest.approx(ratio)


def test_odd_overlap_cuts_on_whole_rows(matcher, canvas):
    result = matcher.find_overlap(window(canvas, 0), window(canvas, 103))
    assert result.shift == 103
    assert result.top_y == 151
    assert result.bottom_y == 48


def test_explicit_config_overrides_mode(canvas):
    strict = OverlapMatcher(MatcherConfig(diff_threshold=0.0))
    assert strict.find_overlap(window(canvas, 0), window(canvas, 100)) is None


def test_unknown_mode_raises():
    with pytest.raises(ValueError):
        OverlapMatcher("panorama")
