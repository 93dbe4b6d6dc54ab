import numpy as np
import pytest

from conftest import block_noise, window
from scrollstitch.core.stitcher import (
    ScrollStitcher,
    StitchFailure,
    StitchSuccess,
    StitchWarning,
    collect_image_paths,
)


def test_two_screenshots(canvas):
    outcome = ScrollStitcher(reorder=False).stitch([window(canvas, 0), window(canvas, 100)])
    assert isinstance(outcome, StitchSuccess)
    assert outcome.offsets == [0, 150]
    assert outcome.self_start_offsets == [0, 50]
    assert outcome.fallback_indices == []
    assert np.array_equal(outcome.image, canvas[0:300])


def test_shuffled_screenshots_are_reordered(canvas):
    images = [window(canvas, 200), window(canvas, 0), window(canvas, 100)]
    outcome = ScrollStitcher().stitch(images)
    assert isinstance(outcome, StitchSuccess)
    assert np.array_equal(outcome.image, canvas[0:400])


def test_unrelated_images_fall_back_to_stacking():
    upper = block_noise(200, 120, seed=1)
    lower = block_noise(200, 120, seed=2)
    outcome = ScrollStitcher(reorder=False).stitch([upper, lower])
    assert isinstance(outcome, StitchWarning)
    assert outcome.fallback_indices == [1]
    assert outcome.offsets == [0, 200]
    assert outcome.image.shape == (400, 120, 3)
    assert "no overlap" in outcome.message


def test_fallback_uses_previous_visible_height(canvas):
    stranger = block_noise(200, 120, seed=5)
    outcome = ScrollStitcher(reorder=False).stitch(
        [window(canvas, 0), window(canvas, 100), stranger]
    )
    assert isinstance(outcome, StitchWarning)
    # image 1 starts at row 50 of itself, so 150 of its rows are visible
    assert outcome.offsets == [0, 150, 300]
    assert outcome.fallback_indices == [2]


def test_single_image_fails(canvas):
    outcome = ScrollStitcher().stitch([window(canvas, 0)])
    assert isinstance(outcome, StitchFailure)
    assert outcome.kind == "insufficient_input"


def test_render_failure_is_reported(canvas):
    outcome = ScrollStitcher(reorder=False, max_canvas_pixels=100).stitch(
        [window(canvas, 0), window(canvas, 100)]
    )
    assert isinstance(outcome, StitchFailure)
    assert outcome.kind == "render_failure"


def test_progress_reaches_completion(canvas):
    calls = []
    stitcher = ScrollStitcher(progress_callback=lambda pct, msg: calls.append(pct))
    stitcher.stitch([window(canvas, 100), window(canvas, 0)])
    assert calls[0] == 0
    assert calls[-1] == 100
    assert calls == sorted(calls)


def test_video_frames(canvas, scroll_frames):
    outcome = ScrollStitcher().stitch_video(iter(scroll_frames))
    assert isinstance(outcome, StitchSuccess)
    assert len(outcome.offsets) == 4
    assert np.array_equal(outcome.image, canvas[0:500])


def test_video_without_progress_fails(canvas):
    frames = [window(canvas, 0)] * 4
    outcome = ScrollStitcher().stitch_video(frames)
    assert isinstance(outcome, StitchFailure)
    assert outcome.kind == "insufficient_input"


def test_missing_video_is_decoder_failure(tmp_path):
    outcome = ScrollStitcher().stitch_video(tmp_path / "missing.mp4")
    assert isinstance(outcome, StitchFailure)
    assert outcome.kind == "decoder_failure"


def test_outcome_plan_can_be_adjusted_and_rerendered(canvas):
    stitcher = ScrollStitcher(reorder=False)
    outcome = stitcher.stitch([window(canvas, 0), window(canvas, 100)])
    outcome.plan.adjust_top_crop(40)
    image = stitcher.compositor.render_full_resolution(outcome.plan)
    assert np.array_equal(image, canvas[40:300])


def test_collect_image_paths_sorts_naturally(tmp_path):
    for name in ("shot10.png", "shot2.png", "shot1.png", "notes.txt"):
        (tmp_path / name).write_bytes(b"")
    paths = collect_image_paths([tmp_path])
    assert [p.name for p in paths] == ["shot1.png", "shot2.png", "shot10.png"]


@pytest.mark.parametrize("mode", ["generic", "list_content"])
def test_modes(canvas, mode):
    outcome = ScrollStitcher(mode=mode, reorder=False).stitch([window(canvas, 0), window(canvas, 100)])
    assert isinstance(outcome, StitchSuccess)


def test_odd_overlap_keeps_rows_aligned(canvas):
    # 97 shared rows put the midpoint between two rows
    outcome = ScrollStitcher(reorder=False).stitch([window(canvas, 0), window(canvas, 103)])
    assert isinstance(outcome, StitchSuccess)
    assert outcome.offsets[1] - outcome.self_start_offsets[1] == 103
    assert np.array_equal(outcome.image, canvas[0:303])


def test_video_with_shallow_overlap(canvas):
    frames = [window(canvas, top) for top in (0, 140, 280, 400)]
    outcome = ScrollStitcher().stitch_video(frames)
    assert isinstance(outcome, StitchSuccess)
    assert outcome.fallback_indices == []
    assert np.array_equal(outcome.image, canvas[0:600])
