import pytest

QtCore = pytest.importorskip("PyQt6.QtCore")

from conftest import window  # noqa: E402
from scrollstitch.core.stitcher import ScrollStitcher, StitchFailure, StitchSuccess  # noqa: E402
from scrollstitch.gui.worker import StitchJobThread  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


class ExplodingStitcher:
    progress_callback = None

    def stitch(self, images):
        raise RuntimeError("boom")


def test_emits_one_outcome(qt_app, canvas):
    thread = StitchJobThread(ScrollStitcher(reorder=False), images=[window(canvas, 0), window(canvas, 100)])
    outcomes, progress, statuses = [], [], []
    thread.finished.connect(outcomes.append)
    thread.progress.connect(progress.append)
    thread.status.connect(statuses.append)

    thread.run()

    assert len(outcomes) == 1
    assert isinstance(outcomes[0], StitchSuccess)
    assert progress[-1] == 100
    assert statuses


def test_unexpected_error_is_reported(qt_app, canvas):
    thread = StitchJobThread(ExplodingStitcher(), images=[window(canvas, 0)])
    outcomes, errors = [], []
    thread.finished.connect(outcomes.append)
    thread.error.connect(errors.append)

    thread.run()

    assert errors == ["boom"]
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], StitchFailure)
    assert outcomes[0].kind == "internal_error"


def test_requires_exactly_one_source(qt_app, canvas):
    with pytest.raises(ValueError):
        StitchJobThread(ScrollStitcher())
    with pytest.raises(ValueError):
        StitchJobThread(ScrollStitcher(), images=[window(canvas, 0)], video="clip.mp4")
