import numpy as np
import pytest


def block_noise(height, width, seed, block=10):
    """Random colour blocks; distinct content everywhere, stable under 0.2 downsampling"""
    rng = np.random.default_rng(seed)
    rows = -(-height // block)
    cols = -(-width // block)
    blocks = rng.integers(0, 256, size=(rows, cols, 3), dtype=np.uint8)
    image = np.repeat(np.repeat(blocks, block, axis=0), block, axis=1)
    return np.ascontiguousarray(image[:height, :width])


def window(canvas, top, height=200):
    return canvas[top:top + height].copy()


@pytest.fixture
def canvas():
    return block_noise(600, 120, seed=1)


@pytest.fixture
def scroll_frames(canvas):
    """30 sampled frames; 0, 10, 20 and 29 are the acceptable scroll steps"""
    positions = [0] * 10 + [100] * 10 + [200] * 9 + [300]
    return [window(canvas, p) for p in positions]
