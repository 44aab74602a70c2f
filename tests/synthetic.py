"""Synthetic pixel buffers shared by the test modules."""

import numpy as np

from photoprint import pack_rgba


def random_pixels(width, height, seed=0):
    """Random packed pixels for a ``width x height`` image."""
    rng = np.random.default_rng(seed)
    rgba = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    return pack_rgba(rgba)


def solid_pixels(width, height, rgba):
    """Packed pixels of a single-colour image."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :] = rgba
    return pack_rgba(img)


def blocky_pixels(width, height, block=8, seed=0):
    """Image made of flat colour blocks (few distinct keys, heavy contention)."""
    rng = np.random.default_rng(seed)
    bh = (height + block - 1) // block
    bw = (width + block - 1) // block
    tiles = rng.integers(0, 256, size=(bh, bw, 4), dtype=np.uint8)
    rgba = np.repeat(np.repeat(tiles, block, axis=0), block, axis=1)[:height, :width]
    return pack_rgba(rgba)
