"""Pixel -> fingerprint key quantization.

The key layout is::

    |-3 bit R-|-3 bit G-|-3 bit B-|-2 bit region-|
     10      8 7      5 4      2 1             0

:func:`fingerprint_key` is the single definition used by every build path.
It only uses integer operators and the ``min`` builtin, so the same
function object runs on Python ints, element-wise on NumPy arrays (CPU
builder, host device) and compiled as a ``numba.cuda`` device function
(CUDA kernel).  Keep it free of calls to other Python functions: numba
cannot resolve them inside a device function.
"""

from ._constants import (
    BLUE_SHIFT, CHANNEL_MASK, COMPONENT_SHIFT, GREEN_SHIFT, KEY_BLUE_SHIFT,
    KEY_COUNT, KEY_GREEN_SHIFT, KEY_RED_SHIFT, RED_SHIFT, REGION_GRID,
)

__all__ = ["fingerprint_key", "quantize_component", "region_index",
           "channels", "split_key"]


def fingerprint_key(pixel, x, y, width, height):
    """Map a packed ``0xRRGGBBAA`` pixel at ``(x, y)`` to its key in [0, 2047].

    Works on scalars or broadcastable integer arrays.  ``width`` and
    ``height`` must be scalars >= 1.
    """
    rows = min(REGION_GRID, height)
    cols = min(REGION_GRID, width)
    row = y // (height // rows)
    col = x // (width // cols)
    # The trailing line of an odd dimension yields row == rows (col == cols).
    row = row - row // rows
    col = col - col // cols

    r = ((pixel >> RED_SHIFT) & CHANNEL_MASK) >> COMPONENT_SHIFT
    g = ((pixel >> GREEN_SHIFT) & CHANNEL_MASK) >> COMPONENT_SHIFT
    b = ((pixel >> BLUE_SHIFT) & CHANNEL_MASK) >> COMPONENT_SHIFT
    return ((r << KEY_RED_SHIFT) | (g << KEY_GREEN_SHIFT)
            | (b << KEY_BLUE_SHIFT) | (row * cols + col))


def quantize_component(component):
    """8-bit channel (0-255) -> 3-bit level (0-7)."""
    return component >> COMPONENT_SHIFT


def region_index(x, y, width, height):
    """Index (0-3) of the 2x2 grid cell containing ``(x, y)``.

    Collapses to a single row/column when the image is 1 pixel tall/wide.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image size must be positive, got {width}x{height}")
    rows = min(REGION_GRID, height)
    cols = min(REGION_GRID, width)
    row = min(y // (height // rows), rows - 1)
    col = min(x // (width // cols), cols - 1)
    return row * cols + col


def channels(pixel):
    """Split a packed pixel into ``(r, g, b, a)``."""
    return ((pixel >> RED_SHIFT) & CHANNEL_MASK,
            (pixel >> GREEN_SHIFT) & CHANNEL_MASK,
            (pixel >> BLUE_SHIFT) & CHANNEL_MASK,
            pixel & CHANNEL_MASK)


def split_key(key):
    """Decompose a key into ``(r_level, g_level, b_level, region)``."""
    key = int(key)
    if not 0 <= key < KEY_COUNT:
        raise ValueError(f"Fingerprint key {key} outside [0, {KEY_COUNT - 1}]")
    return ((key >> KEY_RED_SHIFT) & 0x7,
            (key >> KEY_GREEN_SHIFT) & 0x7,
            (key >> KEY_BLUE_SHIFT) & 0x7,
            key & 0x3)
