"""CPU reference path: fingerprint a packed RGBA8 pixel buffer.

Computes every pixel's key with the shared :func:`fingerprint_key` in one
vectorized pass, counts keys over the 2048-slot space and normalizes.
Counting is a commutative sum, so the result does not depend on scan
order and matches the compute-kernel path exactly.

Usage::

    from photoprint import build_fingerprint

    fp = build_fingerprint(pixels, width, height)   # uint32 0xRRGGBBAA
"""

import numpy as np

from ._constants import KEY_COUNT
from ._quantize import fingerprint_key
from .fingerprint import Fingerprint

__all__ = ["build_fingerprint", "count_keys", "as_pixel_array"]


def as_pixel_array(pixels, width: int, height: int) -> np.ndarray:
    """Validate and flatten a packed pixel buffer.

    Args:
        pixels: Packed ``uint32`` pixels, row-major; a flat buffer of
            ``width * height`` entries or an ``(height, width)`` array.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        Contiguous 1-D ``uint32`` array of length ``width * height``.

    Raises:
        ValueError: On negative dimensions or a length mismatch.
    """
    if width < 0 or height < 0:
        raise ValueError(f"Image size must be non-negative, got {width}x{height}")
    arr = np.asarray(pixels)
    if arr.ndim == 2 and arr.shape != (height, width):
        raise ValueError(
            f"Pixel array shape {arr.shape} != expected ({height}, {width})"
        )
    arr = np.ascontiguousarray(arr.ravel(), dtype=np.uint32)
    if arr.shape[0] != width * height:
        raise ValueError(
            f"Pixel buffer has {arr.shape[0]} entries, expected "
            f"{width * height} ({width}x{height})"
        )
    return arr


def count_keys(pixels, width: int, height: int) -> np.ndarray:
    """Raw per-key pixel counts, as a dense ``uint32`` array of 2048.

    Same layout as the kernel's accumulation buffer.
    """
    flat = as_pixel_array(pixels, width, height)
    if flat.shape[0] == 0:
        return np.zeros(KEY_COUNT, dtype=np.uint32)

    ys, xs = np.divmod(np.arange(flat.shape[0], dtype=np.int64), width)
    keys = fingerprint_key(flat, xs, ys, width, height)
    return np.bincount(keys, minlength=KEY_COUNT).astype(np.uint32)


def build_fingerprint(pixels, width: int, height: int) -> Fingerprint:
    """Build a fingerprint on the CPU.

    Args:
        pixels: Packed ``uint32`` RGBA8 pixels (``0xRRGGBBAA``), exactly
            ``width * height`` of them.
        width: Image width.
        height: Image height.

    Returns:
        Normalized :class:`Fingerprint`; empty for a zero-pixel image.

    Raises:
        ValueError: If the buffer length does not match ``width * height``.
    """
    counts = count_keys(pixels, width, height)
    return Fingerprint.from_counts(counts, width * height)
