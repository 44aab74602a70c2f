"""Packed RGBA8 pixel buffers.

The fingerprint code consumes a flat, row-major buffer of ``uint32``
pixels packed as ``0xRRGGBBAA`` plus the image width and height.  This
module converts to and from ``(H, W, 4)`` uint8 arrays and decodes image
files with Pillow.
"""

import os
from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image

from ._constants import BLUE_SHIFT, CHANNEL_MASK, GREEN_SHIFT, RED_SHIFT

__all__ = ["PixelBuffer", "pack_rgba", "unpack_rgba", "load_pixels"]


def pack_rgba(rgba: np.ndarray) -> np.ndarray:
    """Pack an ``(H, W, 4)`` (or ``(N, 4)``) uint8 RGBA array into uint32.

    Returns:
        Flat ``uint32`` array of ``0xRRGGBBAA`` values, row-major.
    """
    rgba = np.asarray(rgba)
    if rgba.shape[-1] != 4:
        raise ValueError(f"Expected 4 channels in last axis, got shape {rgba.shape}")
    if rgba.dtype != np.uint8:
        rgba = np.clip(rgba, 0, 255).astype(np.uint8)
    c = rgba.reshape(-1, 4).astype(np.uint32)
    return ((c[:, 0] << RED_SHIFT) | (c[:, 1] << GREEN_SHIFT)
            | (c[:, 2] << BLUE_SHIFT) | c[:, 3])


def unpack_rgba(pixels, width: int, height: int) -> np.ndarray:
    """Inverse of :func:`pack_rgba`: returns an ``(height, width, 4)`` uint8 array."""
    flat = np.asarray(pixels, dtype=np.uint32).ravel()
    if flat.shape[0] != width * height:
        raise ValueError(
            f"Pixel buffer has {flat.shape[0]} entries, expected {width * height}"
        )
    out = np.empty((flat.shape[0], 4), dtype=np.uint8)
    out[:, 0] = (flat >> RED_SHIFT) & CHANNEL_MASK
    out[:, 1] = (flat >> GREEN_SHIFT) & CHANNEL_MASK
    out[:, 2] = (flat >> BLUE_SHIFT) & CHANNEL_MASK
    out[:, 3] = flat & CHANNEL_MASK
    return out.reshape(height, width, 4)


@dataclass(frozen=True)
class PixelBuffer:
    """Packed pixels with their image size."""
    pixels: np.ndarray
    width: int
    height: int

    def validate(self) -> None:
        """Raise ``ValueError`` unless ``len(pixels) == width * height``."""
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Image size must be non-negative, got {self.width}x{self.height}")
        n = np.asarray(self.pixels).size
        if n != self.width * self.height:
            raise ValueError(
                f"Pixel buffer has {n} entries, expected "
                f"{self.width * self.height} ({self.width}x{self.height})"
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_rgba(cls, rgba: np.ndarray) -> "PixelBuffer":
        """Build from an ``(H, W, 4)`` uint8 array."""
        rgba = np.asarray(rgba)
        if rgba.ndim != 3:
            raise ValueError(f"Expected (H, W, 4) array, got shape {rgba.shape}")
        height, width = rgba.shape[:2]
        return cls(pack_rgba(rgba), width, height)


def load_pixels(source: Union[str, os.PathLike, Image.Image]) -> PixelBuffer:
    """Decode an image into a :class:`PixelBuffer`.

    Args:
        source: File path or an already opened ``PIL.Image.Image``.  Any
            mode is converted to RGBA (opaque alpha when absent).

    Returns:
        PixelBuffer of the full-resolution image.
    """
    if isinstance(source, Image.Image):
        rgba = np.asarray(source.convert("RGBA"))
    else:
        with Image.open(source) as img:
            rgba = np.asarray(img.convert("RGBA"))
    return PixelBuffer.from_rgba(rgba)
