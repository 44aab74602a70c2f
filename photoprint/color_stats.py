"""Mean hue / saturation / brightness of a packed pixel buffer."""

from dataclasses import dataclass

import cv2
import numpy as np

from .cpu_builder import as_pixel_array
from .pixels import unpack_rgba

__all__ = ["HSBColor", "mean_hsb"]


@dataclass(frozen=True)
class HSBColor:
    """Colour in HSB space, every component in [0, 1].

    ``hue`` is a fraction of the colour wheel (0.5 == 180 degrees).
    """
    hue: float
    saturation: float
    brightness: float


def mean_hsb(pixels, width: int, height: int) -> HSBColor:
    """Average per-pixel HSB of an image.  Alpha is ignored.

    Raises:
        ValueError: On a zero-pixel image or a buffer length mismatch.
    """
    flat = as_pixel_array(pixels, width, height)
    if flat.shape[0] == 0:
        raise ValueError("Cannot compute mean colour of an empty image")

    rgb = unpack_rgba(flat, width, height)[:, :, :3].astype(np.float32) / 255.0
    # float32 input: H in [0, 360), S and V in [0, 1].
    hsv = cv2.cvtColor(rgb, cv2.COLOR_RGB2HSV)
    h, s, v = hsv.reshape(-1, 3).astype(np.float64).mean(axis=0)
    return HSBColor(hue=float(h) / 360.0, saturation=float(s), brightness=float(v))
