"""Shared utilities for the standalone example scripts.

Device selection, frame conversion and a small webcam loop so each
example stays focused on what it fingerprints.
"""

import argparse
import signal
import sys
import time
from collections import deque

import cv2
import numpy as np

from photoprint import FingerprintKernel, HostComputeDevice, pack_rgba


def add_device_args(parser: argparse.ArgumentParser) -> None:
    """Add compute-device arguments shared by all examples."""
    parser.add_argument("--device", choices=["cpu", "host", "cuda"], default="cpu",
                        help="Fingerprint on the CPU builder, the NumPy host "
                             "device or a CUDA GPU (default: cpu)")
    parser.add_argument("--verbose", action="store_true",
                        help="Print dispatch geometry for every kernel launch")


def open_kernel(args: argparse.Namespace):
    """Return ``(device, kernel)`` for ``--device``; ``(None, None)`` for cpu.

    The caller closes the device.
    """
    if args.device == "cpu":
        return None, None
    if args.device == "cuda":
        from photoprint.cuda_device import CudaComputeDevice
        device = CudaComputeDevice()
    else:
        device = HostComputeDevice()
    return device, FingerprintKernel(device, verbose=args.verbose)


def frame_to_pixels(frame_bgr: np.ndarray):
    """BGR uint8 frame -> ``(pixels, width, height)`` packed RGBA8."""
    rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)
    h, w = rgba.shape[:2]
    return pack_rgba(rgba), w, h


class WebcamLoop:
    """Iterator yielding BGR frames with FPS tracking and clean shutdown.

    Usage::

        loop = WebcamLoop(camera=0)
        for frame in loop:
            ...
            loop.print_metrics({"top1": 0.93}, latency_ms=1.2)
        loop.cleanup()
    """

    def __init__(self, camera: int = 0, width: int = 640, height: int = 480):
        self._cap = cv2.VideoCapture(camera)
        if not self._cap.isOpened():
            raise RuntimeError(f"Failed to open camera {camera}")
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        self._timestamps = deque(maxlen=30)
        self._running = True
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, sig, frame):
        self._running = False

    def __iter__(self):
        return self

    def __next__(self) -> np.ndarray:
        if not self._running:
            raise StopIteration
        ret, frame = self._cap.read()
        if not ret:
            raise StopIteration
        self._timestamps.append(time.perf_counter())
        return frame

    @property
    def fps(self) -> float:
        """Rolling FPS over the last 30 frames."""
        if len(self._timestamps) < 2:
            return 0.0
        dt = self._timestamps[-1] - self._timestamps[0]
        return (len(self._timestamps) - 1) / dt if dt > 0 else 0.0

    def show(self, frame: np.ndarray, window_name: str = "photoprint") -> int:
        """Display frame; returns the key pressed (0xFF if none).  'q' stops the loop."""
        cv2.imshow(window_name, frame)
        key = cv2.waitKey(1) & 0xFF
        if key == ord("q"):
            self._running = False
        return key

    def print_metrics(self, metrics: dict, latency_ms: float) -> None:
        """Print single-line metrics to terminal with carriage return."""
        parts = [f"FPS: {self.fps:.1f}", f"latency: {latency_ms:.2f} ms"]
        for k, v in metrics.items():
            parts.append(f"{k}: {v:.3f}" if isinstance(v, float) else f"{k}: {v}")
        sys.stdout.write("\r" + " | ".join(parts) + "    ")
        sys.stdout.flush()

    def cleanup(self) -> None:
        """Release camera and destroy windows."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        cv2.destroyAllWindows()
        print()


def draw_text(img: np.ndarray, text: str, pos: tuple,
              color: tuple = (255, 255, 255), scale: float = 0.5) -> None:
    """Draw text with black background for visibility."""
    font = cv2.FONT_HERSHEY_SIMPLEX
    (tw, th), baseline = cv2.getTextSize(text, font, scale, 1)
    x, y = pos
    cv2.rectangle(img, (x - 2, y - th - 2), (x + tw + 2, y + baseline + 2),
                  (0, 0, 0), -1)
    cv2.putText(img, text, (x, y), font, scale, color, 1)
