"""FingerprintKernel: data-parallel fingerprint on a compute device.

One logical thread per pixel.  Each thread computes its pixel's key with
the shared quantization function and atomically increments that key's
slot in a fixed 8192-byte buffer of 2048 ``uint32`` counters.  After the
command stream completes, the counters are read back and normalized by
:meth:`Fingerprint.from_counts`, the same step the CPU builder uses.

Construction selects everything that depends on the device, once:

- capability tier -> dispatch policy and kernel function name
  (``fingerprint_kernel_nonuniform`` or the bounds-checked
  ``fingerprint_kernel``),
- pipeline -> thread-group size
  ``(execution_width, max_threads_per_group // execution_width, 1)``.

If the pipeline cannot be built the kernel stays usable as an object but
unavailable: the failure is reported once with a ``RuntimeWarning``,
:meth:`encode` returns a failed :class:`EncodeResult` without touching the
stream or buffer, and :meth:`compute` raises
:class:`PipelineUnavailableError`.  There is no retry.

Usage::

    from photoprint import FingerprintKernel, HostComputeDevice

    with HostComputeDevice() as device:
        kernel = FingerprintKernel(device)
        fp = kernel.compute(pixels, width, height)

        # Or encode into your own stream:
        buf = device.new_counter_buffer()
        stream = device.new_command_stream()
        if kernel.encode(stream, pixels, width, height, buf):
            stream.commit()
            counts = buf.read_counts()    # blocks until the stream completes
"""

import sys
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ._constants import FINGERPRINT_BUFFER_BYTES
from .cpu_builder import as_pixel_array, build_fingerprint
from .device import CommandStream, ComputeDevice, ComputePipeline, CounterBuffer
from .dispatch import (
    DeviceCapability, DispatchGeometry, DispatchPolicy, policy_type, thread_group_size,
)
from .exceptions import PipelineError, PipelineUnavailableError
from .fingerprint import Fingerprint

__all__ = ["FingerprintKernel", "EncodeResult", "PendingFingerprint",
           "fingerprint_with_fallback"]


@dataclass(frozen=True)
class EncodeResult:
    """Outcome of :meth:`FingerprintKernel.encode`.

    Truthy when the dispatch was encoded (or nothing needed encoding for a
    zero-pixel image).  On failure ``reason`` says why and the stream and
    buffer were left untouched.
    """
    ok: bool
    reason: Optional[str] = None
    geometry: Optional[DispatchGeometry] = None

    def __bool__(self) -> bool:
        return self.ok


class PendingFingerprint:
    """Future-style handle on a committed fingerprint computation."""

    def __init__(self, stream: CommandStream, buffer: CounterBuffer,
                 pixel_count: int) -> None:
        self._stream = stream
        self._buffer = buffer
        self._pixel_count = pixel_count
        self._result: Optional[Fingerprint] = None

    def counts(self) -> np.ndarray:
        """Raw counters; blocks until the command stream completes."""
        return self._buffer.read_counts()

    def result(self) -> Fingerprint:
        """Normalized fingerprint; blocks until the command stream completes."""
        if self._result is None:
            self._result = Fingerprint.from_counts(self.counts(), self._pixel_count)
        return self._result


class FingerprintKernel:
    """Host-side driver of the fingerprint compute kernel.

    Args:
        device: Device to build the pipeline on.
        verbose: Print dispatch geometry to stderr on every encode.
    """

    def __init__(self, device: ComputeDevice, verbose: bool = False) -> None:
        self._device = device
        self._verbose = verbose
        self._capability = DeviceCapability(device.capability)
        policy_cls = policy_type(self._capability)

        self._pipeline: Optional[ComputePipeline] = None
        self._policy: Optional[DispatchPolicy] = None
        self._failure: Optional[str] = None
        try:
            pipeline = device.make_pipeline(policy_cls.function_name)
            tpg = thread_group_size(pipeline.execution_width,
                                    pipeline.max_total_threads_per_group)
        except (PipelineError, ValueError) as e:
            self._failure = str(e)
            warnings.warn(
                f"Failed to create fingerprint pipeline on {device!r}: {e}",
                RuntimeWarning,
                stacklevel=2,
            )
        else:
            self._pipeline = pipeline
            self._policy = policy_cls(tpg)

    @staticmethod
    def fingerprint_size() -> int:
        """Accumulation buffer size in bytes: 2048 counters x 4 bytes."""
        return FINGERPRINT_BUFFER_BYTES

    # ── Encoding ──────────────────────────────────────────────────────────

    def encode(self, command_stream: CommandStream, pixels, width: int,
               height: int, buffer: CounterBuffer) -> EncodeResult:
        """Encode one fingerprint dispatch into ``command_stream``.

        The counters in ``buffer`` are incremented, not reset; pass a fresh
        or cleared buffer for a single-image fingerprint.

        Args:
            command_stream: Uncommitted stream from the same device.
            pixels: Packed ``uint32`` pixels, ``width * height`` of them.
            width: Image width.
            height: Image height.
            buffer: 8192-byte counter buffer from the same device.

        Returns:
            :class:`EncodeResult`; ``ok`` is False if the pipeline is
            unavailable.

        Raises:
            ValueError: Pixel buffer length mismatch or wrong buffer size.
        """
        if self._pipeline is None:
            return EncodeResult(False, reason=f"pipeline unavailable: {self._failure}")

        flat = as_pixel_array(pixels, width, height)
        if buffer.length != FINGERPRINT_BUFFER_BYTES:
            raise ValueError(
                f"Counter buffer is {buffer.length} bytes, "
                f"expected {FINGERPRINT_BUFFER_BYTES}"
            )

        geometry = self._policy.plan(width, height)
        if self._verbose:
            print(f"[fingerprint] {self._device.name} {self._capability.value}: "
                  f"groups={tuple(geometry.groups_per_grid)} "
                  f"threads/group={tuple(geometry.threads_per_group)} "
                  f"threads={tuple(geometry.threads_per_grid)} "
                  f"image={width}x{height}", file=sys.stderr)

        if not geometry.is_empty:
            command_stream.encode_dispatch(self._pipeline, flat, width, height,
                                           buffer, geometry)
        return EncodeResult(True, geometry=geometry)

    # ── One-shot helpers ──────────────────────────────────────────────────

    def submit(self, pixels, width: int, height: int) -> PendingFingerprint:
        """Encode and commit on a fresh stream and buffer; returns immediately.

        Raises:
            PipelineUnavailableError: If the pipeline failed to build.
            ValueError: Pixel buffer length mismatch.
        """
        if self._pipeline is None:
            raise PipelineUnavailableError(
                f"Fingerprint pipeline unavailable on {self._device!r}: {self._failure}"
            )
        buffer = self._device.new_counter_buffer()
        stream = self._device.new_command_stream()
        self.encode(stream, pixels, width, height, buffer)
        stream.commit()
        return PendingFingerprint(stream, buffer, width * height)

    def compute(self, pixels, width: int, height: int) -> Fingerprint:
        """Blocking fingerprint of one image.

        Raises:
            PipelineUnavailableError: If the pipeline failed to build.
            ValueError: Pixel buffer length mismatch.
        """
        return self.submit(pixels, width, height).result()

    # ── Properties ────────────────────────────────────────────────────────

    @property
    def available(self) -> bool:
        """False if the pipeline failed to build."""
        return self._pipeline is not None

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure

    @property
    def capability(self) -> DeviceCapability:
        return self._capability

    @property
    def policy(self) -> Optional[DispatchPolicy]:
        return self._policy

    @property
    def pipeline(self) -> Optional[ComputePipeline]:
        return self._pipeline

    @property
    def device(self) -> ComputeDevice:
        return self._device


def fingerprint_with_fallback(pixels, width: int, height: int,
                              kernel: Optional[FingerprintKernel] = None) -> Fingerprint:
    """Fingerprint on ``kernel`` when available, otherwise on the CPU.

    Falling back because the kernel is unavailable emits a
    ``RuntimeWarning``; ``kernel=None`` uses the CPU path silently.
    """
    if kernel is not None:
        if kernel.available:
            return kernel.compute(pixels, width, height)
        warnings.warn(
            f"Fingerprint kernel unavailable ({kernel.failure_reason}); "
            "using CPU path",
            RuntimeWarning,
            stacklevel=2,
        )
    return build_fingerprint(pixels, width, height)
