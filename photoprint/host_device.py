"""NumPy compute device: runs the fingerprint kernel on the host CPU.

Executes a dispatch the way a GPU would schedule it, one thread-group at a
time, with every thread of the group evaluated as one vectorized step:

1. Build the ``(x, y)`` thread positions of the group, clipped to the
   launched grid (partial edge groups on a non-uniform grid).
2. Run the kernel function on those positions.
3. Accumulate with ``np.add.at``, which applies every increment even when
   several threads hit the same key (the host analogue of an atomic add).

Both capability tiers are supported, selected by :class:`HostDeviceConfig`,
so the uniform-only dispatch path can be validated without a GPU.  Work is
executed on a single worker thread per device, in commit order, so a
commit returns before the counters are written.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ._constants import KEY_COUNT
from ._quantize import fingerprint_key
from .device import CommandStream, ComputeDevice, ComputePipeline, CounterBuffer
from .dispatch import (
    DeviceCapability, DispatchGeometry, KERNEL_FUNCTION, KERNEL_FUNCTION_NONUNIFORM,
)
from .exceptions import PipelineError

__all__ = ["HostComputeDevice", "HostDeviceConfig"]


# ── Kernel functions ──────────────────────────────────────────────────────
# One call per thread-group; ``xs``/``ys`` hold the group's thread positions.

def _fingerprint_kernel(xs, ys, pixels, width, height, counters):
    # Group-aligned grids overshoot the image: drop out-of-range threads.
    inside = (xs < width) & (ys < height)
    xs = xs[inside]
    ys = ys[inside]
    keys = fingerprint_key(pixels[ys * width + xs], xs, ys, width, height)
    np.add.at(counters, keys, 1)


def _fingerprint_kernel_nonuniform(xs, ys, pixels, width, height, counters):
    keys = fingerprint_key(pixels[ys * width + xs], xs, ys, width, height)
    np.add.at(counters, keys, 1)


_LIBRARY = {
    KERNEL_FUNCTION: _fingerprint_kernel,
    KERNEL_FUNCTION_NONUNIFORM: _fingerprint_kernel_nonuniform,
}


@dataclass
class HostDeviceConfig:
    """Tweakable properties of the host device.

    Defaults describe a non-uniform-capable device with a 32-wide SIMD
    group and 1024 threads per group.  Set ``functions`` to a subset of
    the kernel names to emulate a library that lacks one; set
    ``available=False`` to emulate a device that cannot build pipelines.
    """
    name: str = "host"
    capability: DeviceCapability = DeviceCapability.NON_UNIFORM
    execution_width: int = 32
    max_threads_per_group: int = 1024
    functions: Optional[Tuple[str, ...]] = None
    available: bool = True


class _HostCounterBuffer(CounterBuffer):

    def __init__(self) -> None:
        super().__init__()
        self._counters = np.zeros(KEY_COUNT, dtype=np.uint32)

    def _read(self) -> np.ndarray:
        return self._counters.copy()

    def _clear(self) -> None:
        self._counters[:] = 0


class _HostCommandStream(CommandStream):

    def __init__(self, device: "HostComputeDevice") -> None:
        super().__init__()
        self._device = device
        self._work = []
        self._future: Optional[Future] = None

    def _encode(self, pipeline, pixels, width, height, buffer, geometry) -> None:
        if not isinstance(buffer, _HostCounterBuffer):
            raise TypeError("Counter buffer was not created by a host device")
        # Snapshot the pixels, like an upload to device memory.
        self._work.append((pipeline.function, pixels.copy(), int(width),
                           int(height), buffer, geometry))

    def _submit(self) -> None:
        self._future = self._device._executor().submit(self._run)

    def _wait(self) -> None:
        self._future.result()

    def _run(self) -> None:
        for function, pixels, width, height, buffer, geometry in self._work:
            _execute(function, geometry, pixels, width, height, buffer._counters)
        self._work.clear()


def _execute(function, geometry: DispatchGeometry, pixels, width, height, counters):
    tw, th, _ = geometry.threads_per_group
    grid_w, grid_h, _ = geometry.threads_per_grid
    gw, gh, _ = geometry.groups_per_grid
    for gy in range(gh):
        y0 = gy * th
        ys = np.arange(y0, min(y0 + th, grid_h), dtype=np.int64)
        for gx in range(gw):
            x0 = gx * tw
            xs = np.arange(x0, min(x0 + tw, grid_w), dtype=np.int64)
            yy, xx = np.meshgrid(ys, xs, indexing="ij")
            function(xx.ravel(), yy.ravel(), pixels, width, height, counters)


class HostComputeDevice(ComputeDevice):
    """Compute device backed by NumPy on the calling machine.

    Args:
        config: Device properties.  Uses defaults if None.
    """

    def __init__(self, config: Optional[HostDeviceConfig] = None) -> None:
        if config is None:
            config = HostDeviceConfig()
        self._config = config
        self.name = config.name
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    @property
    def config(self) -> HostDeviceConfig:
        return self._config

    @property
    def capability(self) -> DeviceCapability:
        return self._config.capability

    def make_pipeline(self, function_name: str) -> ComputePipeline:
        cfg = self._config
        if not cfg.available:
            raise PipelineError(f"Device {cfg.name!r} is not available")
        provided = _LIBRARY if cfg.functions is None else {
            k: v for k, v in _LIBRARY.items() if k in cfg.functions
        }
        if function_name not in provided:
            raise PipelineError(f"Missing kernel function {function_name!r}")
        return ComputePipeline(function_name, cfg.execution_width,
                               cfg.max_threads_per_group, provided[function_name])

    def new_counter_buffer(self) -> CounterBuffer:
        return _HostCounterBuffer()

    def new_command_stream(self) -> CommandStream:
        return _HostCommandStream(self)

    def close(self) -> None:
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)

    def _executor(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"photoprint-{self.name}"
                )
            return self._pool
