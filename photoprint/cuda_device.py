"""NVIDIA GPU compute device through ``numba.cuda``.

The kernel compiles the shared :func:`~photoprint._quantize.fingerprint_key`
as a device function, so the GPU evaluates exactly the same integer
arithmetic as the CPU builder.  One thread per pixel; each thread bumps
its key's counter with ``cuda.atomic.add``.

CUDA launches whole blocks only, so this device reports
``DeviceCapability.UNIFORM_ONLY`` and always runs the bounds-checked kernel.
Thread-group (block) limits come from the device attributes ``WARP_SIZE``
and ``MAX_THREADS_PER_BLOCK``.

Kernels are compiled when the pipeline is built, not at import, so the
module imports fine on machines without a GPU; building a pipeline there
raises :class:`~photoprint.exceptions.PipelineError`.

Usage::

    from photoprint import FingerprintKernel
    from photoprint.cuda_device import CudaComputeDevice

    with CudaComputeDevice() as device:
        kernel = FingerprintKernel(device)
        fp = kernel.compute(pixels, width, height)
"""

from typing import Optional

import numpy as np
from numba import cuda

from ._constants import KEY_COUNT
from ._quantize import fingerprint_key
from .device import CommandStream, ComputeDevice, ComputePipeline, CounterBuffer
from .dispatch import DeviceCapability, KERNEL_FUNCTION
from .exceptions import PipelineError

__all__ = ["CudaComputeDevice", "cuda_available"]

_KERNEL_SIGNATURE = "void(uint32[::1], int64, int64, uint32[::1])"

_fingerprint_key_device = cuda.jit(device=True)(fingerprint_key)


def _fingerprint_kernel_py(pixels, width, height, counters):
    x, y = cuda.grid(2)
    if x >= width or y >= height:
        return
    key = _fingerprint_key_device(pixels[y * width + x], x, y, width, height)
    cuda.atomic.add(counters, key, 1)


# No signature here: compilation happens in make_pipeline().
_fingerprint_kernel = cuda.jit(_fingerprint_kernel_py)

_LIBRARY = {
    KERNEL_FUNCTION: _fingerprint_kernel,
}


def cuda_available() -> bool:
    """True if numba can see a usable CUDA device."""
    return cuda.is_available()


class _CudaCounterBuffer(CounterBuffer):

    def __init__(self) -> None:
        super().__init__()
        self._device_array = cuda.to_device(np.zeros(KEY_COUNT, dtype=np.uint32))

    def _read(self) -> np.ndarray:
        return self._device_array.copy_to_host()

    def _clear(self) -> None:
        self._device_array.copy_to_device(np.zeros(KEY_COUNT, dtype=np.uint32))


class _CudaCommandStream(CommandStream):

    def __init__(self) -> None:
        super().__init__()
        self._stream = cuda.stream()
        self._work = []

    def _encode(self, pipeline, pixels, width, height, buffer, geometry) -> None:
        if not isinstance(buffer, _CudaCounterBuffer):
            raise TypeError("Counter buffer was not created by a CUDA device")
        d_pixels = cuda.to_device(pixels, stream=self._stream)
        self._work.append((pipeline.function, d_pixels, int(width),
                           int(height), buffer, geometry))

    def _submit(self) -> None:
        for function, d_pixels, width, height, buffer, geometry in self._work:
            blocks = geometry.groups_per_grid[:2]
            threads = geometry.threads_per_group[:2]
            function[blocks, threads, self._stream](
                d_pixels, width, height, buffer._device_array
            )

    def _wait(self) -> None:
        self._stream.synchronize()
        self._work.clear()


class CudaComputeDevice(ComputeDevice):
    """CUDA GPU selected by index.

    Args:
        device_id: CUDA device index (default: 0).
    """

    def __init__(self, device_id: int = 0) -> None:
        self._device_id = device_id
        self.name = f"cuda:{device_id}"
        self._gpu = None

    @property
    def capability(self) -> DeviceCapability:
        return DeviceCapability.UNIFORM_ONLY

    def make_pipeline(self, function_name: str) -> ComputePipeline:
        if function_name not in _LIBRARY:
            raise PipelineError(f"Missing kernel function {function_name!r}")
        if not cuda.is_available():
            raise PipelineError("No CUDA device available")
        try:
            gpu = self._select()
            dispatcher = _LIBRARY[function_name]
            dispatcher.compile(_KERNEL_SIGNATURE)
            warp = int(gpu.WARP_SIZE)
            max_threads = int(gpu.MAX_THREADS_PER_BLOCK)
        except Exception as e:
            raise PipelineError(
                f"Failed to build {function_name!r} on {self.name}: {e}"
            ) from e
        return ComputePipeline(function_name, warp, max_threads, dispatcher)

    def new_counter_buffer(self) -> CounterBuffer:
        self._select()
        return _CudaCounterBuffer()

    def new_command_stream(self) -> CommandStream:
        self._select()
        return _CudaCommandStream()

    def close(self) -> None:
        self._gpu = None

    def _select(self):
        if self._gpu is None:
            self._gpu = cuda.select_device(self._device_id)
        return self._gpu

    @property
    def device_id(self) -> int:
        return self._device_id

    @property
    def compute_capability(self) -> Optional[tuple]:
        """``(major, minor)`` of the selected GPU, None before first use."""
        return None if self._gpu is None else self._gpu.compute_capability
