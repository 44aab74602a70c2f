"""Compute device abstraction used by the fingerprint kernel.

Mirrors the shape of a GPU API: a device builds named pipelines, hands out
counter buffers and command streams; work encoded into a stream runs only
after :meth:`CommandStream.commit` and asynchronously with respect to the
caller.  A :class:`CounterBuffer` refuses to be read until every stream
that writes it has completed.

Concrete devices: :class:`~photoprint.host_device.HostComputeDevice`
(NumPy, runs anywhere) and :class:`~photoprint.cuda_device.CudaComputeDevice`
(NVIDIA GPU through numba).
"""

import enum
import threading
from typing import List, Optional

import numpy as np

from ._constants import FINGERPRINT_BUFFER_BYTES, KEY_COUNT
from .dispatch import DeviceCapability, DispatchGeometry

__all__ = ["ComputeDevice", "ComputePipeline", "CounterBuffer",
           "CommandStream", "StreamStatus"]


class ComputePipeline:
    """A kernel function compiled for a device, with its launch limits.

    Args:
        function_name: Name the pipeline was built from.
        execution_width: Native SIMD width (threads issued together).
        max_total_threads_per_group: Per-group thread limit.
        function: Device-specific callable.
    """

    def __init__(self, function_name: str, execution_width: int,
                 max_total_threads_per_group: int, function) -> None:
        self._function_name = function_name
        self._execution_width = int(execution_width)
        self._max_threads = int(max_total_threads_per_group)
        self._function = function

    @property
    def function_name(self) -> str:
        return self._function_name

    @property
    def execution_width(self) -> int:
        return self._execution_width

    @property
    def max_total_threads_per_group(self) -> int:
        return self._max_threads

    @property
    def function(self):
        return self._function

    def __repr__(self) -> str:
        return (f"ComputePipeline({self._function_name!r}, "
                f"execution_width={self._execution_width}, "
                f"max_total_threads_per_group={self._max_threads})")


class StreamStatus(enum.Enum):
    NOT_COMMITTED = "not_committed"
    COMMITTED = "committed"
    COMPLETED = "completed"
    ERROR = "error"


class CounterBuffer:
    """Key-indexed accumulation buffer: 2048 uint32 counters, 8192 bytes."""

    def __init__(self) -> None:
        self._writers: List["CommandStream"] = []
        self._lock = threading.Lock()

    @property
    def length(self) -> int:
        """Size in bytes (fixed)."""
        return FINGERPRINT_BUFFER_BYTES

    def read_counts(self) -> np.ndarray:
        """Copy of the 2048 counters, after all writing streams complete.

        Raises:
            RuntimeError: If a stream that writes this buffer was encoded
                but never committed (it would never complete).
        """
        self._wait_for_writers()
        counts = np.asarray(self._read(), dtype=np.uint32)
        assert counts.shape == (KEY_COUNT,)
        return counts

    def read_bytes(self) -> bytes:
        """Raw little-endian buffer contents (8192 bytes)."""
        return self.read_counts().astype("<u4").tobytes()

    def clear(self) -> None:
        """Zero all counters (waits for pending writers first)."""
        self._wait_for_writers()
        self._clear()

    def _attach_writer(self, stream: "CommandStream") -> None:
        with self._lock:
            self._writers.append(stream)

    def _wait_for_writers(self) -> None:
        with self._lock:
            writers = list(self._writers)
        for stream in writers:
            if stream.status is StreamStatus.NOT_COMMITTED:
                raise RuntimeError(
                    "Buffer has work encoded in a command stream that was never committed"
                )
            stream.wait_until_completed()
        with self._lock:
            self._writers = [s for s in self._writers if s not in writers]

    # ── Device hooks ──────────────────────────────────────────────────────

    def _read(self) -> np.ndarray:
        raise NotImplementedError

    def _clear(self) -> None:
        raise NotImplementedError


class CommandStream:
    """Ordered list of dispatches, submitted once with :meth:`commit`."""

    def __init__(self) -> None:
        self._status = StreamStatus.NOT_COMMITTED
        self._error: Optional[BaseException] = None

    @property
    def status(self) -> StreamStatus:
        return self._status

    @property
    def error(self) -> Optional[BaseException]:
        """Exception raised while executing, if any."""
        return self._error

    def encode_dispatch(self, pipeline: ComputePipeline, pixels: np.ndarray,
                        width: int, height: int, buffer: CounterBuffer,
                        geometry: DispatchGeometry) -> None:
        """Record one kernel dispatch over ``geometry``.

        Args:
            pipeline: Pipeline built by the same device.
            pixels: Validated flat ``uint32`` pixel array.
            width: Image width.
            height: Image height.
            buffer: Counter buffer from the same device.
            geometry: Launch shape from a dispatch policy.
        """
        if self._status is not StreamStatus.NOT_COMMITTED:
            raise RuntimeError("Cannot encode into a command stream after commit()")
        self._encode(pipeline, pixels, width, height, buffer, geometry)
        buffer._attach_writer(self)

    def commit(self) -> None:
        """Submit encoded work.  Returns immediately."""
        if self._status is not StreamStatus.NOT_COMMITTED:
            raise RuntimeError("Command stream already committed")
        self._status = StreamStatus.COMMITTED
        self._submit()

    def wait_until_completed(self) -> None:
        """Block until the submitted work has finished.

        Re-raises any exception the device raised while executing.
        """
        if self._status is StreamStatus.NOT_COMMITTED:
            raise RuntimeError("Command stream was not committed")
        if self._status is StreamStatus.COMMITTED:
            try:
                self._wait()
            except BaseException as exc:
                self._status = StreamStatus.ERROR
                self._error = exc
                raise
            self._status = StreamStatus.COMPLETED
        elif self._status is StreamStatus.ERROR:
            raise self._error

    # ── Device hooks ──────────────────────────────────────────────────────

    def _encode(self, pipeline, pixels, width, height, buffer, geometry) -> None:
        raise NotImplementedError

    def _submit(self) -> None:
        raise NotImplementedError

    def _wait(self) -> None:
        raise NotImplementedError


class ComputeDevice:
    """Base class for devices able to run the fingerprint kernel."""

    name: str = "device"

    @property
    def capability(self) -> DeviceCapability:
        """Dispatch capability tier of this device."""
        raise NotImplementedError

    def make_pipeline(self, function_name: str) -> ComputePipeline:
        """Build the pipeline for a kernel function.

        Raises:
            PipelineError: Missing function, compile failure or unusable device.
        """
        raise NotImplementedError

    def new_counter_buffer(self) -> CounterBuffer:
        """Allocate a zeroed 8192-byte counter buffer."""
        raise NotImplementedError

    def new_command_stream(self) -> CommandStream:
        raise NotImplementedError

    def close(self) -> None:
        """Release device resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"
