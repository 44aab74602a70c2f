"""Thread-grid dispatch policy for the fingerprint kernel.

Devices fall in two capability tiers:

- ``NON_UNIFORM``: the grid may be sized exactly to the image; edge
  thread-groups are partial.  Every launched thread maps to a pixel.
- ``UNIFORM_ONLY``: only whole thread-groups can be launched.  The grid is
  rounded up to a multiple of the group size and overshoots the image, so
  the kernel variant used on these devices bounds-checks each thread.

The tier is read once when a :class:`~photoprint.kernel.FingerprintKernel`
is built; it picks a :class:`DispatchPolicy` subclass and callers only ever
call :meth:`DispatchPolicy.plan`.
"""

import enum
from dataclasses import dataclass
from typing import NamedTuple

__all__ = [
    "DeviceCapability", "Size", "DispatchGeometry", "DispatchPolicy",
    "NonUniformDispatch", "UniformDispatch", "thread_group_size",
    "policy_type", "KERNEL_FUNCTION", "KERNEL_FUNCTION_NONUNIFORM",
]

# Kernel function names a device library must provide.
KERNEL_FUNCTION = "fingerprint_kernel"
KERNEL_FUNCTION_NONUNIFORM = "fingerprint_kernel_nonuniform"


class DeviceCapability(enum.Enum):
    """Whether a device can dispatch an exact, non-group-aligned thread grid."""
    UNIFORM_ONLY = "uniform_only"
    NON_UNIFORM = "non_uniform"


class Size(NamedTuple):
    """3-D extent (threads or thread-groups)."""
    width: int
    height: int
    depth: int = 1

    @property
    def count(self) -> int:
        return self.width * self.height * self.depth


@dataclass(frozen=True)
class DispatchGeometry:
    """Concrete launch shape for one image.

    Attributes:
        threads_per_group: Thread-group dimensions.
        groups_per_grid: Number of thread-groups along each axis.
        threads_per_grid: Threads actually launched along each axis.  Equal
            to the image size for non-uniform dispatch; a multiple of
            ``threads_per_group`` (and possibly larger than the image) for
            uniform dispatch.
        exact: True when ``threads_per_grid`` matches the image exactly.
    """
    threads_per_group: Size
    groups_per_grid: Size
    threads_per_grid: Size
    exact: bool

    @property
    def total_threads(self) -> int:
        return self.threads_per_grid.count

    @property
    def is_empty(self) -> bool:
        return self.groups_per_grid.count == 0


def thread_group_size(execution_width: int, max_threads_per_group: int) -> Size:
    """Group as wide as the SIMD width, as tall as the thread limit allows.

    Args:
        execution_width: Native SIMD width of the pipeline (warp size).
        max_threads_per_group: Per-group thread limit of the pipeline.

    Returns:
        ``Size(execution_width, max_threads_per_group // execution_width, 1)``.

    Raises:
        ValueError: If the limits cannot fit a single row of threads.
    """
    if execution_width < 1:
        raise ValueError(f"execution_width must be >= 1, got {execution_width}")
    height = max_threads_per_group // execution_width
    if height < 1:
        raise ValueError(
            f"max_threads_per_group ({max_threads_per_group}) is smaller than "
            f"execution_width ({execution_width})"
        )
    return Size(execution_width, height, 1)


def _ceil_div(n: int, d: int) -> int:
    return (n + d - 1) // d


class DispatchPolicy:
    """Maps an image size to a :class:`DispatchGeometry`.

    Subclasses fix the capability tier and the kernel function the tier
    requires.
    """

    capability: DeviceCapability
    function_name: str

    def __init__(self, threads_per_group: Size) -> None:
        self._tpg = Size(*threads_per_group)

    @property
    def threads_per_group(self) -> Size:
        return self._tpg

    def plan(self, width: int, height: int) -> DispatchGeometry:
        raise NotImplementedError

    def _groups(self, width: int, height: int) -> Size:
        w, h, _ = self._tpg
        return Size(_ceil_div(width, w), _ceil_div(height, h), 1)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(threads_per_group={tuple(self._tpg)})"


class NonUniformDispatch(DispatchPolicy):
    """Exact ``width x height x 1`` thread grid."""

    capability = DeviceCapability.NON_UNIFORM
    function_name = KERNEL_FUNCTION_NONUNIFORM

    def plan(self, width: int, height: int) -> DispatchGeometry:
        return DispatchGeometry(
            threads_per_group=self._tpg,
            groups_per_grid=self._groups(width, height),
            threads_per_grid=Size(width, height, 1),
            exact=True,
        )


class UniformDispatch(DispatchPolicy):
    """Whole thread-groups only: ``ceil(width / gw) x ceil(height / gh)`` groups."""

    capability = DeviceCapability.UNIFORM_ONLY
    function_name = KERNEL_FUNCTION

    def plan(self, width: int, height: int) -> DispatchGeometry:
        groups = self._groups(width, height)
        w, h, _ = self._tpg
        threads = Size(groups.width * w, groups.height * h, 1)
        return DispatchGeometry(
            threads_per_group=self._tpg,
            groups_per_grid=groups,
            threads_per_grid=threads,
            exact=(threads.width == width and threads.height == height),
        )


_POLICIES = {
    DeviceCapability.NON_UNIFORM: NonUniformDispatch,
    DeviceCapability.UNIFORM_ONLY: UniformDispatch,
}


def policy_type(capability: DeviceCapability) -> type:
    """Policy class for a capability tier."""
    try:
        return _POLICIES[DeviceCapability(capability)]
    except ValueError:
        raise ValueError(f"Unknown device capability: {capability!r}") from None
