"""Exception types raised by photoprint.

Input precondition violations (wrong buffer length, negative sizes) are
plain ``ValueError``; everything device-related derives from
:class:`PhotoprintError`.
"""

__all__ = ["PhotoprintError", "PipelineError", "PipelineUnavailableError"]


class PhotoprintError(RuntimeError):
    """Base class for device and pipeline failures."""


class PipelineError(PhotoprintError):
    """A compute device could not build the requested pipeline.

    Raised by ``ComputeDevice.make_pipeline`` for a missing kernel
    function, a compilation failure or an unusable device.
    """


class PipelineUnavailableError(PhotoprintError):
    """A fingerprint was requested from a kernel whose pipeline failed to build.

    Callers should fall back to :func:`photoprint.build_fingerprint`.
    """
