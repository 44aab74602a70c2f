"""photoprint: spatial colour fingerprints for near-duplicate photo detection.

CPU reference builder and a compute-kernel path that produce identical
fingerprints, plus cosine similarity scoring.  The CUDA device lives in
:mod:`photoprint.cuda_device` and is imported on demand.
"""

from .fingerprint import Fingerprint
from .cpu_builder import build_fingerprint, count_keys
from .kernel import FingerprintKernel, EncodeResult, PendingFingerprint, fingerprint_with_fallback
from .dispatch import DeviceCapability
from .host_device import HostComputeDevice, HostDeviceConfig
from .similarity import cosine_similarity, FingerprintGallery
from .pixels import PixelBuffer, pack_rgba, unpack_rgba, load_pixels
from .color_stats import HSBColor, mean_hsb
from ._quantize import fingerprint_key
from .exceptions import PhotoprintError, PipelineError, PipelineUnavailableError

__all__ = ["Fingerprint", "build_fingerprint", "count_keys", "FingerprintKernel",
           "EncodeResult", "PendingFingerprint", "fingerprint_with_fallback",
           "DeviceCapability", "HostComputeDevice", "HostDeviceConfig",
           "cosine_similarity", "FingerprintGallery", "PixelBuffer", "pack_rgba",
           "unpack_rgba", "load_pixels", "HSBColor", "mean_hsb", "fingerprint_key",
           "PhotoprintError", "PipelineError", "PipelineUnavailableError"]
