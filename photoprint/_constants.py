"""Shared constants for the photoprint package.

Fixed by the fingerprint key layout.  Both the CPU builder and the compute
kernels index the same 2048-slot key space, so none of these values may
change on one side only.
"""

# Packed pixel layout 0xRRGGBBAA: right-shift that brings each channel
# into the low byte.
RED_SHIFT = 24
GREEN_SHIFT = 16
BLUE_SHIFT = 8
CHANNEL_MASK = 0xFF

# 8-bit channel -> 3-bit level (component >> 5).
COMPONENT_SHIFT = 5

# Key layout |-3 bit R-|-3 bit G-|-3 bit B-|-2 bit region-|
KEY_RED_SHIFT = 8
KEY_GREEN_SHIFT = 5
KEY_BLUE_SHIFT = 2

# At most a 2x2 grid of spatial regions.
REGION_GRID = 2

# 11-bit key space.
KEY_COUNT = 2048

# Accumulation buffer: one 4-byte counter per key.
COUNTER_BYTES = 4
FINGERPRINT_BUFFER_BYTES = 8192

assert KEY_COUNT * COUNTER_BYTES == FINGERPRINT_BUFFER_BYTES
