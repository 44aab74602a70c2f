"""Fingerprint: sparse, normalized colour/region histogram of an image.

Both build paths finish with :meth:`Fingerprint.from_counts`, so a CPU
fingerprint and a kernel fingerprint of the same pixels are the same
object up to float rounding.
"""

from collections.abc import Mapping
from typing import Dict, Iterator, Optional

import numpy as np

from ._constants import KEY_COUNT

__all__ = ["Fingerprint"]


class Fingerprint(Mapping):
    """Immutable mapping ``key -> weight`` over the 2048-key space.

    Weights are counts divided by the number of pixels, so they sum to
    1.0 for any non-empty image.  Keys that are absent have weight 0.
    Looking up an absent key raises ``KeyError`` like any mapping; use
    :meth:`weight` for the zero default.

    Args:
        weights: ``{key: weight}`` with keys in [0, 2047] and weights >= 0.
        pixel_count: Number of pixels the fingerprint was built from.
    """

    __slots__ = ("_weights", "_pixel_count")

    def __init__(self, weights: Mapping, pixel_count: int = 0) -> None:
        clean: Dict[int, float] = {}
        for key, value in weights.items():
            key = int(key)
            if not 0 <= key < KEY_COUNT:
                raise ValueError(f"Fingerprint key {key} outside [0, {KEY_COUNT - 1}]")
            value = float(value)
            if value < 0:
                raise ValueError(f"Negative weight {value} for key {key}")
            if value > 0:
                clean[key] = value
        if pixel_count < 0:
            raise ValueError(f"pixel_count must be >= 0, got {pixel_count}")
        self._weights = clean
        self._pixel_count = int(pixel_count)

    # ── Construction ──────────────────────────────────────────────────────

    @classmethod
    def from_counts(cls, counts, total: Optional[int] = None) -> "Fingerprint":
        """Normalize raw per-key counts into a fingerprint.

        This is the shared normalization step of the CPU builder and the
        kernel readback.

        Args:
            counts: Dense array of 2048 counters (any integer dtype) or a
                ``{key: count}`` mapping.
            total: Pixel count to divide by.  Defaults to the sum of counts.

        Returns:
            Fingerprint whose weights are ``count / total``.  Empty when
            ``total`` is 0.
        """
        if isinstance(counts, Mapping):
            items = [(int(k), int(v)) for k, v in counts.items() if v]
        else:
            dense = np.asarray(counts).ravel()
            if dense.shape[0] != KEY_COUNT:
                raise ValueError(
                    f"Expected {KEY_COUNT} counters, got {dense.shape[0]}"
                )
            keys = np.flatnonzero(dense)
            items = list(zip(keys.tolist(), dense[keys].tolist()))

        if total is None:
            total = sum(v for _, v in items)
        if total == 0:
            return cls({}, 0)
        return cls({k: v / total for k, v in items}, total)

    @classmethod
    def from_dense(cls, weights, pixel_count: int = 0) -> "Fingerprint":
        """Build from a dense length-2048 weight vector (zeros are dropped)."""
        dense = np.asarray(weights, dtype=np.float64).ravel()
        if dense.shape[0] != KEY_COUNT:
            raise ValueError(f"Expected {KEY_COUNT} weights, got {dense.shape[0]}")
        keys = np.flatnonzero(dense)
        return cls(dict(zip(keys.tolist(), dense[keys].tolist())), pixel_count)

    # ── Mapping protocol ──────────────────────────────────────────────────

    def __getitem__(self, key: int) -> float:
        return self._weights[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __eq__(self, other) -> bool:
        if isinstance(other, Fingerprint):
            return (self._weights == other._weights
                    and self._pixel_count == other._pixel_count)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((frozenset(self._weights.items()), self._pixel_count))

    def __repr__(self) -> str:
        return (f"Fingerprint(keys={len(self._weights)}, "
                f"pixel_count={self._pixel_count})")

    # ── Accessors ─────────────────────────────────────────────────────────

    def weight(self, key: int) -> float:
        """Weight of ``key``, 0.0 when unpopulated."""
        return self._weights.get(key, 0.0)

    def to_dense(self) -> np.ndarray:
        """Dense float64 vector of length 2048."""
        dense = np.zeros(KEY_COUNT, dtype=np.float64)
        if self._weights:
            keys = np.fromiter(self._weights.keys(), dtype=np.int64)
            dense[keys] = np.fromiter(self._weights.values(), dtype=np.float64)
        return dense

    def allclose(self, other: "Fingerprint", atol: float = 1e-6) -> bool:
        """Per-key comparison within ``atol`` (missing keys count as 0)."""
        keys = set(self._weights) | set(other)
        return all(abs(self.weight(k) - other.weight(k)) <= atol for k in keys)

    @property
    def pixel_count(self) -> int:
        """Number of pixels the fingerprint was built from."""
        return self._pixel_count

    @property
    def total_weight(self) -> float:
        """Sum of all weights (1.0 for a non-empty image)."""
        return float(sum(self._weights.values()))

    @property
    def is_empty(self) -> bool:
        return not self._weights
