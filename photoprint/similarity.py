"""Cosine similarity between fingerprints, and a small search gallery.

``score = dot(a, b) / (|a| * |b|)`` over the union of populated keys.  A
key present on one side only contributes nothing to the dot product but
still counts toward that side's norm.  Fingerprint weights are
non-negative, so scores land in [0, 1]; an empty fingerprint scores 0.0
against anything.

Usage::

    from photoprint import cosine_similarity, FingerprintGallery

    score = cosine_similarity(fp_a, fp_b)

    gallery = FingerprintGallery()
    gallery.add("beach.jpg", fp_a)
    gallery.add("forest.jpg", fp_b)
    for label, score in gallery.query(fp_query, top_k=3):
        print(f"{label}: {score:.3f}")
"""

import math
from collections.abc import Mapping
from typing import Dict, List, Tuple

import numpy as np

from .fingerprint import Fingerprint

__all__ = ["cosine_similarity", "FingerprintGallery"]


def _as_sparse(fp) -> Mapping:
    """Accept a Fingerprint / mapping as-is; reduce a dense vector to its non-zeros."""
    if isinstance(fp, Mapping):
        return fp
    dense = np.asarray(fp, dtype=np.float64).ravel()
    keys = np.flatnonzero(dense)
    return dict(zip(keys.tolist(), dense[keys].tolist()))


def cosine_similarity(a, b) -> float:
    """Cosine similarity of two fingerprints.

    Args:
        a: :class:`Fingerprint`, ``{key: weight}`` mapping (normalized
            weights or raw counts) or a dense vector.
        b: Same as ``a``.

    Returns:
        Similarity in [-1, 1] (in [0, 1] for non-negative weights).  0.0
        when either side has zero norm.
    """
    a = _as_sparse(a)
    b = _as_sparse(b)

    # Walk the smaller side; fsum keeps the result independent of order,
    # so cosine_similarity(a, b) == cosine_similarity(b, a) exactly.
    small, large = (a, b) if len(a) <= len(b) else (b, a)
    dot = math.fsum(float(value) * float(large[key])
                    for key, value in small.items() if key in large)

    aa = math.fsum(float(v) * float(v) for v in a.values())
    bb = math.fsum(float(v) * float(v) for v in b.values())
    if aa == 0.0 or bb == 0.0:
        return 0.0

    score = dot / (math.sqrt(aa) * math.sqrt(bb))
    return max(-1.0, min(1.0, score))


class FingerprintGallery:
    """Labelled collection of fingerprints searchable by cosine similarity."""

    def __init__(self) -> None:
        self._entries: Dict[str, Fingerprint] = {}

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def add(self, label: str, fingerprint: Fingerprint) -> None:
        """Add one fingerprint.

        Raises:
            ValueError: If ``label`` is already present.
        """
        if label in self._entries:
            raise ValueError(f"Duplicate label: {label!r}")
        self._entries[label] = fingerprint

    def add_batch(self, labels: list, fingerprints: list) -> None:
        """Add several fingerprints; all-or-nothing on duplicate labels."""
        if len(labels) != len(fingerprints):
            raise ValueError(
                f"labels length {len(labels)} != fingerprints count {len(fingerprints)}"
            )
        if len(set(labels)) != len(labels):
            raise ValueError("Duplicate labels in add_batch()")
        for label in labels:
            if label in self._entries:
                raise ValueError(f"Duplicate label: {label!r}")
        self._entries.update(zip(labels, fingerprints))

    def remove(self, label: str) -> None:
        """Remove a fingerprint.

        Raises:
            KeyError: If ``label`` is not present.
        """
        if label not in self._entries:
            raise KeyError(f"Label not found: {label!r}")
        del self._entries[label]

    def clear(self) -> None:
        self._entries.clear()

    def get(self, label: str) -> Fingerprint:
        return self._entries[label]

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, fingerprint, top_k: int = 1) -> List[Tuple[str, float]]:
        """Most similar stored fingerprints.

        Args:
            fingerprint: Query fingerprint (anything :func:`cosine_similarity`
                accepts).
            top_k: Number of results.

        Returns:
            ``(label, score)`` tuples by descending score; ties keep
            insertion order.

        Raises:
            ValueError: If the gallery is empty or ``top_k`` < 1.
        """
        if not self._entries:
            raise ValueError("Gallery is empty")
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")

        scored = [(label, cosine_similarity(fingerprint, fp))
                  for label, fp in self._entries.items()]
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:top_k]

    def matches(self, fingerprint, threshold: float) -> List[Tuple[str, float]]:
        """All stored fingerprints scoring at least ``threshold``, best first."""
        if not self._entries:
            return []
        scored = self.query(fingerprint, top_k=len(self._entries))
        return [(label, score) for label, score in scored if score >= threshold]

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Number of stored fingerprints."""
        return len(self._entries)

    @property
    def labels(self) -> list:
        """Copy of the labels in insertion order."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, label) -> bool:
        return label in self._entries
