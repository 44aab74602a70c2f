"""Tests for cosine similarity and the fingerprint gallery."""

import math

import numpy as np
import pytest

from photoprint import (
    Fingerprint, FingerprintGallery, build_fingerprint, cosine_similarity, pack_rgba,
)

from tests.synthetic import blocky_pixels, random_pixels, solid_pixels


def _fp(w=16, h=16, seed=0):
    return build_fingerprint(random_pixels(w, h, seed=seed), w, h)


class TestCosineSimilarity:

    def test_self_similarity_is_one(self):
        for seed in range(5):
            fp = _fp(seed=seed)
            assert cosine_similarity(fp, fp) == pytest.approx(1.0, abs=1e-12)

    def test_symmetric_exactly(self):
        for seed in range(5):
            a = _fp(seed=seed)
            b = _fp(w=9, h=13, seed=seed + 100)
            assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_disjoint_keys_score_zero(self):
        assert cosine_similarity({1: 0.5, 2: 0.5}, {3: 1.0}) == 0.0

    def test_empty_scores_zero(self):
        empty = Fingerprint({})
        assert cosine_similarity(empty, _fp()) == 0.0
        assert cosine_similarity(_fp(), empty) == 0.0
        assert cosine_similarity(empty, empty) == 0.0

    def test_in_unit_interval(self):
        a = _fp(seed=1)
        for seed in range(2, 8):
            score = cosine_similarity(a, _fp(seed=seed))
            assert 0.0 <= score <= 1.0

    def test_known_value(self):
        # a = (1, 1), b = (1, 0) over keys {0, 1}: cos = 1 / sqrt(2)
        assert cosine_similarity({0: 1.0, 1: 1.0}, {0: 1.0}) == pytest.approx(
            1 / math.sqrt(2))

    def test_one_sided_keys_count_toward_norm(self):
        # Key 7 exists only on the right; it must lower the score
        full = cosine_similarity({0: 1.0}, {0: 1.0})
        partial = cosine_similarity({0: 1.0}, {0: 1.0, 7: 1.0})
        assert full == pytest.approx(1.0)
        assert partial == pytest.approx(1 / math.sqrt(2))

    def test_dot_product_multiplies_matching_weights(self):
        # Only the shared key contributes, as a product of both weights
        a = {0: 0.3, 1: 1.0}
        b = {0: 0.9, 2: 0.5}
        expected = (0.3 * 0.9) / (math.hypot(0.3, 1.0) * math.hypot(0.9, 0.5))
        assert cosine_similarity(a, b) == pytest.approx(expected)
        assert cosine_similarity(b, a) == pytest.approx(expected)

    def test_scale_invariant(self):
        # Raw counts and normalized weights give the same score
        counts_a = {5: 30, 9: 10}
        counts_b = {5: 2, 9: 2, 11: 4}
        norm_a = Fingerprint.from_counts(counts_a)
        norm_b = Fingerprint.from_counts(counts_b)
        assert cosine_similarity(counts_a, counts_b) == pytest.approx(
            cosine_similarity(norm_a, norm_b))

    def test_dense_matches_sparse(self):
        a, b = _fp(seed=3), _fp(seed=4)
        assert cosine_similarity(a.to_dense(), b.to_dense()) == pytest.approx(
            cosine_similarity(a, b))
        assert cosine_similarity(a.to_dense(), b) == pytest.approx(
            cosine_similarity(a, b))

    def test_clamped_to_unit(self):
        fp = Fingerprint({k: 1 / 3 for k in range(3)})
        assert cosine_similarity(fp, fp) <= 1.0

    def test_similar_images_score_higher(self):
        w, h = 32, 32
        base = blocky_pixels(w, h, block=8, seed=1)
        tweaked = base.copy()
        tweaked[:16] = solid_pixels(16, 1, (0, 0, 0, 255))
        unrelated = blocky_pixels(w, h, block=8, seed=99)
        fp_base = build_fingerprint(base, w, h)
        near = cosine_similarity(fp_base, build_fingerprint(tweaked, w, h))
        far = cosine_similarity(fp_base, build_fingerprint(unrelated, w, h))
        assert near > far

    def test_same_colours_different_regions(self):
        # Red left / blue right vs blue left / red right share no keys
        rgba = np.zeros((2, 2, 4), dtype=np.uint8)
        rgba[:, 0] = [255, 0, 0, 255]
        rgba[:, 1] = [0, 0, 255, 255]
        a = build_fingerprint(pack_rgba(rgba), 2, 2)
        b = build_fingerprint(pack_rgba(rgba[:, ::-1]), 2, 2)
        assert cosine_similarity(a, b) == 0.0


class TestGallery:

    @pytest.fixture
    def gallery(self):
        g = FingerprintGallery()
        g.add("a", _fp(seed=1))
        g.add("b", _fp(seed=2))
        g.add("c", _fp(seed=3))
        return g

    def test_query_finds_self(self, gallery):
        results = gallery.query(_fp(seed=2), top_k=3)
        assert results[0][0] == "b"
        assert results[0][1] == pytest.approx(1.0)
        assert len(results) == 3
        scores = [s for _, s in results]
        assert scores == sorted(scores, reverse=True)

    def test_top_k_default(self, gallery):
        assert len(gallery.query(_fp(seed=1))) == 1

    def test_top_k_larger_than_gallery(self, gallery):
        assert len(gallery.query(_fp(seed=1), top_k=10)) == 3

    def test_matches_threshold(self, gallery):
        hits = gallery.matches(_fp(seed=3), threshold=0.999)
        assert [label for label, _ in hits] == ["c"]
        assert FingerprintGallery().matches(_fp(), 0.5) == []

    def test_duplicate_label(self, gallery):
        with pytest.raises(ValueError, match="Duplicate"):
            gallery.add("a", _fp())

    def test_add_batch(self):
        g = FingerprintGallery()
        g.add_batch(["x", "y"], [_fp(seed=5), _fp(seed=6)])
        assert g.labels == ["x", "y"]
        with pytest.raises(ValueError, match="length"):
            g.add_batch(["z"], [])
        with pytest.raises(ValueError, match="Duplicate"):
            g.add_batch(["z", "x"], [_fp(), _fp()])
        assert "z" not in g

    def test_remove_and_clear(self, gallery):
        gallery.remove("b")
        assert "b" not in gallery
        assert gallery.size == 2
        with pytest.raises(KeyError):
            gallery.remove("b")
        gallery.clear()
        assert len(gallery) == 0

    def test_get(self, gallery):
        assert gallery.get("a") == _fp(seed=1)

    def test_empty_query_raises(self):
        with pytest.raises(ValueError, match="empty"):
            FingerprintGallery().query(_fp())

    def test_bad_top_k(self, gallery):
        with pytest.raises(ValueError, match="top_k"):
            gallery.query(_fp(), top_k=0)
