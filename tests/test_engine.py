"""Tests for the SimilarityEngine facade."""
import numpy as np
import pytest

from ccamec import (DimensionMismatchError, MatrixDescriptor, NotFoundError,
                    SimilarityEngine)


class TestSimilarityEngine:

    def test_allocate_fetch_delete(self, engine):
        handle = engine.allocate([1.0, 2.0, 3.0, 4.0], 2, 2)
        np.testing.assert_array_equal(engine.fetch(handle), [[1, 2], [3, 4]])
        engine.delete(handle)
        engine.delete(handle)
        with pytest.raises(NotFoundError):
            engine.fetch(handle)

    def test_clear_all_restarts_handles(self, engine):
        first = engine.allocate(np.eye(2))
        engine.allocate(np.eye(2))
        engine.clear_all()
        assert engine.allocate(np.eye(2)) == first

    def test_descriptor_forms(self, engine):
        data = np.array([1.0, 2.0, 3.0])
        handle = engine.allocate(data)
        expected = 1.0
        assert engine.canonical_correlation(handle, data) == pytest.approx(expected)
        assert engine.canonical_correlation(MatrixDescriptor.stored(handle),
                                            MatrixDescriptor.inline(data, 3, 1)) == pytest.approx(expected)

    def test_precompute_then_correlate(self, engine, rng):
        X = rng.standard_normal((40, 3))
        Y = rng.standard_normal((40, 2))
        before = engine.canonical_correlation(X, Y)
        hx = engine.allocate(X)
        engine.precompute_qr(hx)
        assert engine.canonical_correlation(hx, Y) == pytest.approx(before)

    def test_mec_non_negative(self, engine, rng):
        hy = engine.allocate(rng.standard_normal((64, 3)))
        hx = engine.allocate(rng.standard_normal((64, 2)))
        assert engine.minimum_energy_combination(hy, hx) >= 0.0

    def test_mismatch_is_reported(self, engine):
        with pytest.raises(DimensionMismatchError):
            engine.canonical_correlation(np.arange(3.0), np.arange(4.0))
        with pytest.raises(DimensionMismatchError):
            engine.minimum_energy_combination(np.ones((3, 1)), np.ones((4, 1)))

    def test_context_manager_clears(self):
        with SimilarityEngine() as eng:
            eng.allocate(np.eye(3))
            repo = eng.repository
        assert len(repo) == 0
