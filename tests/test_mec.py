"""Tests for the minimum energy combination score."""
import numpy as np
import pytest

from ccamec.errors import (CcaMecError, DegenerateInputError, DimensionMismatchError,
                           ErrorKind)
from ccamec.mec import (MECEngine, minimum_energy_combination_power,
                        residual_after_projection, whitening_matrix)
from ccamec.references import harmonic_reference


def reference_mec(Y, X):
    """Straightforward loop form of the MEC score."""
    Y1 = Y - X @ np.linalg.inv(X.T @ X) @ X.T @ Y
    w, V = np.linalg.eigh(Y1.T @ Y1)
    pairs = sorted(zip(w, V.T), key=lambda p: p[0])
    W = np.column_stack([v / np.sqrt(lam) for lam, v in pairs])
    S = Y @ W
    p = 0.0
    for l in range(S.shape[1]):
        for k in range(X.shape[1]):
            p += abs(X[:, k] @ S[:, l]) ** 2
    return p / (S.shape[1] * X.shape[1])


@pytest.fixture
def mec(repository):
    return MECEngine(repository)


class TestScore:

    def test_matches_loop_form(self, rng):
        Y = rng.standard_normal((120, 3))
        X = harmonic_reference(10.0, 250.0, 120, 2)
        assert minimum_energy_combination_power(Y, X) == pytest.approx(reference_mec(Y, X), rel=1e-9)

    def test_non_negative(self, rng):
        for _ in range(5):
            Y = rng.standard_normal((60, 3))
            X = rng.standard_normal((60, 2))
            assert minimum_energy_combination_power(Y, X) >= 0.0

    def test_matching_frequency_scores_higher(self, ssvep_window):
        Y = ssvep_window(12.0, n_samples=1000, amplitude=1.0, noise=1.0)
        match = harmonic_reference(12.0, 250.0, 1000, 2)
        other = harmonic_reference(9.0, 250.0, 1000, 2)
        assert minimum_energy_combination_power(Y, match) > 5 * minimum_energy_combination_power(Y, other)

    def test_handles_and_inline_agree(self, mec, repository, rng):
        Y = rng.standard_normal((80, 4))
        X = harmonic_reference(8.0, 200.0, 80, 3)
        inline = mec.minimum_energy_combination(Y, X)
        stored = mec.minimum_energy_combination(repository.allocate(Y), repository.allocate(X))
        assert stored == pytest.approx(inline)


class TestFailures:

    def test_row_mismatch(self, mec, rng):
        with pytest.raises(DimensionMismatchError):
            mec.minimum_energy_combination(rng.standard_normal((10, 2)), rng.standard_normal((11, 2)))

    def test_dependent_reference_columns(self, rng):
        X = rng.standard_normal((40, 2))
        X = np.column_stack([X, X[:, 0]])
        with pytest.raises(DegenerateInputError):
            residual_after_projection(rng.standard_normal((40, 3)), X)

    def test_duplicate_signal_channels(self, rng):
        Y = rng.standard_normal((200, 2))
        Y = np.column_stack([Y, Y[:, 0]])
        X = harmonic_reference(10.0, 250.0, 200, 1)
        with pytest.raises(DegenerateInputError):
            minimum_energy_combination_power(Y, X)

    def test_zero_signal(self):
        with pytest.raises(DegenerateInputError):
            whitening_matrix(np.zeros((20, 3)))

    def test_whitening_orders_ascending(self, rng):
        Y1 = rng.standard_normal((50, 3)) * np.array([1.0, 5.0, 0.2])
        W = whitening_matrix(Y1)
        # columns whiten Y1: W^T Y1^T Y1 W = I
        np.testing.assert_allclose(W.T @ Y1.T @ Y1 @ W, np.eye(3), atol=1e-10)
        norms = np.linalg.norm(W, axis=0)
        assert norms[0] > norms[-1]

    def test_overflowing_energy_is_degenerate(self, rng):
        Y = rng.standard_normal((50, 2)) * 1e160
        X = harmonic_reference(10.0, 250.0, 50, 1)
        with pytest.raises(DegenerateInputError) as info:
            minimum_energy_combination_power(Y, X)
        assert isinstance(info.value, CcaMecError)
        assert info.value.kind is ErrorKind.DEGENERATE_INPUT


class TestEigenvalueFloor:

    def scaled_signal(self, rng):
        return rng.standard_normal((500, 3)) * np.array([1.0, 1.0, 1e-7])

    def test_default_floor_rejects_tiny_channel(self, rng):
        X = harmonic_reference(10.0, 250.0, 500, 2)
        with pytest.raises(DegenerateInputError, match="not positive definite"):
            minimum_energy_combination_power(self.scaled_signal(rng), X)

    def test_zero_rtol_accepts_positive_definite(self, rng, mec):
        Y = self.scaled_signal(rng)
        X = harmonic_reference(10.0, 250.0, 500, 2)
        p = minimum_energy_combination_power(Y, X, rtol=0.0)
        assert np.isfinite(p)
        assert p >= 0.0
        assert mec.minimum_energy_combination(Y, X, rtol=0.0) == pytest.approx(p)
