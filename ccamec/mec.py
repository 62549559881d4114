"""Minimum energy combination (MEC) score.

The signal ``Y`` (samples × channels) is first stripped of everything the
reference ``X`` (samples × harmonics) explains,

    Y1 = Y - X (X^T X)^{-1} X^T Y,

leaving the nuisance part of each channel.  The eigenvectors of ``Y1^T Y1``
scaled by ``1/sqrt(λ)`` combine the channels into signals of unit nuisance
energy, lowest energy first.  The score is the mean squared projection of
those combined signals onto the reference columns: a strong evoked response
at the reference frequency survives the combination while noise does not.
"""

from __future__ import annotations

import logging

import numpy as np

from .errors import (DegenerateInputError, DimensionMismatchError,
                     SingularMatrixError)
from .linalg import EPS, invert, symmetric_eigh
from .repository import MatrixRepository, as_descriptor

logger = logging.getLogger(__name__)


def residual_after_projection(Y: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Remove the component of ``Y`` lying in the column space of ``X``.

    Raises
    ------
    DegenerateInputError
        If the columns of ``X`` are linearly dependent.
    """
    try:
        gram_inv = invert(X.T @ X)
    except SingularMatrixError as exc:
        raise DegenerateInputError(
            "reference columns are linearly dependent; X^T X is not invertible") from exc
    return Y - X @ (gram_inv @ (X.T @ Y))


def whitening_matrix(Y1: np.ndarray, rtol: float | None = None) -> np.ndarray:
    """Eigenvectors of ``Y1^T Y1`` divided by the square root of their eigenvalue.

    Columns are ordered by ascending eigenvalue.

    Parameters
    ----------
    Y1 : ndarray of shape (n, c)
        Residual signal.
    rtol : float, optional
        Relative eigenvalue floor.  The smallest eigenvalue must exceed
        ``rtol * λ_max``; the default ``max(n, c) * eps`` treats eigenvalues
        at rounding level as zero.  A channel whose residual is about
        ``1e-7`` of the others already falls below it.  Pass ``0`` to only
        require strictly positive eigenvalues.

    Raises
    ------
    DegenerateInputError
        If an eigenvalue is not above the floor, or the energy matrix
        overflows.
    """
    if Y1.shape[1] == 0:
        raise DegenerateInputError("signal has no channels")
    with np.errstate(over="ignore", invalid="ignore"):
        energy = Y1.T @ Y1
    if not np.all(np.isfinite(energy)):
        raise DegenerateInputError("residual energy matrix overflows; rescale the signal")
    w, V = symmetric_eigh(energy)
    if rtol is None:
        rtol = max(Y1.shape) * EPS
    floor = rtol * max(float(w[-1]), 0.0)
    if w[-1] <= 0.0 or w[0] <= floor:
        raise DegenerateInputError(
            f"residual energy matrix is not positive definite (smallest eigenvalue {w[0]:.3g})")
    return V / np.sqrt(w)


def minimum_energy_combination_power(Y: np.ndarray, X: np.ndarray,
                                     rtol: float | None = None) -> float:
    """MEC score of signal ``Y`` against reference ``X``.

    Parameters
    ----------
    Y : ndarray of shape (n, c)
        Signal, one column per channel.
    X : ndarray of shape (n, h)
        Reference, e.g. sine/cosine harmonics of a stimulation frequency.
    rtol : float, optional
        Eigenvalue floor passed to :func:`whitening_matrix`.

    Returns
    -------
    p : float
        ``sum_{l,k} (X[:, k] . S[:, l])^2 / (c * h)`` with ``S = Y W``.
        Always non-negative.
    """
    if Y.shape[0] != X.shape[0]:
        raise DimensionMismatchError(
            f"signal and reference row counts differ: {Y.shape[0]} vs {X.shape[0]}")
    if X.shape[1] == 0:
        raise DegenerateInputError("reference has no columns")
    W = whitening_matrix(residual_after_projection(Y, X), rtol)
    S = Y @ W
    p = np.sum((X.T @ S) ** 2) / (S.shape[1] * X.shape[1])
    return float(p)


class MECEngine:
    """Minimum energy combination between repository-backed or inline matrices."""

    def __init__(self, repository: MatrixRepository) -> None:
        self.repository = repository

    def minimum_energy_combination(self, signal, reference, rtol: float | None = None) -> float:
        """Score ``signal`` against ``reference``.

        Both operands may be a :class:`~ccamec.repository.MatrixDescriptor`,
        a stored handle or inline array data.  ``rtol`` is the eigenvalue
        floor of :func:`whitening_matrix`.
        """
        signal = as_descriptor(signal)
        reference = as_descriptor(reference)
        rows_y = self.repository.resolve_shape(signal)[0]
        rows_x = self.repository.resolve_shape(reference)[0]
        if rows_y != rows_x:
            raise DimensionMismatchError(
                f"minimum energy combination needs equal row counts, got {rows_y} and {rows_x}")
        Y = self.repository.resolve(signal)
        X = self.repository.resolve(reference)
        return minimum_energy_combination_power(Y, X, rtol)
