"""Canonical correlation analysis via QR and SVD.

Given two zero-mean signal matrices ``X`` (``n × p``) and ``Y`` (``n × q``)
sharing the same rows (samples), the canonical correlations are the singular
values of ``Qx.T @ Qy`` where ``Qx`` and ``Qy`` are orthonormal bases of the
column spaces of ``X`` and ``Y``.  This avoids forming and inverting the
covariance matrices ``Cxx`` and ``Cyy``, which squares the condition number
and breaks down for rank deficient inputs.

The orthonormal basis is the expensive part and depends on one operand only,
so :class:`CCAEngine` memoises it per repository handle.
"""

from __future__ import annotations

import logging

import numpy as np

from .errors import DegenerateInputError, DimensionMismatchError
from .linalg import center_inplace, economy_qr, singular_values
from .repository import MatrixDescriptor, MatrixRepository, as_descriptor

logger = logging.getLogger(__name__)


def cca_qr(mat: np.ndarray) -> np.ndarray:
    """Centre ``mat`` in place and return an orthonormal basis of its columns."""
    return economy_qr(center_inplace(mat))


def cca_svd(qx: np.ndarray, qy: np.ndarray) -> np.ndarray:
    """Canonical correlations of two orthonormal bases.

    Parameters
    ----------
    qx : ndarray of shape (n, kx)
    qy : ndarray of shape (n, ky)

    Returns
    -------
    r : ndarray of shape (min(kx, ky),)
        Canonical correlations in descending order, clamped into ``[0, 1]``
        to absorb floating point overshoot.
    """
    if qx.shape[0] != qy.shape[0]:
        raise DimensionMismatchError(
            f"row counts differ: {qx.shape[0]} vs {qy.shape[0]}")
    return np.clip(singular_values(qx.T @ qy), 0.0, 1.0)


class CCAEngine:
    """Canonical correlation between repository-backed or inline matrices.

    Parameters
    ----------
    repository : MatrixRepository
        Store used to resolve handles; its decomposition cache receives the
        QR factors of stored operands.
    """

    def __init__(self, repository: MatrixRepository) -> None:
        self.repository = repository

    def qr_factor(self, descriptor: MatrixDescriptor) -> np.ndarray:
        """Centred orthonormal basis of the matrix ``descriptor`` refers to.

        Stored matrices are looked up in the cache first and the freshly
        computed factor is written back on a miss.  Inline data is never
        cached.
        """
        if descriptor.is_inline:
            return cca_qr(self.repository.resolve(descriptor))
        handle = descriptor.handle
        q = self.repository.cache.get(handle)
        if q is not None:
            logger.debug("QR cache hit for handle %d", handle)
            return q
        logger.debug("QR cache miss for handle %d", handle)
        mat, serial = self.repository.fetch_tagged(handle)
        q = cca_qr(mat)
        # two threads may race here; both write the same factor
        self.repository.cache.put(handle, q, serial)
        return q

    def precompute_qr(self, handle: int) -> None:
        """Compute and cache the QR factor of a stored matrix, replacing any entry."""
        mat, serial = self.repository.fetch_tagged(handle)
        self.repository.cache.put(handle, cca_qr(mat), serial)
        logger.debug("precomputed QR factor for handle %d", handle)

    def canonical_correlations(self, x, y) -> np.ndarray:
        """All canonical correlations of ``x`` and ``y``, descending.

        Parameters
        ----------
        x, y : MatrixDescriptor, int or array_like
            Operands with equal row counts.

        Raises
        ------
        DimensionMismatchError
            If the row counts differ.
        DegenerateInputError
            If either operand has no variance once centred.
        NotFoundError
            If a handle is not stored.
        """
        x = as_descriptor(x)
        y = as_descriptor(y)
        rows_x = self.repository.resolve_shape(x)[0]
        rows_y = self.repository.resolve_shape(y)[0]
        if rows_x != rows_y:
            raise DimensionMismatchError(
                f"canonical correlation needs equal row counts, got {rows_x} and {rows_y}")
        qx = self.qr_factor(x)
        qy = self.qr_factor(y)
        if qx.shape[1] == 0 or qy.shape[1] == 0:
            raise DegenerateInputError("operand has no variance after centring")
        return cca_svd(qx, qy)

    def canonical_correlation(self, x, y) -> float:
        """Largest canonical correlation of ``x`` and ``y``, in ``[0, 1]``."""
        return float(self.canonical_correlations(x, y)[0])
