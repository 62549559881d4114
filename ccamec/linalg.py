"""Linear algebra kernels used by the correlation engines.

The functions here are stateless and operate on ``float64`` arrays.  They wrap
NumPy and SciPy so that the engines never talk to a particular backend
directly:

* :func:`column_means` and :func:`center_inplace` de-mean a signal matrix so
  that correlations are computed on zero-mean channels;
* :func:`economy_qr` returns an orthonormal basis of the column space using a
  column-pivoted (rank revealing) Householder QR;
* :func:`singular_values`, :func:`symmetric_eigh` and :func:`invert` cover the
  remaining decompositions needed by CCA and MEC.

Example
-------

```python
import numpy as np
from ccamec.linalg import center_inplace, economy_qr, singular_values

X = np.random.randn(250, 8)
Y = np.random.randn(250, 4)
center_inplace(X)
center_inplace(Y)
r = singular_values(economy_qr(X).T @ economy_qr(Y)).max()
```
"""

from __future__ import annotations

import numpy as np
from numpy.linalg import norm
from scipy import linalg

from .errors import SingularMatrixError

EPS = np.finfo(np.float64).eps


def as_matrix(data) -> np.ndarray:
    """Return a two dimensional, C-contiguous ``float64`` copy of ``data``.

    One dimensional input is treated as a single column.
    """
    mat = np.array(data, dtype=np.float64, order='C')
    if mat.ndim == 1:
        mat = mat.reshape(-1, 1)
    if mat.ndim != 2:
        raise ValueError(f"expected a 2-D matrix, got an array with {mat.ndim} dimensions")
    return mat


def column_means(M: np.ndarray) -> np.ndarray:
    """Per-column arithmetic mean of ``M``.

    Parameters
    ----------
    M : ndarray of shape (m, n)

    Returns
    -------
    means : ndarray of shape (n,)
    """
    if M.shape[0] == 0:
        return np.zeros(M.shape[1], dtype=np.float64)
    return M.mean(axis=0)


def center_inplace(M: np.ndarray) -> np.ndarray:
    """Subtract the column mean vector from every row of ``M``, in place.

    ``M`` is also returned to allow chaining.
    """
    M -= column_means(M)
    return M


def economy_qr(M: np.ndarray, rtol: float | None = None) -> np.ndarray:
    """Orthonormal basis of the column space of ``M``.

    A column-pivoted Householder QR ``M P = Q R`` orders the diagonal of ``R``
    by decreasing magnitude, which exposes the numerical rank.  For a full
    rank matrix the result has ``min(m, n)`` orthonormal columns: the economy
    factor when ``m > n`` and the full ``m × m`` factor otherwise.

    Parameters
    ----------
    M : ndarray of shape (m, n)
        Matrix to factorise.  It is not modified.
    rtol : float, optional
        Relative tolerance on ``|R[i, i]| / |R[0, 0]|`` below which a column
        is treated as numerically dependent.  Defaults to ``max(m, n) * eps``.

    Returns
    -------
    Q : ndarray of shape (m, k)
        Orthonormal columns, ``k`` being the numerical rank of ``M``.  ``k``
        is zero when ``M`` has no non-zero entries.

    Notes
    -----
    Columns of ``Q`` beyond the rank of ``M`` are arbitrary orthonormal
    completions; they are dropped because they would otherwise report
    spurious unit correlations.
    """
    m, n = M.shape
    if m == 0 or n == 0:
        return np.zeros((m, 0), dtype=np.float64)
    Q, R, _ = linalg.qr(M, mode='economic', pivoting=True)
    diag = np.abs(np.diag(R))
    if diag[0] == 0.0:
        return np.zeros((m, 0), dtype=np.float64)
    if rtol is None:
        rtol = max(m, n) * EPS
    rank = int(np.count_nonzero(diag > rtol * diag[0]))
    return np.ascontiguousarray(Q[:, :rank])


def singular_values(A: np.ndarray) -> np.ndarray:
    """Singular values of ``A`` in descending order."""
    if A.size == 0:
        return np.zeros(0, dtype=np.float64)
    return linalg.svd(A, compute_uv=False)


def symmetric_eigh(S: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Eigendecomposition of a symmetric matrix.

    Parameters
    ----------
    S : ndarray of shape (n, n)
        Symmetric matrix.  Only the lower triangle is referenced.

    Returns
    -------
    w : ndarray of shape (n,)
        Eigenvalues in ascending order.
    V : ndarray of shape (n, n)
        Orthonormal eigenvectors; column ``V[:, i]`` pairs with ``w[i]``.
    """
    w, V = linalg.eigh(S)
    # eigh already sorts, but a stable sort keeps the ordering explicit
    order = np.argsort(w, kind='stable')
    return w[order], V[:, order]


def invert(A: np.ndarray) -> np.ndarray:
    """Inverse of a square matrix.

    Raises
    ------
    SingularMatrixError
        If ``A`` is not square, or is singular or ill-conditioned to working
        precision (reciprocal condition number below machine epsilon).
    """
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise SingularMatrixError(f"cannot invert a non-square matrix of shape {A.shape}")
    if A.shape[0] == 0:
        raise SingularMatrixError("cannot invert an empty matrix")
    if not np.all(np.isfinite(A)):
        raise SingularMatrixError("matrix contains non-finite entries")
    s = singular_values(A)
    if s[0] == 0.0 or s[-1] < EPS * s[0]:
        raise SingularMatrixError("matrix is singular to working precision")
    try:
        return linalg.inv(A)
    except linalg.LinAlgError as exc:
        raise SingularMatrixError(str(exc)) from exc


def orthogonality_error(Q: np.ndarray) -> float:
    """Compute the orthogonality error ``||I - Q^T Q||_F``.

    Parameters
    ----------
    Q : ndarray of shape (m, k)
        Matrix with (supposedly) orthonormal columns.

    Returns
    -------
    gamma : float
        Frobenius norm of the deviation of ``Q`` from orthonormality.
    """
    k = Q.shape[1]
    return float(norm(np.eye(k) - Q.T @ Q, 'fro'))
