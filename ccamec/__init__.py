"""Canonical correlation and minimum energy combination scoring (ccamec).

This package scores multichannel signal windows against reference signals for
real-time classification of steady-state visually evoked potentials (SSVEP).
The main components include:

* :mod:`repository` – a thread-safe, handle-based store of matrices together
  with a cache of their centred QR factors;
* :mod:`linalg` – linear algebra kernels (centring, pivoted QR, SVD,
  symmetric eigendecomposition, inversion);
* :mod:`cca` – canonical correlation via QR + SVD with cached factors;
* :mod:`mec` – the minimum energy combination score;
* :mod:`engine` – a facade bundling the repository and both engines;
* :mod:`references` and :mod:`classifier` – sine/cosine references and
  frequency identification built on the engines;
* :mod:`filters` – ideal band-pass filter bank and sub-band mixing;
* :mod:`config`, :mod:`utils`, :mod:`plotting` and :mod:`cli` – YAML
  configuration, helpers, score figures and the command line driver.

The top-level API exports the :class:`SimilarityEngine` facade and the error
types for convenience.

"""

from .engine import SimilarityEngine  # noqa: F401
from .errors import (CapacityError, CcaMecError, DegenerateInputError,  # noqa: F401
                     DimensionMismatchError, ErrorKind, NotFoundError,
                     SingularMatrixError)
from .repository import MatrixDescriptor, MatrixRepository  # noqa: F401

__all__ = [
    "SimilarityEngine",
    "MatrixDescriptor",
    "MatrixRepository",
    "ErrorKind",
    "CcaMecError",
    "NotFoundError",
    "DimensionMismatchError",
    "SingularMatrixError",
    "DegenerateInputError",
    "CapacityError",
]
