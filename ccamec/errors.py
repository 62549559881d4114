"""Error kinds raised by the repository and the scoring engines.

Every failure carries an :class:`ErrorKind` through its ``kind`` attribute so
that callers sitting behind a foreign call boundary can map an exception to a
status code without matching on class names.  The concrete classes also derive
from the closest built-in exception (``KeyError``, ``ValueError``,
``numpy.linalg.LinAlgError``) so ordinary ``except`` clauses keep working.
"""

from __future__ import annotations

from enum import Enum

import numpy as np


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    DIMENSION_MISMATCH = "dimension_mismatch"
    SINGULAR_MATRIX = "singular_matrix"
    DEGENERATE_INPUT = "degenerate_input"
    CAPACITY = "capacity"


class CcaMecError(Exception):
    """Base class of all ccamec failures."""

    kind: ErrorKind

    def __str__(self) -> str:
        # KeyError quotes its message; keep every kind readable
        return str(self.args[0]) if self.args else self.kind.value


class NotFoundError(CcaMecError, KeyError):
    """A handle is not present in the repository."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, handle: int) -> None:
        super().__init__(f"matrix handle {handle} not found")
        self.handle = handle


class DimensionMismatchError(CcaMecError, ValueError):
    """The operands of a call do not have compatible shapes."""

    kind = ErrorKind.DIMENSION_MISMATCH


class SingularMatrixError(CcaMecError, np.linalg.LinAlgError):
    """A matrix that must be inverted is singular to working precision."""

    kind = ErrorKind.SINGULAR_MATRIX


class DegenerateInputError(CcaMecError, ValueError):
    """An intermediate matrix is not positive definite or has no variance."""

    kind = ErrorKind.DEGENERATE_INPUT


class CapacityError(CcaMecError, RuntimeError):
    """Every handle id is in use."""

    kind = ErrorKind.CAPACITY
