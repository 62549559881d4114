"""Handle-based matrix repository and the QR decomposition cache.

A :class:`MatrixRepository` owns private copies of the matrices handed to it
and gives back opaque positive integer handles.  Alongside it lives a
:class:`DecompositionCache` holding the centred economy-QR factor of stored
matrices, so that reference signals reused across many correlation calls are
only factorised once.

Both structures are guarded by a single :class:`threading.Lock`.  Matrices
are copied in and out under the lock and all numeric work happens on those
copies after the lock has been released.

Handles are issued in increasing order and restart from ``1`` after
:meth:`MatrixRepository.clear`, so a handle is only meaningful within one
epoch between clears.  To keep the cache from ever serving a factor computed
for a previous owner of a recycled handle, each stored matrix also carries a
serial number that is never reset; cache writes are tagged with the serial of
the matrix they were computed from and are dropped when it no longer matches.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass

import numpy as np

from .errors import (CapacityError, DegenerateInputError,
                     DimensionMismatchError, NotFoundError)
from .linalg import as_matrix

logger = logging.getLogger(__name__)

#: Largest handle value; the counter wraps back to the start past it.
MAX_HANDLE = 2 ** 64 - 1

#: Handle value selecting the inline buffer of a descriptor.
INLINE = 0


@dataclass(frozen=True, eq=False)
class MatrixDescriptor:
    """Either a reference to a stored matrix or borrowed inline data.

    Parameters
    ----------
    handle : int
        Repository handle, or ``0`` to select ``data``.
    data : ndarray, optional
        Row-major buffer holding ``rows * cols`` values.  The buffer is
        borrowed for the duration of a call and never modified.
    rows, cols : int
        Shape of the inline matrix.
    """

    handle: int = INLINE
    data: np.ndarray | None = None
    rows: int = 0
    cols: int = 0

    @classmethod
    def stored(cls, handle: int) -> MatrixDescriptor:
        if isinstance(handle, bool) or not isinstance(handle, (int, np.integer)):
            raise TypeError(f"handle must be an integer, got {type(handle).__name__}")
        if handle <= INLINE or handle > MAX_HANDLE:
            raise NotFoundError(int(handle))
        return cls(handle=int(handle))

    @classmethod
    def inline(cls, buffer, rows: int | None = None, cols: int | None = None) -> MatrixDescriptor:
        """Describe caller-owned data.

        A 2-D array supplies its own shape.  A flat buffer is read row-major
        using ``rows`` and ``cols``; without them it is taken as one column.
        """
        arr = np.asarray(buffer, dtype=np.float64)
        if rows is None and cols is None:
            if arr.ndim == 1:
                rows, cols = arr.shape[0], 1
            elif arr.ndim == 2:
                rows, cols = arr.shape
            else:
                raise DimensionMismatchError(
                    f"inline data must be 1-D or 2-D, got {arr.ndim} dimensions")
        elif rows is None or cols is None:
            raise DimensionMismatchError("both rows and cols are required for a flat buffer")
        rows, cols = int(rows), int(cols)
        if rows < 0 or cols < 0 or arr.size != rows * cols:
            raise DimensionMismatchError(
                f"buffer of {arr.size} values does not match a {rows}x{cols} matrix")
        return cls(handle=INLINE, data=arr, rows=rows, cols=cols)

    @property
    def is_inline(self) -> bool:
        return self.handle == INLINE

    def to_matrix(self) -> np.ndarray:
        """Owned ``(rows, cols)`` copy of the inline data."""
        if self.data is None:
            raise DimensionMismatchError("inline descriptor carries no data")
        return as_matrix(np.reshape(self.data, (self.rows, self.cols), order='C'))


def as_descriptor(obj) -> MatrixDescriptor:
    """Coerce a descriptor, a positive handle or array-like data to a descriptor."""
    if isinstance(obj, MatrixDescriptor):
        return obj
    if isinstance(obj, (int, np.integer)) and not isinstance(obj, bool):
        return MatrixDescriptor.stored(obj)
    return MatrixDescriptor.inline(obj)


def _check_finite(mat: np.ndarray) -> np.ndarray:
    if not np.all(np.isfinite(mat)):
        raise DegenerateInputError("matrix contains NaN or infinite values")
    return mat


@dataclass
class _Entry:
    data: np.ndarray
    serial: int


class DecompositionCache:
    """Centred economy-QR factors keyed by repository handle.

    The cache shares the lock of its repository and is only reachable through
    :attr:`MatrixRepository.cache`.  Entries never outlive the stored matrix
    they were computed from.
    """

    def __init__(self, repository: MatrixRepository) -> None:
        self._repository = repository
        self._lock = repository._lock
        self._factors: dict[int, tuple[np.ndarray, int]] = {}

    def get(self, handle: int) -> np.ndarray | None:
        """Return a copy of the cached factor for ``handle``, or ``None``."""
        with self._lock:
            entry = self._repository._entries.get(handle)
            cached = self._factors.get(handle)
            if entry is None or cached is None or cached[1] != entry.serial:
                return None
            return cached[0].copy()

    def put(self, handle: int, q: np.ndarray, serial: int | None = None) -> bool:
        """Store ``q`` as the factor of ``handle``.

        ``serial`` identifies the stored matrix ``q`` was computed from (see
        :meth:`MatrixRepository.fetch_tagged`); when given and stale, the
        write is dropped.  Concurrent writers for the same handle simply
        overwrite each other.

        Returns
        -------
        stored : bool
            ``False`` if the handle is absent or ``serial`` is stale.
        """
        q = np.array(q, dtype=np.float64, order='C')
        with self._lock:
            entry = self._repository._entries.get(handle)
            if entry is None or (serial is not None and serial != entry.serial):
                logger.debug("dropping stale QR factor for handle %d", handle)
                return False
            self._factors[handle] = (q, entry.serial)
            return True

    def discard(self, handle: int) -> None:
        with self._lock:
            self._factors.pop(handle, None)

    def clear(self) -> None:
        with self._lock:
            self._factors.clear()

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            entry = self._repository._entries.get(handle)
            cached = self._factors.get(handle)
            return entry is not None and cached is not None and cached[1] == entry.serial

    def __len__(self) -> int:
        with self._lock:
            return len(self._factors)


class MatrixRepository:
    """Thread-safe store of owned matrices addressed by handle.

    Parameters
    ----------
    max_handle : int, optional
        Largest id to issue before wrapping around.  Defaults to
        ``2**64 - 1``; smaller values are only useful for exercising the
        wraparound path.
    """

    def __init__(self, max_handle: int = MAX_HANDLE) -> None:
        if max_handle < 1:
            raise ValueError("max_handle must be positive")
        self.max_handle = int(max_handle)
        self._lock = threading.Lock()
        self._entries: dict[int, _Entry] = {}
        self._index = 0
        self._serials = itertools.count(1)
        self.cache = DecompositionCache(self)

    def allocate(self, data, rows: int | None = None, cols: int | None = None) -> int:
        """Store a private copy of a matrix and return its handle.

        Parameters
        ----------
        data : array_like or MatrixDescriptor
            A 2-D array, a flat row-major buffer with ``rows`` and ``cols``,
            or an inline descriptor.
        rows, cols : int, optional
            Shape of a flat buffer.

        Returns
        -------
        handle : int
            Next id strictly greater than those already issued in this epoch,
            skipping ``0`` and ids still live after a wraparound.
        """
        if isinstance(data, MatrixDescriptor):
            if not data.is_inline:
                raise TypeError("allocate expects inline data, not a stored handle")
            descriptor = data
        else:
            descriptor = MatrixDescriptor.inline(data, rows, cols)
        matrix = _check_finite(descriptor.to_matrix())
        with self._lock:
            if len(self._entries) >= self.max_handle:
                raise CapacityError("every matrix handle is in use")
            while True:
                self._index += 1
                if self._index > self.max_handle:
                    self._index = 0
                    continue
                if self._index in self._entries:
                    continue
                handle = self._index
                self._entries[handle] = _Entry(matrix, next(self._serials))
                break
        logger.debug("allocated %dx%d matrix as handle %d", matrix.shape[0], matrix.shape[1], handle)
        return handle

    def fetch(self, handle: int) -> np.ndarray:
        """Return a copy of the stored matrix.

        Raises
        ------
        NotFoundError
            If ``handle`` is not live.
        """
        return self.fetch_tagged(handle)[0]

    def fetch_tagged(self, handle: int) -> tuple[np.ndarray, int]:
        """Like :meth:`fetch`, also returning the serial of the stored matrix."""
        with self._lock:
            entry = self._entries.get(handle)
            if entry is None:
                raise NotFoundError(handle)
            return entry.data.copy(), entry.serial

    def shape(self, handle: int) -> tuple[int, int]:
        with self._lock:
            entry = self._entries.get(handle)
            if entry is None:
                raise NotFoundError(handle)
            return entry.data.shape

    def delete(self, handle: int) -> None:
        """Remove a matrix and its cached factor.  Absent handles are ignored."""
        with self._lock:
            removed = self._entries.pop(handle, None)
            self.cache._factors.pop(handle, None)
        if removed is not None:
            logger.debug("deleted handle %d", handle)

    def clear(self) -> None:
        """Remove every matrix and cached factor and restart handle numbering."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self.cache._factors.clear()
            self._index = 0
        logger.debug("cleared %d matrices", count)

    def handles(self) -> list[int]:
        """Live handles in ascending (within an epoch, creation) order."""
        with self._lock:
            return sorted(self._entries)

    def resolve(self, descriptor: MatrixDescriptor) -> np.ndarray:
        """Owned copy of the matrix a descriptor refers to."""
        if descriptor.is_inline:
            return _check_finite(descriptor.to_matrix())
        return self.fetch(descriptor.handle)

    def resolve_shape(self, descriptor: MatrixDescriptor) -> tuple[int, int]:
        if descriptor.is_inline:
            return descriptor.rows, descriptor.cols
        return self.shape(descriptor.handle)

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
