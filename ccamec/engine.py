"""Host-agnostic entry points.

:class:`SimilarityEngine` bundles a :class:`~ccamec.repository.MatrixRepository`
with the CCA and MEC engines and exposes the operations a caller on the other
side of a call boundary (in-process, RPC or a foreign function export) needs:
allocate and release matrices, precompute QR factors and ask for scores.

Example
-------

```python
import numpy as np
from ccamec import SimilarityEngine

with SimilarityEngine() as engine:
    ref = engine.allocate(np.random.randn(500, 6))
    engine.precompute_qr(ref)
    r = engine.canonical_correlation(np.random.randn(500, 8), ref)
```
"""

from __future__ import annotations

import numpy as np

from .cca import CCAEngine
from .mec import MECEngine
from .repository import MAX_HANDLE, MatrixRepository


class SimilarityEngine:
    """Repository plus scoring engines with an explicit lifecycle."""

    def __init__(self, max_handle: int = MAX_HANDLE) -> None:
        self.repository = MatrixRepository(max_handle=max_handle)
        self.cca = CCAEngine(self.repository)
        self.mec = MECEngine(self.repository)

    def allocate(self, buffer, rows: int | None = None, cols: int | None = None) -> int:
        """Copy a matrix into the repository and return its handle."""
        return self.repository.allocate(buffer, rows, cols)

    def fetch(self, handle: int) -> np.ndarray:
        return self.repository.fetch(handle)

    def delete(self, handle: int) -> None:
        self.repository.delete(handle)

    def clear_all(self) -> None:
        self.repository.clear()

    def precompute_qr(self, handle: int) -> None:
        self.cca.precompute_qr(handle)

    def canonical_correlation(self, x, y) -> float:
        """Largest canonical correlation, in ``[0, 1]``."""
        return self.cca.canonical_correlation(x, y)

    def minimum_energy_combination(self, x, y) -> float:
        """MEC score of signal ``x`` against reference ``y``, ``>= 0``."""
        return self.mec.minimum_energy_combination(x, y)

    def __enter__(self) -> SimilarityEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.clear_all()
