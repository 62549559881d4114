"""SSVEP frequency identification on top of the scoring engines.

One harmonic reference matrix per stimulation frequency is allocated in the
repository once and its QR factor precomputed.  Each incoming window of
samples is then scored against every reference and the best scoring
frequency above a threshold wins.

With a filter bank configured, the CCA score of a frequency is the
weighted mix of its correlations with every band-passed copy of the window
(see :mod:`ccamec.filters`).  The ``hybrid`` method adds the z-scored,
sum-normalised CCA and MEC score vectors.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from .config import ClassifierConfig
from .engine import SimilarityEngine
from .errors import DegenerateInputError, DimensionMismatchError
from .filters import ideal_bandpass_filter
from .linalg import as_matrix
from .references import harmonic_reference
from .utils import timer

logger = logging.getLogger(__name__)


def sum_normalize(values) -> np.ndarray:
    """Divide ``values`` by their sum; all zeros when the sum is zero."""
    values = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)
    total = values.sum()
    if total == 0.0 or not np.isfinite(total):
        return np.zeros_like(values)
    return values / total


def zscore(values) -> np.ndarray:
    """Standardise ``values`` with the sample standard deviation.

    Fewer than two values, or values without spread, give all zeros.
    """
    values = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)
    if values.size < 2:
        return np.zeros_like(values)
    std = values.std(ddof=1)
    if std == 0.0 or not np.isfinite(std):
        return np.zeros_like(values)
    return (values - values.mean()) / std


@dataclass
class HarmonicGroup:
    frequency: float
    handle: int


@dataclass
class Identification:
    """Outcome of :meth:`SsvepClassifier.identify`.

    ``index`` is ``-1`` (and ``frequency`` ``None``) when no score reached
    the threshold.
    """

    index: int
    frequency: float | None
    score: float
    scores: np.ndarray


class MaxScorePredictor:
    """Pick the index of the largest score at or above ``threshold``."""

    def __init__(self, threshold: float = 0.0) -> None:
        self.threshold = float(threshold)

    def predict(self, scores) -> int:
        best_score = -np.inf
        best_index = -1
        for i, score in enumerate(scores):
            if score >= self.threshold and score > best_score:
                best_score = score
                best_index = i
        return best_index


class SsvepClassifier:
    """Identify the stimulation frequency of a multichannel signal window.

    Parameters
    ----------
    config : ClassifierConfig
        Frequencies, sampling rate, window size, scoring method, filter bank
        and normalisation.
    engine : SimilarityEngine, optional
        Engine holding the reference matrices.  A private one is created when
        omitted.

    Notes
    -----
    Windows are ``(window_size, n_channels)`` arrays, one row per sample.
    Call :meth:`close` (or use the classifier as a context manager) to
    release the reference matrices.
    """

    def __init__(self, config: ClassifierConfig, engine: SimilarityEngine | None = None) -> None:
        self.config = config
        self.engine = engine if engine is not None else SimilarityEngine()
        self.predictor = MaxScorePredictor(config.cca_threshold)
        self.groups: list[HarmonicGroup] = []
        with timer("reference QR precompute", logging.DEBUG):
            for frequency in config.frequencies:
                ref = harmonic_reference(frequency, config.sampling_rate,
                                         config.window_size, config.harmonics_count)
                handle = self.engine.allocate(ref)
                self.groups.append(HarmonicGroup(frequency, handle))
                if config.method in ("cca", "hybrid"):
                    self.engine.precompute_qr(handle)
        logger.info("SSVEP classifier ready: %d frequencies, %d samples per window, method=%s, %d sub-bands",
                    len(self.groups), config.window_size, config.method,
                    len(config.filter_bank or ()))

    def _score_one(self, signal, group: HarmonicGroup, method: str) -> float:
        try:
            if method == "cca":
                return self.engine.canonical_correlation(signal, group.handle)
            return self.engine.minimum_energy_combination(signal, group.handle)
        except DegenerateInputError as exc:
            logger.warning("%.2f Hz %s scored as 0: %s", group.frequency, method, exc)
            return 0.0

    def _score_groups(self, window: np.ndarray, method: str) -> np.ndarray:
        signal = window
        allocated = None
        if method == "cca":
            # factor the window once instead of once per reference
            allocated = self.engine.allocate(window)
            self.engine.precompute_qr(allocated)
            signal = allocated
        try:
            if self.config.parallel > 1:
                with ThreadPoolExecutor(max_workers=self.config.parallel) as pool:
                    values = list(pool.map(lambda g: self._score_one(signal, g, method), self.groups))
            else:
                values = [self._score_one(signal, g, method) for g in self.groups]
        finally:
            if allocated is not None:
                self.engine.delete(allocated)
        return np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)

    def band_scores(self, window) -> np.ndarray:
        """CCA scores of every filter-bank sub-band.

        Returns
        -------
        scores : ndarray of shape (n_bands, n_frequencies)
            Row ``k`` scores the window band-passed to the ``k``-th band.
        """
        window = self._check_window(window)
        if not self.config.filter_bank:
            raise ValueError("no filter bank configured")
        rows = [self._score_groups(ideal_bandpass_filter(window, self.config.sampling_rate, low, high), "cca")
                for low, high in self.config.filter_bank]
        return np.vstack(rows)

    def _cca_scores(self, window: np.ndarray) -> np.ndarray:
        if not self.config.filter_bank:
            return self._score_groups(window, "cca")
        return self.config.sub_band_mixing.mix(self.band_scores(window))

    def _check_window(self, window) -> np.ndarray:
        window = as_matrix(window)
        if window.shape[0] != self.config.window_size:
            raise DimensionMismatchError(
                f"expected {self.config.window_size} samples, got {window.shape[0]}")
        return window

    def scores(self, window) -> np.ndarray:
        """Score ``window`` against every reference, in frequency order."""
        window = self._check_window(window)
        method = self.config.method
        with timer(f"{method} scoring", logging.DEBUG):
            if method == "hybrid":
                cca = sum_normalize(self._cca_scores(window))
                mec = sum_normalize(self._score_groups(window, "mec"))
                logger.debug("cca: [%s] mec: [%s]", ", ".join(f"{v:.3f}" for v in cca),
                             ", ".join(f"{v:.3f}" for v in mec))
                values = zscore(cca) + zscore(mec)
            else:
                values = self._cca_scores(window) if method == "cca" else self._score_groups(window, "mec")
                if self.config.normalize == "sum":
                    values = sum_normalize(values)
                elif self.config.normalize == "zscore":
                    values = zscore(values)
        logger.debug("scores: [%s]", ", ".join(f"{v:.3f}" for v in values))
        return values

    def identify(self, window) -> Identification:
        scores = self.scores(window)
        index = self.predictor.predict(scores)
        if index < 0:
            return Identification(-1, None, float(scores.max(initial=0.0)), scores)
        return Identification(index, self.groups[index].frequency, float(scores[index]), scores)

    def classify(self, window) -> int:
        """Index of the identified frequency, or ``-1``."""
        return self.identify(window).index

    def close(self) -> None:
        for group in self.groups:
            self.engine.delete(group.handle)
        self.groups = []

    def __enter__(self) -> SsvepClassifier:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
