"""Filter-bank preprocessing for canonical correlation scoring.

A filter bank splits a signal window into sub-bands, each one produced by an
ideal (brick-wall) band-pass in the frequency domain.  The canonical
correlations of every sub-band against every reference are then merged into
one score per reference with decaying sub-band weights

    w_k = k^{-a} + b,    k = 1..K,
    score_h = sum_k w_k * r_{k,h}^2,

so that the lower sub-bands, which hold the fundamental, count the most.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .linalg import as_matrix


def ideal_bandpass_filter(signal, sampling_rate: float, low: float, high: float) -> np.ndarray:
    """Zero every frequency bin of ``signal`` outside ``[low, high]`` Hz.

    Parameters
    ----------
    signal : array_like of shape (n,) or (n, c)
        Samples along axis 0, one column per channel.
    sampling_rate : float
        Sampling rate in Hz.
    low, high : float
        Inclusive pass band in Hz.

    Returns
    -------
    filtered : ndarray of shape (n, c)
        Real filtered signal.
    """
    signal = as_matrix(signal)
    n = signal.shape[0]
    if n == 0:
        return signal
    spectrum = np.fft.rfft(signal, axis=0)
    freqs = np.fft.rfftfreq(n, d=1.0 / sampling_rate)
    spectrum[(freqs < low) | (freqs > high)] = 0.0
    return np.fft.irfft(spectrum, n=n, axis=0)


@dataclass(frozen=True)
class SubBandMixing:
    """Weights ``k^{-a} + b`` for combining per-sub-band correlations."""

    a: float = 1.25
    b: float = 0.25

    def weights(self, n_bands: int) -> np.ndarray:
        return np.arange(1, n_bands + 1, dtype=np.float64) ** -self.a + self.b

    def mix(self, band_scores) -> np.ndarray:
        """Combine a ``(n_bands, n_references)`` score matrix.

        Returns one value per reference: the weighted sum of squared
        sub-band scores.
        """
        band_scores = np.atleast_2d(np.asarray(band_scores, dtype=np.float64))
        return self.weights(band_scores.shape[0]) @ band_scores ** 2
