"""Sine/cosine reference signals for SSVEP detection."""

from __future__ import annotations

import numpy as np


def harmonic_reference(frequency: float,
                       sampling_rate: float,
                       window_size: int,
                       harmonics_count: int) -> np.ndarray:
    """Build the reference matrix of one stimulation frequency.

    Parameters
    ----------
    frequency : float
        Stimulation frequency in Hz.
    sampling_rate : float
        Sampling rate of the recorded signal in Hz.
    window_size : int
        Number of samples (rows).
    harmonics_count : int
        Number of harmonics ``h``; at least one is required.

    Returns
    -------
    ref : ndarray of shape (window_size, 2 * harmonics_count)
        Row ``t`` holds ``sin(2π k f t / fs), cos(2π k f t / fs)`` for
        ``k = 1 .. h``, interleaved.
    """
    if harmonics_count < 1:
        raise ValueError("at least one harmonic is required")
    if sampling_rate <= 0:
        raise ValueError("sampling_rate must be positive")
    t = np.arange(window_size, dtype=np.float64) / sampling_rate
    k = np.arange(1, harmonics_count + 1, dtype=np.float64)
    angle = 2.0 * np.pi * frequency * np.outer(t, k)  # shape (n, h)
    ref = np.empty((window_size, 2 * harmonics_count), dtype=np.float64)
    ref[:, 0::2] = np.sin(angle)
    ref[:, 1::2] = np.cos(angle)
    return ref


def harmonic_references(frequencies,
                        sampling_rate: float,
                        window_size: int,
                        harmonics_count: int) -> list[np.ndarray]:
    """One :func:`harmonic_reference` per frequency, in the given order."""
    return [harmonic_reference(f, sampling_rate, window_size, harmonics_count)
            for f in frequencies]
