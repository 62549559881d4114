"""Plotting utilities for inspecting SSVEP scores."""

from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np


def plot_scores(frequencies,
                score_series: list[np.ndarray],
                labels: list[str],
                threshold: float | None = None,
                title: str = "Scores per stimulation frequency",
                ylabel: str = "Score",
                outfile: str | None = None):
    """Grouped bar chart of one or more score vectors.

    Parameters
    ----------
    frequencies : sequence of float
        Stimulation frequencies in Hz, one bar group each.
    score_series : list of ndarrays
        Each element holds one score per frequency (e.g. CCA and MEC).
    labels : list of str
        Legend label of each series.  Must have the same length as
        ``score_series``.
    threshold : float, optional
        Draw a horizontal line at the decision threshold.
    title : str, optional
        Title of the plot.
    ylabel : str, optional
        Label of the y-axis.
    outfile : str, optional
        If provided, the figure is saved to this path and closed.

    Returns
    -------
    fig : matplotlib.figure.Figure
        The figure, left open when ``outfile`` is not given.
    """
    if len(score_series) != len(labels):
        raise ValueError("score_series and labels must have the same length")
    freqs = np.asarray(frequencies, dtype=np.float64)
    x = np.arange(len(freqs))
    width = 0.8 / max(len(score_series), 1)

    fig, ax = plt.subplots(figsize=(8, 4))
    for i, (scores, label) in enumerate(zip(score_series, labels)):
        ax.bar(x + (i - (len(score_series) - 1) / 2) * width, scores, width, label=label)
    if threshold is not None:
        ax.axhline(threshold, color='k', linestyle='--', linewidth=0.8, label="threshold")
    ax.set_xticks(x)
    ax.set_xticklabels([f"{f:g}" for f in freqs])
    ax.set_xlabel("Frequency (Hz)")
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.grid(True, axis='y', linestyle='--', linewidth=0.5)
    ax.legend(loc='best')
    fig.tight_layout()
    if outfile:
        fig.savefig(outfile)
        plt.close(fig)
    return fig
