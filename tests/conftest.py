"""Shared fixtures."""
import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from ccamec.engine import SimilarityEngine  # noqa: E402
from ccamec.repository import MatrixRepository  # noqa: E402
from ccamec.utils import set_seed  # noqa: E402


@pytest.fixture
def rng():
    return set_seed(1234)


@pytest.fixture
def repository():
    return MatrixRepository()


@pytest.fixture
def engine():
    with SimilarityEngine() as eng:
        yield eng


def make_ssvep_window(frequency, sampling_rate=250.0, n_samples=500, n_channels=4,
                      amplitude=1.0, noise=1.0, seed=7):
    """Synthetic multichannel SSVEP response buried in white noise."""
    gen = np.random.default_rng(seed)
    t = np.arange(n_samples) / sampling_rate
    phases = gen.uniform(0, 2 * np.pi, n_channels)
    gains = gen.uniform(0.5, 1.5, n_channels)
    clean = gains * np.sin(2 * np.pi * frequency * t[:, None] + phases)
    return amplitude * clean + noise * gen.standard_normal((n_samples, n_channels))


@pytest.fixture
def ssvep_window():
    return make_ssvep_window
