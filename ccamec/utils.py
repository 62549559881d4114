"""Miscellaneous helpers: seeding, timing, configuration and CSV input."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

import numpy as np
import yaml

logger = logging.getLogger(__name__)


def set_seed(seed: int | None) -> np.random.Generator:
    """Set the global NumPy random seed and return a generator.

    Parameters
    ----------
    seed : int or None
        Seed for the random number generator.  If ``None``, a random seed is
        drawn from the operating system.

    Returns
    -------
    rng : numpy.random.Generator
        A NumPy random number generator initialised with the given seed.
    """
    if seed is None:
        seed = np.random.SeedSequence().entropy
    rng = np.random.default_rng(seed)
    np.random.seed(seed % 2 ** 32)  # for legacy APIs
    return rng


@contextmanager
def timer(message: str | None = None, level: int = logging.INFO):
    """A context manager for timing a block of code.

    Parameters
    ----------
    message : str, optional
        If provided, this string is logged together with the elapsed time
        upon exit.
    level : int
        Logging level of the message.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if message:
            logger.log(level, "%s: %.3f ms", message, elapsed * 1e3)


def load_config(config_path: str) -> dict:
    """Load a YAML configuration file.

    Parameters
    ----------
    config_path : str
        Path to a YAML file.

    Returns
    -------
    cfg : dict
        Configuration dictionary (empty for an empty file).
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        cfg = yaml.safe_load(f)
    return cfg or {}


def load_csv_matrix(path: str, delimiter: str = ',') -> np.ndarray:
    """Read a delimited text file into a ``float64`` matrix, one row per line.

    Blank lines are skipped.  A single column file yields an ``(n, 1)`` matrix.
    """
    mat = np.loadtxt(path, delimiter=delimiter, dtype=np.float64, ndmin=2)
    logger.debug("read %dx%d matrix from %s", mat.shape[0], mat.shape[1], path)
    return mat
