"""Classifier configuration.

A configuration is a flat YAML mapping, for example::

    frequencies: [8.0, 10.0, 12.0, 15.0]
    sampling_rate: 250
    trial_duration_ms: 4000
    harmonics_count: 3
    cca_threshold: 0.3
    method: cca
    normalize: sum
    parallel: 2
    filter_bank: [[6, 90], [14, 90], [22, 90]]
    sub_band_mixing: {a: 1.25, b: 0.25}
"""

from __future__ import annotations

from dataclasses import dataclass, fields

from .filters import SubBandMixing
from .utils import load_config

METHODS = ("cca", "mec", "hybrid")
NORMALIZATIONS = ("none", "sum", "zscore")


def _parse_filter_bank(bands) -> list[tuple[float, float]]:
    parsed = []
    for band in bands:
        try:
            low, high = (float(v) for v in band)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"filter bank entries must be [low, high] pairs, got {band!r}") from exc
        if low < 0 or high <= low:
            raise ValueError(f"filter bank band needs 0 <= low < high, got [{low}, {high}]")
        parsed.append((low, high))
    if not parsed:
        raise ValueError("filter_bank must list at least one band")
    return parsed


def _parse_mixing(mixing) -> SubBandMixing:
    if isinstance(mixing, SubBandMixing):
        return mixing
    if not isinstance(mixing, dict):
        raise ValueError(f"sub_band_mixing must be a mapping with keys a and b, got {mixing!r}")
    unknown = set(mixing) - {"a", "b"}
    if unknown:
        raise ValueError(f"unknown sub_band_mixing keys: {sorted(unknown)}")
    return SubBandMixing(**{k: float(v) for k, v in mixing.items()})


@dataclass
class ClassifierConfig:
    """Parameters of :class:`~ccamec.classifier.SsvepClassifier`.

    Exactly one of ``window_size`` (samples) and ``trial_duration_ms`` needs
    to be given; the window size is derived from the trial duration otherwise.

    ``method`` is ``cca``, ``mec`` or ``hybrid``; the hybrid score of a
    frequency is the sum of its z-scored CCA and MEC scores.  ``normalize``
    rescales the ``cca``/``mec`` score vector (``none``, ``sum`` to one, or
    ``zscore``).  ``filter_bank`` lists ``[low, high]`` pass bands in Hz;
    when set, CCA scores are computed per sub-band and merged with
    ``sub_band_mixing``.
    """

    frequencies: list[float]
    sampling_rate: float
    harmonics_count: int = 2
    window_size: int | None = None
    trial_duration_ms: float | None = None
    cca_threshold: float = 0.0
    method: str = "cca"
    normalize: str = "none"
    parallel: int = 1
    filter_bank: list | None = None
    sub_band_mixing: SubBandMixing | dict | None = None

    def __post_init__(self) -> None:
        self.frequencies = [float(f) for f in self.frequencies]
        self.sampling_rate = float(self.sampling_rate)
        self.harmonics_count = int(self.harmonics_count)
        self.cca_threshold = float(self.cca_threshold)
        self.parallel = int(self.parallel)
        self.method = str(self.method).lower()
        self.normalize = str(self.normalize).lower()
        if not self.frequencies:
            raise ValueError("at least one frequency is required")
        if self.sampling_rate <= 0:
            raise ValueError("sampling_rate must be positive")
        if self.harmonics_count < 1:
            raise ValueError("at least one harmonic is required")
        if self.method not in METHODS:
            raise ValueError(f"method must be one of {METHODS}, got {self.method!r}")
        if self.normalize not in NORMALIZATIONS:
            raise ValueError(f"normalize must be one of {NORMALIZATIONS}, got {self.normalize!r}")
        if self.parallel < 1:
            raise ValueError("parallel must be at least 1")
        if self.filter_bank is not None:
            if self.method == "mec":
                raise ValueError("filter_bank applies to the cca and hybrid methods only")
            self.filter_bank = _parse_filter_bank(self.filter_bank)
        self.sub_band_mixing = _parse_mixing(
            self.sub_band_mixing if self.sub_band_mixing is not None else SubBandMixing())
        if self.window_size is None:
            if self.trial_duration_ms is None:
                raise ValueError("either window_size or trial_duration_ms is required")
            self.window_size = int(self.sampling_rate * float(self.trial_duration_ms) / 1000.0)
        self.window_size = int(self.window_size)
        if self.window_size < 2:
            raise ValueError("window_size must be at least 2 samples")

    @classmethod
    def from_dict(cls, cfg: dict) -> ClassifierConfig:
        if not isinstance(cfg, dict):
            raise ValueError(f"configuration must be a mapping, got {type(cfg).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = set(cfg) - known
        if unknown:
            raise ValueError(f"unknown configuration keys: {sorted(unknown)}")
        try:
            return cls(**cfg)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def from_yaml(cls, path: str) -> ClassifierConfig:
        return cls.from_dict(load_config(path))
