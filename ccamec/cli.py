"""Command line driver.

Usage:
    ccamec score X.csv Y.csv
    ccamec classify --config ssvep.yaml window.csv [--plot scores.png]

``score`` reads two comma-delimited matrices (one row per sample) and prints
their canonical correlation ``R`` and the minimum energy combination
``power`` of ``X`` against ``Y``.  ``classify`` identifies the stimulation
frequency of a recorded window with the classifier described by a YAML
configuration.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from .classifier import SsvepClassifier
from .config import ClassifierConfig
from .engine import SimilarityEngine
from .errors import CcaMecError
from .utils import load_csv_matrix, timer

logger = logging.getLogger(__name__)


def run_score(args: argparse.Namespace) -> int:
    x = load_csv_matrix(args.x)
    y = load_csv_matrix(args.y)
    with SimilarityEngine() as engine:
        hx = engine.allocate(x)
        hy = engine.allocate(y)
        with timer("QR"):
            engine.precompute_qr(hx)
            engine.precompute_qr(hy)
        with timer("CCA"):
            r = engine.canonical_correlation(hx, hy)
        print(f"R: {r:.6f}")
        with timer("MEC"):
            power = engine.minimum_energy_combination(hx, hy)
        print(f"power: {power:.6f}")
    return 0


def run_classify(args: argparse.Namespace) -> int:
    config = ClassifierConfig.from_yaml(args.config)
    if args.method:
        config = dataclasses.replace(config, method=args.method)
    window = load_csv_matrix(args.window)
    with SsvepClassifier(config) as classifier:
        result = classifier.identify(window)
    for f, s in zip(config.frequencies, result.scores):
        print(f"{f:g} Hz: {s:.6f}")
    if result.frequency is None:
        print("identified: none")
    else:
        print(f"identified: {result.frequency:g} Hz")
    if args.plot:
        from .plotting import plot_scores
        plot_scores(config.frequencies, [result.scores], [config.method.upper()],
                    threshold=config.cca_threshold, outfile=args.plot)
        logger.info("wrote %s", args.plot)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ccamec",
        description="Canonical correlation and minimum energy combination scores",
    )
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help="increase log verbosity (-v info, -vv debug)")
    sub = parser.add_subparsers(dest='command', required=True)

    score = sub.add_parser('score', help="score two CSV matrices")
    score.add_argument('x', help="signal matrix (CSV, one row per sample)")
    score.add_argument('y', help="reference matrix (CSV, one row per sample)")
    score.set_defaults(func=run_score)

    classify = sub.add_parser('classify', help="identify the SSVEP frequency of a CSV window")
    classify.add_argument('window', help="signal window (CSV, one row per sample)")
    classify.add_argument('--config', required=True, help="classifier YAML configuration")
    classify.add_argument('--method', choices=['cca', 'mec', 'hybrid'], help="override the scoring method")
    classify.add_argument('--plot', help="save a bar chart of the scores to this path")
    classify.set_defaults(func=run_classify)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args)
    except (CcaMecError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
