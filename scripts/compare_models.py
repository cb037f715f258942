#!/usr/bin/env python
"""
Compare model configurations on identical resamples.

Resamples a plain linear model, a linear model with spline-expanded
coordinates and a MARS-style model over the same folds, then compares
their per-fold RMSE with paired t-tests and a Bayesian posterior of the
differences.

Usage:
    python scripts/compare_models.py
    python scripts/compare_models.py --repeats 3 --rope 0.005

Results saved to experiments/compare_{timestamp}/.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np

from resampling.config import (
    BayesianCompareConfig,
    ExperimentConfig,
    MARSConfig,
    ModelSpec,
    ResampleConfig,
    SplitterConfig,
    SyntheticHousingConfig,
)
from resampling.data.splitters import HOLDOUT, REPEATED_VFOLD, make_splits
from resampling.evaluation.bayesian_eval import bayesian_compare
from resampling.evaluation.comparison import compare_summary, paired_t_test
from resampling.experiments.resample_runner import compare
from resampling.io.synthetic_generator import HousingGenerator
from resampling.preprocessing import (
    BasisExpansion,
    CenterScale,
    CollapseRareCategories,
    DropZeroVariance,
    FeaturePipeline,
    LogTransform,
    OneHotEncode,
)

OUTCOME = "Sale_Price"


def base_steps() -> list:
    return [
        LogTransform(OUTCOME, base=10, skip=True),
        CollapseRareCategories(["Neighborhood"], threshold=0.01),
        OneHotEncode(drop_first=True),
        DropZeroVariance(),
    ]


def convert_numpy(obj):
    """Convert numpy types to Python types for JSON serialization."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, (np.integer, np.floating)):
        return float(obj)
    elif isinstance(obj, dict):
        return {k: convert_numpy(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_numpy(i) for i in obj]
    return obj


def main():
    parser = argparse.ArgumentParser(description="Compare models on identical resamples")
    parser.add_argument("--count", type=int, default=10, help="Folds per repeat")
    parser.add_argument("--repeats", type=int, default=1, help="Repeats of v-fold CV")
    parser.add_argument("--seed", type=int, help="Random seed (overrides config)")
    parser.add_argument("--rope", type=float, help="Practical equivalence bound (overrides config)")
    parser.add_argument("--n-jobs", type=int, default=1, help="Parallel split workers")
    args = parser.parse_args()

    data_cfg = SyntheticHousingConfig.from_yaml()
    split_cfg = SplitterConfig.from_yaml()
    bayes_cfg = BayesianCompareConfig.from_yaml()
    mars_cfg = MARSConfig.from_yaml()
    exp_cfg = ExperimentConfig.from_yaml()

    seed = args.seed if args.seed is not None else split_cfg.random_seed
    split_cfg = SplitterConfig(**{
        **split_cfg.model_dump(),
        "strategy": REPEATED_VFOLD,
        "count": args.count,
        "repeats": args.repeats,
        "random_seed": seed,
    })
    if args.rope is not None:
        bayes_cfg = BayesianCompareConfig(**{**bayes_cfg.model_dump(), "rope": args.rope})

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = PROJECT_ROOT / exp_cfg.output_dir / f"compare_{timestamp}"
    run_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("Model comparison")
    print("=" * 60)
    print(f"  Output: {run_dir}")
    print(f"  Splits: {args.repeats} x {args.count}-fold CV (seed {seed})")
    print(f"  ROPE: {bayes_cfg.rope}")
    print("=" * 60)

    housing = HousingGenerator(data_cfg).generate()
    initial = make_splits(housing, SplitterConfig(
        strategy=HOLDOUT, prop=0.8, strata=split_cfg.strata, random_seed=seed,
    ))[0]
    train = initial.analysis_data(housing)

    spline_steps = [
        BasisExpansion("Longitude", n_knots=5, natural=True),
        BasisExpansion("Latitude", n_knots=5, natural=True),
    ]
    configurations = {
        "linear": (
            FeaturePipeline(base_steps() + [CenterScale()], outcome=OUTCOME),
            ModelSpec(family="linear"),
        ),
        "linear_splines": (
            FeaturePipeline(base_steps() + spline_steps + [CenterScale()], outcome=OUTCOME),
            ModelSpec(family="linear"),
        ),
        "mars": (
            FeaturePipeline(base_steps(), outcome=OUTCOME),
            ModelSpec(family="mars", params=mars_cfg.model_dump()),
        ),
    }

    comparison = compare(
        train,
        split_cfg,
        configurations,
        exp_cfg.metrics,
        config=ResampleConfig(n_jobs=args.n_jobs, show_progress=True),
    )

    metric = "rmse"
    print("\nResampled estimates:")
    print(compare_summary(comparison, metric).to_string())

    reference = comparison.reports["linear"]
    t_tests = {}
    print("\nPaired t-tests vs linear:")
    for name, report in comparison.reports.items():
        if name == "linear":
            continue
        result = paired_t_test(report, reference, metric)
        t_tests[name] = result.to_dict()
        print(
            f"  {name:15s} diff={result.mean_difference:+.5f} "
            f"95% CI=({result.ci_lower:+.5f}, {result.ci_upper:+.5f}) p={result.p_value:.4f}"
        )

    posterior = bayesian_compare(comparison.reports, metric, bayes_cfg)
    print("\nBayesian contrasts:")
    for contrast, stats in posterior["contrasts"].items():
        print(
            f"  {contrast:25s} mean={stats['mean']:+.5f} "
            f"P(>rope)={stats['p_greater']:.3f} P(<-rope)={stats['p_less']:.3f} "
            f"P(rope)={stats['p_equivalent']:.3f}"
        )

    comparison.summary().to_csv(run_dir / "summary.csv", index=False)
    comparison.paired_values(metric).to_csv(run_dir / f"paired_{metric}.csv")
    with open(run_dir / "comparison.json", "w") as f:
        json.dump(convert_numpy({"t_tests": t_tests, "bayesian": posterior}), f, indent=2)
    with open(run_dir / "config.json", "w") as f:
        json.dump({
            "data": data_cfg.model_dump(),
            "splitter": split_cfg.model_dump(),
            "bayesian": bayes_cfg.model_dump(),
        }, f, indent=2)

    print(f"\nResults saved to {run_dir}")


if __name__ == "__main__":
    main()
